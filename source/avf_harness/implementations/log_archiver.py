import os

import settings
from shell import CommandRunner


def archive_log_then_delete(
    shell: CommandRunner,
    remote_path: str,
    archive_name: str,
    dest_dir: str | None = None,
) -> str:
    """Copy a log off the target into the artifacts dir, then remove it on the target."""
    base = dest_dir or settings.ARTIFACTS_DIR
    os.makedirs(base, exist_ok=True)
    local_path = os.path.join(base, archive_name)
    try:
        shell.pull(remote_path, local_path)
        print(f"Archived {remote_path} to {local_path}")
    finally:
        shell.try_run("rm", "-f", remote_path)
    return local_path
