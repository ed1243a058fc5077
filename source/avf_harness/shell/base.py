from __future__ import annotations

from models import CommandError, CommandResult


class CommandRunner:
    """
    Runs shell commands in one execution environment (host device or guest VM).

    Command parts are joined with spaces and interpreted by the remote shell,
    so callers are responsible for quoting.
    """

    name: str = "shell"

    def _execute(self, command: str, timeout: float | None) -> CommandResult:
        raise NotImplementedError

    @staticmethod
    def _join(cmd: tuple[str, ...]) -> str:
        return " ".join(cmd)

    def run_for_result(self, *cmd: str) -> CommandResult:
        return self._execute(self._join(cmd), None)

    def run_with_timeout(self, timeout: float, *cmd: str) -> CommandResult:
        return self._execute(self._join(cmd), timeout)

    def run(self, *cmd: str) -> str:
        """Run and return the trimmed stdout, raising CommandError on failure."""
        result = self.run_for_result(*cmd)
        if not result.ok:
            raise CommandError(result)
        return result.stdout.strip()

    def try_run(self, *cmd: str) -> str:
        """Like run(), but returns "" instead of raising."""
        try:
            result = self.run_for_result(*cmd)
        except Exception as e:
            print(f"[{self.name}] Error running", self._join(cmd), e)
            return ""
        if not result.ok:
            return ""
        return result.stdout.strip()

    def assume_success(self, *cmd: str) -> None:
        result = self.run_for_result(*cmd)
        if not result.ok:
            raise CommandError(result)

    def enable_root(self) -> bool:
        raise NotImplementedError

    def pull(self, remote_path: str, local_path: str) -> None:
        raise NotImplementedError

    def close(self) -> None:
        return None
