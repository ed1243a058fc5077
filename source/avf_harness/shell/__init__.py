"""Command execution against the host device and the guest VM."""

from .base import CommandRunner
from .local import LocalShell, AdbShell
from .ssh import SshShell, _load_pkey as load_pkey
from .polling import _wait_for as wait_for
from .proc import _kill_process_tree as kill_process_tree

import settings


def host_shell() -> CommandRunner:
    return AdbShell(settings.ANDROID_SERIAL)


def guest_shell() -> CommandRunner:
    if settings.GUEST_TRANSPORT == "ssh":
        return SshShell()
    return AdbShell(settings.GUEST_SERIAL)


__all__ = [
    "CommandRunner",
    "LocalShell",
    "AdbShell",
    "SshShell",
    "load_pkey",
    "wait_for",
    "kill_process_tree",
    "host_shell",
    "guest_shell",
]
