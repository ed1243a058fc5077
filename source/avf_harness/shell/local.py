from __future__ import annotations

import os
import shutil
import subprocess

import settings
from models import CommandResult, CommandStatus

from .base import CommandRunner
from .proc import _kill_process_tree


def _run_process(argv: list[str], timeout: float | None) -> CommandResult:
    command = " ".join(argv)
    with subprocess.Popen(
        argv,
        stdout=subprocess.PIPE,
        stderr=subprocess.PIPE,
        text=True,
        errors="replace",
        start_new_session=True,
    ) as proc:
        try:
            out, err = proc.communicate(timeout=timeout)
        except subprocess.TimeoutExpired:
            print("Command timed out, killing", command)
            _kill_process_tree(proc.pid)
            out, err = proc.communicate()
            # The tree kill reaps the child, so returncode is not meaningful here.
            return CommandResult(
                command=command,
                exit_code=None,
                stdout=out or "",
                stderr=err or "",
                status=CommandStatus.timed_out,
            )

    return CommandResult(
        command=command,
        exit_code=proc.returncode,
        stdout=out or "",
        stderr=err or "",
        status=CommandStatus.success if proc.returncode == 0 else CommandStatus.failed,
    )


class SubprocessShell(CommandRunner):
    """A CommandRunner backed by a local child process per command."""

    def _argv(self, command: str) -> list[str]:
        raise NotImplementedError

    def _execute(self, command: str, timeout: float | None) -> CommandResult:
        result = _run_process(self._argv(command), timeout)
        # Report the command as issued, not the transport wrapper.
        result.command = command
        return result


class LocalShell(SubprocessShell):
    name = "local"

    def _argv(self, command: str) -> list[str]:
        return ["sh", "-c", command]

    def enable_root(self) -> bool:
        return os.geteuid() == 0

    def pull(self, remote_path: str, local_path: str) -> None:
        shutil.copyfile(remote_path, local_path)


class AdbShell(SubprocessShell):
    """`adb shell` against one device, either the host device or an adb-connected guest."""

    def __init__(self, serial: str | None = None, adb_bin: str | None = None) -> None:
        self.serial = serial or ""
        self.adb_bin = adb_bin or settings.ADB_BIN
        self.name = f"adb:{self.serial}" if self.serial else "adb"

    def _adb_argv(self, *args: str) -> list[str]:
        argv = [self.adb_bin]
        if self.serial:
            argv += ["-s", self.serial]
        argv += list(args)
        return argv

    def _argv(self, command: str) -> list[str]:
        return self._adb_argv("shell", command)

    def adb(self, *args: str, timeout: float | None = 60) -> CommandResult:
        """Run a plain adb subcommand (not through the device shell)."""
        return _run_process(self._adb_argv(*args), timeout)

    def enable_root(self) -> bool:
        res = self.adb("root")
        if not res.ok:
            print(f"[{self.name}] adb root failed", res)
            return False
        self.adb("wait-for-device")
        return self.try_run("id", "-u") == "0"

    def reconnect(self) -> None:
        # The device may drop off adb when a VM exits; reconnect is best-effort.
        res = self.adb("reconnect")
        if not res.ok:
            print(f"[{self.name}] adb reconnect failed", res)
        self.adb("wait-for-device")

    def pull(self, remote_path: str, local_path: str) -> None:
        res = self.adb("pull", remote_path, local_path)
        if not res.ok:
            raise FileNotFoundError(f"adb pull {remote_path} failed: {res.stderr.strip()}")
