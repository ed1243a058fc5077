from __future__ import annotations

import socket

import paramiko

import settings
from models import CommandResult, CommandStatus

from .base import CommandRunner


def _load_pkey(path: str):
    """Try common private key formats, raising if none match."""
    for key_cls in (paramiko.Ed25519Key, paramiko.RSAKey, paramiko.ECDSAKey):
        try:
            return key_cls.from_private_key_file(path)
        except Exception as e:
            print("Error loading _pkey", e)
            continue
    raise RuntimeError(f"Could not load the private key: {path}")


class SshShell(CommandRunner):
    """Runs commands on a guest VM that exposes an SSH server."""

    def __init__(
        self,
        host: str | None = None,
        port: int | None = None,
        user: str | None = None,
        privkey: str | None = None,
    ) -> None:
        self.host = host or settings.GUEST_SSH_HOST
        self.port = port or settings.GUEST_SSH_PORT
        self.user = user or settings.GUEST_SSH_USER
        self.privkey = privkey or settings.GUEST_SSH_PRIVKEY
        self.name = f"ssh:{self.host}:{self.port}"
        self._cli: paramiko.SSHClient | None = None

    def _client(self) -> paramiko.SSHClient:
        if self._cli is not None:
            transport = self._cli.get_transport()
            if transport is not None and transport.is_active():
                return self._cli
            print(f"[{self.name}] SSH transport inactive, reconnecting")

        cli = paramiko.SSHClient()
        cli.set_missing_host_key_policy(paramiko.AutoAddPolicy())
        cli.connect(
            self.host,
            port=self.port,
            username=self.user,
            pkey=_load_pkey(self.privkey),
            banner_timeout=10,
            auth_timeout=10,
            timeout=5,
            look_for_keys=False,
        )
        self._cli = cli
        return cli

    def _execute(self, command: str, timeout: float | None) -> CommandResult:
        cli = self._client()
        _, stdout, stderr = cli.exec_command(command, timeout=timeout)
        try:
            out = stdout.read().decode("utf-8", errors="replace")
            err = stderr.read().decode("utf-8", errors="replace")
            code = stdout.channel.recv_exit_status()
        except socket.timeout:
            print(f"[{self.name}] Command timed out", command)
            stdout.channel.close()
            return CommandResult(
                command=command,
                exit_code=None,
                status=CommandStatus.timed_out,
            )

        return CommandResult(
            command=command,
            exit_code=code,
            stdout=out,
            stderr=err,
            status=CommandStatus.success if code == 0 else CommandStatus.failed,
        )

    def enable_root(self) -> bool:
        return self.try_run("id", "-u") == "0"

    def pull(self, remote_path: str, local_path: str) -> None:
        sftp = self._client().open_sftp()
        try:
            sftp.get(remote_path, local_path)
        finally:
            sftp.close()

    def close(self) -> None:
        if self._cli is not None:
            try:
                self._cli.close()
            except Exception as e:
                print(f"[{self.name}] Error closing ssh", e)
            self._cli = None
