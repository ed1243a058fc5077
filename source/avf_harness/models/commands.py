from __future__ import annotations
from dataclasses import dataclass
from enum import Enum

from pydantic import BaseModel


class Environment(str, Enum):
    host = "host"
    guest = "guest"


class CommandStatus(str, Enum):
    success = "success"
    failed = "failed"
    timed_out = "timed_out"
    exception = "exception"


@dataclass
class CommandResult:
    """Outcome of a single shell round-trip."""

    command: str
    exit_code: int | None
    stdout: str = ""
    stderr: str = ""
    status: CommandStatus = CommandStatus.success

    @property
    def ok(self) -> bool:
        return self.status == CommandStatus.success

    def __str__(self) -> str:
        return (
            f"CommandResult(status={self.status.value}, exit_code={self.exit_code}, "
            f"stdout={self.stdout.strip()!r}, stderr={self.stderr.strip()!r})"
        )


class CommandError(RuntimeError):
    def __init__(self, result: CommandResult) -> None:
        super().__init__(f"Command failed: {result.command} -> {result}")
        self.result = result


class CommandOut(BaseModel):
    command: str
    exit_code: int | None
    stdout: str
    stderr: str
    status: CommandStatus

    @staticmethod
    def from_result(result: CommandResult) -> "CommandOut":
        return CommandOut(
            command=result.command,
            exit_code=result.exit_code,
            stdout=result.stdout,
            stderr=result.stderr,
            status=result.status,
        )
