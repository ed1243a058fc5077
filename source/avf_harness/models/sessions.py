from __future__ import annotations
import time
from dataclasses import dataclass, field
from enum import Enum

from pydantic import BaseModel, Field

from .commands import CommandResult, Environment


class ProcessState(str, Enum):
    running = "running"
    stopped = "stopped"


@dataclass
class SupervisedProcess:
    """
    A launched external command. The supervisor only holds this as a handle:
    killing happens by process name on the target environment.
    """

    name: str
    command: str
    environment: Environment
    state: ProcessState = ProcessState.stopped
    last_result: CommandResult | None = None
    launches: int = 0


class SessionState(str, Enum):
    provisioning = "provisioning"
    running = "running"
    stopped = "stopped"
    error = "error"


class SessionCreate(BaseModel):
    helper_flags: str = Field("", description="Flags for open_then_run")
    server_flags: str = Field(
        ..., description="Flags for fd_server", json_schema_extra={"example": "--ro-fds 3"}
    )
    client_flags: str = Field(
        ...,
        description="Flags for authfs",
        json_schema_extra={"example": "--remote-ro-file-unverified 3"},
    )
    timeout_s: float | None = Field(None, description="AUTHFS_INIT_TIMEOUT_S Override")


@dataclass
class SessionRecord:
    id: str
    state: SessionState
    helper_flags: str
    server_flags: str
    client_flags: str
    mount_dir: str
    timeout_s: float | None = None
    error_reason: str | None = None
    created_at: float = field(default_factory=time.time)
    updated_at: float = field(default_factory=time.time)
    ready_at: float | None = None


class SessionOut(BaseModel):
    id: str
    state: SessionState
    node: str
    mount_dir: str
    server_flags: str
    client_flags: str
    created_at: float
    updated_at: float
    ready_at: float | None
    error_reason: str | None = None

    @staticmethod
    # pyrefly: ignore  # unknown-name
    def from_record(session: "SessionRecord", node: str) -> "SessionOut":
        return SessionOut(
            id=session.id,
            state=session.state,
            node=node,
            mount_dir=session.mount_dir,
            server_flags=session.server_flags,
            client_flags=session.client_flags,
            created_at=session.created_at,
            updated_at=session.updated_at,
            ready_at=session.ready_at,
            error_reason=session.error_reason,
        )
