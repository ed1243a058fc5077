from __future__ import annotations
from enum import Enum

from pydantic import BaseModel


class TaskState(str, Enum):
    running = "running"
    succeeded = "succeeded"
    failed = "failed"
    cancelled = "cancelled"


class CompilationTaskOut(BaseModel):
    id: str
    state: TaskState
    started_at: float
    finished_at: float | None = None


class OdrefreshOut(BaseModel):
    status: int


class CompilerFilterRequest(BaseModel):
    compiler_filter: str = "speed"


class ComposComparisonOut(BaseModel):
    compiler_filter: str
    local_exit_code: int
    local_elapsed_ms: float
    compos_exit_code: int
    compos_elapsed_ms: float
    checksums_match: bool
    compos_info_present: bool
