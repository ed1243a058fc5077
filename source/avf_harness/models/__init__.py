from .commands import (
    Environment,
    CommandStatus,
    CommandResult,
    CommandError,
    CommandOut,
)

from .sessions import (
    ProcessState,
    SupervisedProcess,
    SessionState,
    SessionCreate,
    SessionRecord,
    SessionOut,
)

from .metrics import MemoryStats, ProcessTable, BootTimeStats

from .compilation import (
    TaskState,
    CompilationTaskOut,
    OdrefreshOut,
    CompilerFilterRequest,
    ComposComparisonOut,
)


__all__ = [
    "Environment",
    "CommandStatus",
    "CommandResult",
    "CommandError",
    "CommandOut",
    "ProcessState",
    "SupervisedProcess",
    "SessionState",
    "SessionCreate",
    "SessionRecord",
    "SessionOut",
    "MemoryStats",
    "ProcessTable",
    "BootTimeStats",
    "TaskState",
    "CompilationTaskOut",
    "OdrefreshOut",
    "CompilerFilterRequest",
    "ComposComparisonOut",
]
