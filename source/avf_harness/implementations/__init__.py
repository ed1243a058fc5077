from .runner import SessionRunner
from .store import RedisStore
from .supervisor import TransientServiceSupervisor, HarnessContext, fd_server_flags
from .process_util import (
    ProcessInfoParseError,
    get_process_map,
    get_process_smaps_rollup,
)
from .log_archiver import archive_log_then_delete
from .compilation import (
    CompilationTask,
    ComposdCompilationService,
    IsolatedCompilationService,
    OdrefreshExitCode,
)
from .compos import ComposWorkflow
from .benchmarks import (
    BootResult,
    boot_time_stats,
    can_boot_with_memory,
    find_minimum_memory,
    image_sizes,
    measure_boot_time,
)

__all__ = [
    "SessionRunner",
    "RedisStore",
    "TransientServiceSupervisor",
    "HarnessContext",
    "fd_server_flags",
    "ProcessInfoParseError",
    "get_process_map",
    "get_process_smaps_rollup",
    "archive_log_then_delete",
    "CompilationTask",
    "ComposdCompilationService",
    "IsolatedCompilationService",
    "OdrefreshExitCode",
    "ComposWorkflow",
    "BootResult",
    "boot_time_stats",
    "can_boot_with_memory",
    "find_minimum_memory",
    "image_sizes",
    "measure_boot_time",
]
