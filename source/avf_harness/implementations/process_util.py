"""Parsing of process snapshots taken through a shell.

Both helpers take a `shell_executor`: any callable mapping a command string to
its stdout, e.g. `CommandRunner.try_run` or a lambda in tests.
"""

import re
from typing import Callable

ShellExecutor = Callable[[str], str]


class ProcessInfoParseError(ValueError):
    pass


def _skip_first_line(text: str) -> str:
    index = text.find("\n")
    return "" if index < 0 else text[index + 1 :]


def _parse_memory_info(text: str) -> dict[str, int]:
    stats: dict[str, int] = {}
    for line in re.split(r"[\r\n]+", text):
        line = line.strip()
        if not line:
            continue
        # '<metric>:        <number> kB', e.g. 'Pss_Anon:        70712 kB'
        if line.endswith(" kB"):
            line = line[:-3]
        key, sep, value = line.partition(":")
        try:
            if not sep:
                raise ValueError("missing ':'")
            stats[key.strip()] = int(value.strip())
        except ValueError as e:
            raise ProcessInfoParseError(f"Malformed memory line {line!r}: {e}") from e
    return stats


def get_process_smaps_rollup(pid: int, shell_executor: ShellExecutor) -> dict[str, int]:
    """Memory metrics (kB) of a process, {} when /proc/<pid> is gone."""
    path = f"/proc/{pid}/smaps_rollup"
    return _parse_memory_info(_skip_first_line(shell_executor(f"cat {path} || true")))


def get_process_map(shell_executor: ShellExecutor) -> dict[int, str]:
    """pid -> process name for every process listed by `ps`."""
    processes: dict[int, str] = {}
    for line in _skip_first_line(shell_executor("ps -Ao PID,NAME")).split("\n"):
        # '<pid> <name>', e.g. '11424 dex2oat64'
        line = line.strip()
        if not line:
            continue
        parts = line.split(None, 1)
        try:
            pid = int(parts[0])
            name = parts[1]
        except (ValueError, IndexError) as e:
            raise ProcessInfoParseError(f"Malformed process line {line!r}") from e
        processes[pid] = name
    return processes
