from __future__ import annotations

import math
import shlex
from dataclasses import dataclass
from typing import Callable, Sequence

import settings
from models import BootTimeStats
from shell import CommandRunner

SIZE_MB = 1024.0 * 1024.0
MICRODROID_IMG_PREFIX = "microdroid_"
MICRODROID_IMG_SUFFIX = ".img"


@dataclass
class BootResult:
    payload_started: bool
    elapsed_ns: int = 0


def can_boot_with_memory(
    try_boot: Callable[[int], BootResult], mem_mib: int, trials: int = 5
) -> bool:
    """True if the VM payload started in at least one of `trials` attempts."""
    for _ in range(trials):
        if try_boot(mem_mib).payload_started:
            return True
    return False


def find_minimum_memory(
    can_boot: Callable[[int], bool], lo: int = 16, hi: int = 512
) -> int | None:
    """Smallest memory (MiB) in [lo, hi] that boots, assuming monotonicity."""
    minimum: int | None = None
    while lo <= hi:
        mid = (lo + hi) // 2
        if can_boot(mid):
            minimum = mid
            hi = mid - 1
        else:
            lo = mid + 1
    return minimum


def boot_time_stats(samples_ms: Sequence[float]) -> BootTimeStats:
    if not samples_ms:
        raise ValueError("No boot time samples")
    n = len(samples_ms)
    average = sum(samples_ms) / n
    variance = sum(s * s for s in samples_ms) / n - average * average
    return BootTimeStats(
        average_ms=average,
        min_ms=min(samples_ms),
        max_ms=max(samples_ms),
        # Rounding can push the variance of identical samples slightly negative.
        stdev_ms=math.sqrt(max(variance, 0.0)),
    )


def measure_boot_time(
    try_boot: Callable[[int], BootResult], trials: int = 10, mem_mib: int = 256
) -> BootTimeStats:
    samples: list[float] = []
    for i in range(trials):
        result = try_boot(mem_mib)
        if not result.payload_started:
            raise RuntimeError(f"VM payload did not start on trial {i}")
        samples.append(result.elapsed_ns / 1_000_000.0)
    return boot_time_stats(samples)


def image_sizes(shell: CommandRunner, directory: str | None = None) -> dict[str, float]:
    """Size in MiB of every microdroid_<base>.img under the directory."""
    base_dir = directory or settings.APEX_ETC_FS
    out = shell.run(f"find {shlex.quote(base_dir)} -maxdepth 1 -type f -printf '%s||%f\\n'")

    metrics: dict[str, float] = {}
    for ln in out.splitlines():
        if "||" not in ln:
            continue
        size, name = ln.split("||", 1)
        if not name.startswith(MICRODROID_IMG_PREFIX) or not name.endswith(
            MICRODROID_IMG_SUFFIX
        ):
            continue
        base = name[len(MICRODROID_IMG_PREFIX) : -len(MICRODROID_IMG_SUFFIX)]
        metrics[f"avf_perf/microdroid/img_size_{base}_MB"] = int(size) / SIZE_MB
    return metrics
