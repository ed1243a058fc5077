from __future__ import annotations
from pydantic import BaseModel


class MemoryStats(BaseModel):
    pid: int
    stats_kb: dict[str, int]


class ProcessTable(BaseModel):
    processes: dict[int, str]


class BootTimeStats(BaseModel):
    average_ms: float
    min_ms: float
    max_ms: float
    stdev_ms: float

    def as_metrics(self) -> dict[str, float]:
        return {
            "avf_perf/microdroid/boot_time_average_ms": self.average_ms,
            "avf_perf/microdroid/boot_time_min_ms": self.min_ms,
            "avf_perf/microdroid/boot_time_max_ms": self.max_ms,
            "avf_perf/microdroid/boot_time_stdev_ms": self.stdev_ms,
        }
