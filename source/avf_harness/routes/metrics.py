from fastapi import HTTPException, APIRouter, Depends

from security import verify_bearer_token
from models import CommandError, Environment, MemoryStats, ProcessTable
from implementations import (
    ProcessInfoParseError,
    get_process_map,
    get_process_smaps_rollup,
    image_sizes,
)
from shell import CommandRunner, host_shell, guest_shell


router_metrics = APIRouter(
    prefix="/metrics", dependencies=[Depends(verify_bearer_token)]
)


def _shell_for(env: Environment) -> CommandRunner:
    return host_shell() if env == Environment.host else guest_shell()


@router_metrics.get("/{env}/processes", response_model=ProcessTable)
async def get_processes(env: Environment) -> ProcessTable:
    shell = _shell_for(env)
    try:
        return ProcessTable(processes=get_process_map(shell.run))
    except CommandError as e:
        raise HTTPException(502, f"ps failed on {env.value}: {e}") from e
    except ProcessInfoParseError as e:
        raise HTTPException(502, str(e)) from e
    finally:
        shell.close()


@router_metrics.get("/{env}/images", response_model=dict[str, float])
async def get_image_sizes(env: Environment) -> dict[str, float]:
    shell = _shell_for(env)
    try:
        return image_sizes(shell)
    except CommandError as e:
        raise HTTPException(502, f"Listing images failed on {env.value}: {e}") from e
    finally:
        shell.close()


@router_metrics.get("/{env}/{pid}", response_model=MemoryStats)
async def get_memory(env: Environment, pid: int) -> MemoryStats:
    shell = _shell_for(env)
    try:
        stats = get_process_smaps_rollup(pid, shell.try_run)
    except ProcessInfoParseError as e:
        raise HTTPException(502, str(e)) from e
    finally:
        shell.close()

    if not stats:
        raise HTTPException(404, f"No smaps_rollup for pid {pid}, is it running?")
    return MemoryStats(pid=pid, stats_kb=stats)
