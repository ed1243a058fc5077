from __future__ import annotations

from fastapi import HTTPException, APIRouter, Depends

from security import verify_bearer_token
from models import CompilationTaskOut, OdrefreshOut
from implementations import (
    CompilationTask,
    ComposdCompilationService,
    IsolatedCompilationService,
)
from shell import host_shell


compilation_router = APIRouter(
    prefix="/compilation", dependencies=[Depends(verify_bearer_token)]
)

tasks: dict[str, CompilationTask] = {}


def get_service() -> IsolatedCompilationService:
    return ComposdCompilationService(host_shell())


class _PrintingCallback:
    def __init__(self, task_ref: dict[str, str]) -> None:
        self.task_ref = task_ref

    def on_success(self) -> None:
        print("Test compilation succeeded", self.task_ref.get("id"))

    def on_failure(self) -> None:
        print("Test compilation failed", self.task_ref.get("id"))


def _task_out(task: CompilationTask) -> CompilationTaskOut:
    return CompilationTaskOut(
        id=task.id,
        state=task.state,
        started_at=task.started_at,
        finished_at=task.finished_at,
    )


@compilation_router.post(
    "/test-compile", response_model=CompilationTaskOut, status_code=202
)
async def start_test_compile() -> CompilationTaskOut:
    ref: dict[str, str] = {}
    task = get_service().start_test_compile(_PrintingCallback(ref))
    ref["id"] = task.id
    tasks[task.id] = task
    return _task_out(task)


@compilation_router.get("/{task_id}", response_model=CompilationTaskOut)
async def get_task(task_id: str) -> CompilationTaskOut:
    task = tasks.get(task_id)
    if task is None:
        raise HTTPException(404, "Task not found")
    return _task_out(task)


@compilation_router.delete("/{task_id}", response_model=CompilationTaskOut)
async def cancel_task(task_id: str) -> CompilationTaskOut:
    task = tasks.get(task_id)
    if task is None:
        raise HTTPException(404, "Task not found")
    task.cancel()
    return _task_out(task)


@compilation_router.post("/odrefresh", response_model=OdrefreshOut)
async def start_test_odrefresh() -> OdrefreshOut:
    return OdrefreshOut(status=get_service().start_test_odrefresh())
