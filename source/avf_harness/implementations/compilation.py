from __future__ import annotations

import threading
import time
import uuid
from enum import IntEnum
from typing import Protocol

import settings
from models import CommandStatus, TaskState
from shell import CommandRunner


class OdrefreshExitCode(IntEnum):
    OKAY = 0
    COMPILATION_SUCCESS = 80
    COMPILATION_FAILED = 81
    CLEANUP_FAILED = 82


class CompilationTaskCallback(Protocol):
    def on_success(self) -> None: ...

    def on_failure(self) -> None: ...


class CompilationTask:
    """Handle to a running compilation; cancel() suppresses the callback."""

    def __init__(self, task_id: str | None = None) -> None:
        self.id = task_id or str(uuid.uuid4())
        self.state = TaskState.running
        self.started_at = time.time()
        self.finished_at: float | None = None
        self._lock = threading.Lock()
        self._done = threading.Event()

    def cancel(self) -> None:
        with self._lock:
            if self.state == TaskState.running:
                self.state = TaskState.cancelled
                self.finished_at = time.time()
        self._done.set()

    @property
    def cancelled(self) -> bool:
        return self.state == TaskState.cancelled

    def wait(self, timeout: float | None = None) -> bool:
        return self._done.wait(timeout)

    def _finish(self, ok: bool, callback: CompilationTaskCallback) -> None:
        with self._lock:
            if self.state != TaskState.running:
                print(f"Compilation task {self.id} was cancelled, dropping result")
                return
            self.state = TaskState.succeeded if ok else TaskState.failed
            self.finished_at = time.time()
            # Delivered under the lock so a concurrent cancel() cannot race it.
            try:
                if ok:
                    callback.on_success()
                else:
                    callback.on_failure()
            finally:
                self._done.set()


class IsolatedCompilationService:
    """Triggers for test compilations in the isolated compilation VM."""

    def start_test_compile(self, callback: CompilationTaskCallback) -> CompilationTask:
        raise NotImplementedError

    def start_test_odrefresh(self) -> int:
        raise NotImplementedError


class ComposdCompilationService(IsolatedCompilationService):
    """Backed by `composd_cmd` and `odrefresh` run through the host shell."""

    def __init__(self, shell: CommandRunner, timeout: float | None = None) -> None:
        self.shell = shell
        self.timeout = timeout or settings.ODREFRESH_TIMEOUT_S

    def start_test_compile(self, callback: CompilationTaskCallback) -> CompilationTask:
        task = CompilationTask()

        def _run():
            ok = False
            try:
                start = time.time()
                result = self.shell.run_with_timeout(
                    self.timeout, settings.COMPOSD_CMD_BIN, "test-compile"
                )
                ok = result.ok
                print(
                    f"CompOS test compilation finished in {(time.time() - start) * 1000:.0f}ms:",
                    result,
                )
            except Exception as e:  # pylint: disable=broad-except
                print("Error running test compilation", e)
            finally:
                task._finish(ok, callback)

        threading.Thread(target=_run, daemon=True).start()
        return task

    def start_test_odrefresh(self) -> int:
        result = self.shell.run_with_timeout(
            self.timeout,
            settings.ODREFRESH_BIN,
            f"--dalvik-cache={settings.TEST_ARTIFACTS_DIR}",
            "--compile",
        )
        print("odrefresh finished:", result)
        if result.exit_code is None or result.status in (
            CommandStatus.timed_out,
            CommandStatus.exception,
        ):
            return OdrefreshExitCode.COMPILATION_FAILED.value
        return result.exit_code & 0xFF
