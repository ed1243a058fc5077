import threading

import settings
import models
from implementations.compilation import (
    CompilationTask,
    ComposdCompilationService,
    OdrefreshExitCode,
)
from shell import LocalShell
from conftest import FakeShell, ok, failed


class RecordingCallback:
    def __init__(self):
        self.events: list[str] = []

    def on_success(self):
        self.events.append("success")

    def on_failure(self):
        self.events.append("failure")


def test_test_compile_success_delivers_callback():
    host = FakeShell("host")
    cb = RecordingCallback()

    task = ComposdCompilationService(host, timeout=30).start_test_compile(cb)

    assert task.wait(2)
    assert cb.events == ["success"]
    assert task.state == models.TaskState.succeeded
    assert task.finished_at is not None
    assert host.calls == [f"{settings.COMPOSD_CMD_BIN} test-compile"]
    assert host.timeouts == [30]


def test_test_compile_failure_delivers_failure():
    host = FakeShell("host").when("test-compile", failed("", "compilation failed"))
    cb = RecordingCallback()

    task = ComposdCompilationService(host).start_test_compile(cb)

    assert task.wait(2)
    assert cb.events == ["failure"]
    assert task.state == models.TaskState.failed


def test_test_compile_transport_error_is_a_failure():
    host = FakeShell("host").when("test-compile", OSError("adb not found"))
    cb = RecordingCallback()

    task = ComposdCompilationService(host).start_test_compile(cb)

    assert task.wait(2)
    assert cb.events == ["failure"]


def test_cancel_suppresses_callback():
    release = threading.Event()
    finished = threading.Event()

    def _compile(command, timeout):
        release.wait(5)
        return ok(command)

    host = FakeShell("host").when("test-compile", _compile)
    cb = RecordingCallback()
    task = ComposdCompilationService(host).start_test_compile(cb)

    task.cancel()
    assert task.state == models.TaskState.cancelled
    assert task.cancelled

    original_finish = task._finish

    def _spy(ok_, callback):
        original_finish(ok_, callback)
        finished.set()

    task._finish = _spy
    release.set()
    assert finished.wait(2)
    assert cb.events == []
    assert task.state == models.TaskState.cancelled


def test_cancel_after_completion_keeps_result():
    task = CompilationTask("t1")
    cb = RecordingCallback()
    task._finish(True, cb)
    task.cancel()
    assert task.state == models.TaskState.succeeded
    assert cb.events == ["success"]


def test_start_test_odrefresh_returns_status_byte():
    host = FakeShell("host").when(
        settings.ODREFRESH_BIN,
        models.CommandResult(
            command="odrefresh",
            exit_code=OdrefreshExitCode.COMPILATION_SUCCESS,
            status=models.CommandStatus.failed,
        ),
    )
    status = ComposdCompilationService(host, timeout=60).start_test_odrefresh()

    assert status == 80
    assert host.calls == [
        f"{settings.ODREFRESH_BIN} --dalvik-cache={settings.TEST_ARTIFACTS_DIR} --compile"
    ]


def test_start_test_odrefresh_truncates_to_byte():
    host = FakeShell("host").when(settings.ODREFRESH_BIN, failed("", code=-1))
    assert ComposdCompilationService(host).start_test_odrefresh() == 255


def test_start_test_odrefresh_timeout_is_failure():
    host = FakeShell("host").when(
        settings.ODREFRESH_BIN,
        models.CommandResult(
            command="odrefresh",
            exit_code=None,
            status=models.CommandStatus.timed_out,
        ),
    )
    assert (
        ComposdCompilationService(host).start_test_odrefresh()
        == OdrefreshExitCode.COMPILATION_FAILED
    )


def test_start_test_odrefresh_killed_locally_is_failure(monkeypatch):
    # The comment swallows the odrefresh arguments.
    monkeypatch.setattr(settings, "ODREFRESH_BIN", "sleep 5 #")

    status = ComposdCompilationService(LocalShell(), timeout=0.3).start_test_odrefresh()

    assert status == OdrefreshExitCode.COMPILATION_FAILED


def test_start_test_odrefresh_timeout_with_stale_exit_code_is_failure():
    host = FakeShell("host").when(
        settings.ODREFRESH_BIN,
        models.CommandResult(
            command="odrefresh",
            exit_code=0,
            status=models.CommandStatus.timed_out,
        ),
    )
    assert (
        ComposdCompilationService(host).start_test_odrefresh()
        == OdrefreshExitCode.COMPILATION_FAILED
    )
