# conftest.py
import os
import sys
import time
import pathlib
import threading
from typing import Callable, Tuple

import pytest
from fastapi.testclient import TestClient

# ----------------------
# Path setup: ensure the avf_harness root is importable as top-level
# so imports like `import settings` resolve to avf_harness/settings.py
# ----------------------
_THIS_DIR = pathlib.Path(__file__).resolve().parent
_PKG_ROOT = _THIS_DIR.parent  # avf_harness/
if str(_PKG_ROOT) not in sys.path:
    sys.path.insert(0, str(_PKG_ROOT))

# After adjusting sys.path, import project modules
import settings  # noqa: E402
import models  # noqa: E402
from shell import CommandRunner  # noqa: E402
from routes import sessions  # noqa: E402
import main  # noqa: E402


# ----------------------
# Test Utilities / Fakes
# ----------------------
Handler = Callable[[str, "float | None"], models.CommandResult]


def ok(command: str = "", stdout: str = "") -> models.CommandResult:
    return models.CommandResult(command=command, exit_code=0, stdout=stdout)


def failed(command: str = "", stderr: str = "", code: int = 1) -> models.CommandResult:
    return models.CommandResult(
        command=command,
        exit_code=code,
        stderr=stderr,
        status=models.CommandStatus.failed,
    )


class FakeShell(CommandRunner):
    """
    Scripted CommandRunner. Responses are matched by substring, most recently
    registered first; unmatched commands succeed with empty output.
    """

    def __init__(self, name: str = "fake"):
        self.name = name
        self.calls: list[str] = []
        self.timeouts: list[float | None] = []
        self._responses: list[tuple[str, object]] = []
        self.pulled: list[tuple[str, str]] = []
        self.pull_error: Exception | None = None
        self.root = True
        self.closed = False

    def when(self, fragment: str, response) -> "FakeShell":
        """response: CommandResult, Exception, or callable(command, timeout)."""
        self._responses.insert(0, (fragment, response))
        return self

    def _execute(self, command: str, timeout: float | None) -> models.CommandResult:
        self.calls.append(command)
        self.timeouts.append(timeout)
        for fragment, resp in self._responses:
            if fragment not in command:
                continue
            if isinstance(resp, Exception):
                raise resp
            if callable(resp):
                return resp(command, timeout)
            return resp
        return ok(command)

    def called(self, fragment: str) -> int:
        return sum(1 for c in self.calls if fragment in c)

    def enable_root(self) -> bool:
        return self.root

    def pull(self, remote_path: str, local_path: str) -> None:
        if self.pull_error is not None:
            raise self.pull_error
        self.pulled.append((remote_path, local_path))
        with open(local_path, "w", encoding="utf-8") as f:
            f.write("log line\n")

    def close(self) -> None:
        self.closed = True


class FakeGuest(FakeShell):
    """
    Guest VM where authfs fails until `ready_after` launches, then mounts and
    keeps running until `killall authfs`.
    """

    def __init__(self, ready_after: int = 3):
        super().__init__("guest")
        self.ready_after = ready_after
        self.launches = 0
        self.mounted = False
        self.killed = threading.Event()
        self.when(settings.AUTHFS_BIN, self._authfs)
        self.when("killall authfs", self._killall)
        self.when("stat -f -c", self._statfs)

    def _authfs(self, command, timeout):
        self.launches += 1
        if self.launches < self.ready_after:
            return failed(command, "Error: Invalid raw AIBinder")
        self.mounted = True
        self.killed.wait(5)
        self.mounted = False
        return failed(command, "Terminated", code=143)

    def _killall(self, command, timeout):
        self.killed.set()
        return ok(command)

    def _statfs(self, command, timeout):
        if self.mounted:
            return ok(command, settings.FUSE_SUPER_MAGIC_HEX + "\n")
        return ok(command, "f2f52010\n")


class InMemoryStore:
    def __init__(self):
        self._data: dict[str, models.SessionRecord] = {}

    def put(self, session: models.SessionRecord) -> None:
        session.updated_at = time.time()
        self._data[session.id] = session

    def get(self, session_id: str) -> models.SessionRecord:
        if session_id not in self._data:
            raise KeyError(session_id)
        return self._data[session_id]

    def all(self) -> dict[str, models.SessionRecord]:
        return dict(self._data)

    def set_status(
        self,
        session: models.SessionRecord,
        status: models.SessionState,
        error_reason: str | None = None,
    ):
        session.state = status
        session.error_reason = error_reason
        self.put(session)


class FakeRunner:
    def __init__(self, store: InMemoryStore, node_name: str):
        self.store = store
        self.node_name = node_name
        self.stopped: list[str] = []

    def start(self, session: models.SessionRecord) -> None:
        session.ready_at = time.time()
        self.store.set_status(session, models.SessionState.running)

    def stop(self, session: models.SessionRecord) -> None:
        self.stopped.append(session.id)
        self.store.set_status(session, models.SessionState.stopped)


def wait_until(predicate, timeout=2.0, interval=0.01):
    end = time.time() + timeout
    while time.time() < end:
        if predicate():
            return True
        time.sleep(interval)
    return False


# ----------------------
# Shared Fixtures
# ----------------------
@pytest.fixture(autouse=True)
def patch_settings(tmp_path, monkeypatch):
    """
    Fast polling and a temp artifacts dir for all tests.
    """
    monkeypatch.setattr(settings, "AUTH_TOKEN", "testtoken", raising=False)
    monkeypatch.setattr(settings, "POLL_INTERVAL_S", 0.01, raising=False)
    monkeypatch.setattr(settings, "RELAUNCH_BACKOFF_S", 0.001, raising=False)
    artifacts = tmp_path / "artifacts"
    os.makedirs(artifacts, exist_ok=True)
    monkeypatch.setattr(settings, "ARTIFACTS_DIR", str(artifacts), raising=False)
    return str(artifacts)


@pytest.fixture
def auth_header():
    return {"Authorization": "Bearer testtoken"}


@pytest.fixture
def host() -> FakeShell:
    return FakeShell("host")


@pytest.fixture
def guest() -> FakeGuest:
    return FakeGuest()


@pytest.fixture
def store_and_runner(monkeypatch) -> Tuple[InMemoryStore, FakeRunner]:
    """
    Provide an in-memory store and a fake runner patched into the sessions routes.
    """
    test_store = InMemoryStore()
    test_runner = FakeRunner(test_store, "test-node")

    monkeypatch.setattr(sessions, "store", test_store, raising=False)
    monkeypatch.setattr(sessions, "runner", test_runner, raising=False)

    return test_store, test_runner


@pytest.fixture
def client(store_and_runner) -> TestClient:
    return TestClient(main.app)
