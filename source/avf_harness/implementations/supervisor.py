from __future__ import annotations

import threading
from concurrent.futures import Future, ThreadPoolExecutor
from contextlib import contextmanager
from typing import Callable, Iterable, Iterator

import settings
from models import CommandResult, Environment, ProcessState, SupervisedProcess
from shell import CommandRunner, guest_shell, host_shell, wait_for

from .log_archiver import archive_log_then_delete


def fd_server_flags(input_fds: Iterable[int] = (), output_fds: Iterable[int] = ()) -> str:
    args: list[str] = []
    for fd in input_fds:
        args += ["--ro-fds", str(fd)]
    for fd in output_fds:
        args += ["--rw-fds", str(fd)]
    return " ".join(args)


class TransientServiceSupervisor:
    """
    Brings up fd_server on the host and authfs on the guest.

    authfs exits early while fd_server is not listening yet, so it is relaunched
    in a loop on a worker until the mount point shows up as FUSE.
    """

    def __init__(
        self,
        host: CommandRunner,
        guest: CommandRunner | None,
        mount_dir: str | None = None,
        poll_interval: float | None = None,
        workers: int | None = None,
    ) -> None:
        self.host = host
        self.guest = guest
        self.mount_dir = mount_dir or settings.MOUNT_DIR
        self.poll_interval = (
            settings.POLL_INTERVAL_S if poll_interval is None else poll_interval
        )
        self._pool = ThreadPoolExecutor(
            max_workers=settings.SUPERVISOR_WORKERS if workers is None else workers,
            thread_name_prefix="supervisor",
        )
        self._stop_client = threading.Event()
        self.server: SupervisedProcess | None = None
        self.client: SupervisedProcess | None = None
        self.futures: list[Future] = []

    # ---- Launching ----
    @staticmethod
    def _report_failure(future: Future) -> None:
        if future.cancelled():
            return
        e = future.exception()
        if e is not None:
            print("Supervised service worker failed:", repr(e))

    def _submit(self, fn, *args) -> Future:
        future = self._pool.submit(fn, *args)
        future.add_done_callback(self._report_failure)
        self.futures.append(future)
        return future

    @staticmethod
    def _run_service(shell: CommandRunner, proc: SupervisedProcess) -> CommandResult:
        # Blocks for the lifetime of the remote process.
        print(f"Starting {proc.name}")
        proc.state = ProcessState.running
        proc.launches += 1
        try:
            result = shell.run_for_result(proc.command)
        except Exception as e:
            print(f"Error running {proc.name}", e)
            proc.state = ProcessState.stopped
            raise
        proc.last_result = result
        proc.state = ProcessState.stopped
        print(f"{proc.name} has stopped: {result}")
        return result

    def start_server(self, helper_flags: str, server_flags: str) -> SupervisedProcess:
        """Launch fd_server through open_then_run without waiting for it."""
        cmd = (
            f"cd {settings.TEST_DIR} && {settings.OPEN_THEN_RUN_BIN} {helper_flags}"
            f" -- {settings.FD_SERVER_BIN} {server_flags}"
        )
        proc = SupervisedProcess(
            name="fd_server", command=cmd, environment=Environment.host
        )
        self.server = proc
        self._submit(self._run_service, self.host, proc)
        return proc

    def _relaunch_loop(
        self, shell: CommandRunner, proc: SupervisedProcess, stop: threading.Event
    ) -> None:
        while not stop.is_set():
            self._run_service(shell, proc)
            stop.wait(settings.RELAUNCH_BACKOFF_S)

    def start_client_with_retry(
        self,
        flags: str,
        readiness_check: Callable[[], bool] | None = None,
        timeout: float | None = None,
    ) -> SupervisedProcess:
        """
        Relaunch authfs until readiness_check passes, or raise TimeoutError.

        On success the mounted instance keeps running; only further relaunches
        stop. On timeout the in-flight attempt is killed so the worker can exit.
        """
        if self.guest is None:
            raise RuntimeError("Guest VM is not available")
        guest = self.guest

        cmd = (
            f"{settings.AUTHFS_BIN} {self.mount_dir} {flags}"
            f" --cid {settings.VMADDR_CID_HOST}"
        )
        proc = SupervisedProcess(name="authfs", command=cmd, environment=Environment.guest)
        self.client = proc

        stop = threading.Event()
        self._stop_client = stop
        self._submit(self._relaunch_loop, guest, proc, stop)

        check = readiness_check or (lambda: self.is_mounted(self.mount_dir))
        wait_s = settings.AUTHFS_INIT_TIMEOUT_S if timeout is None else timeout
        try:
            wait_for(check, wait_s, self.poll_interval, what=f"authfs on {self.mount_dir}")
        except TimeoutError:
            stop.set()
            guest.try_run("killall", proc.name)
            raise
        finally:
            stop.set()
        return proc

    # ---- Readiness ----
    def is_mounted(self, path: str) -> bool:
        if self.guest is None:
            return False
        fs_type = self.guest.try_run(f"stat -f -c '%t' {path}")
        return fs_type == settings.FUSE_SUPER_MAGIC_HEX

    # ---- Teardown ----
    def _archive_recent_log(self, test_name: str) -> None:
        recent = settings.TEST_OUTPUT_DIR + "/vm_recent.log"
        self.host.try_run(
            f"tail -n {settings.VM_LOG_TAIL_LINES} {settings.LOG_PATH} > {recent}"
        )
        archive_log_then_delete(self.host, recent, f"vm_recent.log-{test_name}")

    def tear_down(self, test_name: str = "test") -> list[str]:
        """
        Run every cleanup step even if earlier ones fail.
        Returns the names of the steps that failed.
        """
        steps: list[tuple[str, Callable[[], object]]] = []
        if self.guest is not None:
            guest = self.guest
            steps.append(("kill authfs", lambda: guest.try_run("killall", "authfs")))
            steps.append(("umount", lambda: guest.try_run("umount", self.mount_dir)))
        steps += [
            ("kill fd_server", lambda: self.host.try_run("killall", "fd_server")),
            ("archive log", lambda: self._archive_recent_log(test_name)),
            ("remove output", lambda: self.host.run("rm", "-rf", settings.TEST_OUTPUT_DIR)),
        ]

        self._stop_client.set()
        failed: list[str] = []
        for name, step in steps:
            try:
                step()
            except Exception as e:  # pylint: disable=broad-except
                print(f"Teardown step '{name}' failed", e)
                failed.append(name)

        self._pool.shutdown(wait=False, cancel_futures=True)
        return failed


class HarnessContext:
    """
    Shared host/guest handles for a group of tests, with explicit lifecycle
    instead of class-level state.
    """

    def __init__(
        self, host: CommandRunner | None = None, guest: CommandRunner | None = None
    ) -> None:
        self.host = host or host_shell()
        self.guest = guest

    def set_up_class(self) -> None:
        if self.guest is None:
            self.guest = guest_shell()
        self.guest.run_for_result("mkdir", "-p", settings.MOUNT_DIR)
        # authfs needs root to open /dev/fuse and mount.
        if not self.guest.enable_root():
            raise RuntimeError("Could not enable root on the guest")

    def tear_down_class(self) -> None:
        if self.guest is not None:
            print("Shutting down shared guest handle")
            self.guest.close()
            self.guest = None
        self.host.close()

    def set_up_test(self) -> None:
        self.host.run("mkdir", "-p", settings.TEST_OUTPUT_DIR)

    @contextmanager
    def session(self, test_name: str) -> Iterator[TransientServiceSupervisor]:
        self.set_up_test()
        supervisor = TransientServiceSupervisor(self.host, self.guest)
        try:
            yield supervisor
        finally:
            supervisor.tear_down(test_name)

    def __enter__(self) -> "HarnessContext":
        self.set_up_class()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.tear_down_class()
