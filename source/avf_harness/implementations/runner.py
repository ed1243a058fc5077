from __future__ import annotations

import threading
import time
from typing import Callable

import settings
from models import SessionState, SessionRecord
from shell import CommandRunner, host_shell, guest_shell

from .supervisor import TransientServiceSupervisor


class SessionRunner:
    """
    Runs supervision sessions in the background and records their state.

    A stop that arrives while a session is still provisioning only flags it;
    the provisioning thread then tears down whatever it launched.
    """

    # pyrefly: ignore  # unknown-name
    def __init__(
        self,
        store: "RedisStore",
        node_name: str,
        host_factory: Callable[[], CommandRunner] = host_shell,
        guest_factory: Callable[[], CommandRunner] = guest_shell,
    ) -> None:
        self.node_name = node_name
        self.store = store
        self.host_factory = host_factory
        self.guest_factory = guest_factory
        self.supervisors: dict[str, TransientServiceSupervisor] = {}
        self._pending: dict[str, threading.Event] = {}
        self._lock = threading.Lock()

    @staticmethod
    def _release(supervisor: TransientServiceSupervisor, session_id: str) -> None:
        failed = supervisor.tear_down(session_id)
        if failed:
            print("Teardown finished with failures:", ", ".join(failed))
        if supervisor.guest is not None:
            supervisor.guest.close()

    def start(self, session: SessionRecord) -> None:
        cancel = threading.Event()
        with self._lock:
            self._pending[session.id] = cancel

        def _run():
            supervisor = None
            try:
                host = self.host_factory()
                guest = self.guest_factory()
                host.run("mkdir", "-p", settings.TEST_OUTPUT_DIR)
                guest.run_for_result("mkdir", "-p", session.mount_dir)

                supervisor = TransientServiceSupervisor(
                    host, guest, mount_dir=session.mount_dir
                )
                supervisor.start_server(session.helper_flags, session.server_flags)
                supervisor.start_client_with_retry(
                    session.client_flags, timeout=session.timeout_s
                )

                with self._lock:
                    self._pending.pop(session.id, None)
                    cancelled = cancel.is_set()
                    if not cancelled:
                        self.supervisors[session.id] = supervisor

                if cancelled:
                    print("Session stopped while provisioning", session.id)
                    self._release(supervisor, session.id)
                    self.store.set_status(session, SessionState.stopped)
                else:
                    session.ready_at = time.time()
                    self.store.set_status(session, SessionState.running)
            except Exception as e:  # pylint: disable=broad-except
                print("Session failed to start", session.id, e)
                with self._lock:
                    self._pending.pop(session.id, None)
                if supervisor is not None:
                    self._release(supervisor, session.id)
                if cancel.is_set():
                    self.store.set_status(session, SessionState.stopped)
                else:
                    self.store.set_status(
                        session, SessionState.error, error_reason=str(e)
                    )
            finally:
                self.store.put(session)

        self.store.put(session)
        threading.Thread(target=_run, daemon=True).start()

    def stop(self, session: SessionRecord) -> None:
        with self._lock:
            supervisor = self.supervisors.pop(session.id, None)
            pending = self._pending.get(session.id)
            if pending is not None:
                pending.set()

        if pending is not None:
            print("Stop requested while provisioning", session.id)
            return

        def _run():
            try:
                if supervisor is not None:
                    self._release(supervisor, session.id)
                self.store.set_status(session, SessionState.stopped)
            except Exception as e:  # pylint: disable=broad-except
                self.store.set_status(session, SessionState.error, error_reason=str(e))
            finally:
                self.store.put(session)

        threading.Thread(target=_run, daemon=True).start()
