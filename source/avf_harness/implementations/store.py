import json
import time
from redis.client import Redis
from models import SessionState, SessionRecord


class RedisStore:
    def __init__(
        self,
        url: str | None = None,
        namespace: str = "avfharness",
    ) -> None:
        if not url:
            return

        self.r: Redis = Redis.from_url(
            url,
            decode_responses=True,
        )
        self.ns: str = namespace
        self.ids_key: str = f"{self.ns}:sessions"

    # ---- Keys ----
    def _key(self, session_id: str) -> str:
        return f"{self.ns}:session:{session_id}"

    # ---- (de)Serialization ----
    def _to_dict(self, session: SessionRecord) -> dict[str, object]:
        return {
            "id": session.id,
            "state": session.state.value,
            "helper_flags": session.helper_flags,
            "server_flags": session.server_flags,
            "client_flags": session.client_flags,
            "mount_dir": session.mount_dir,
            "timeout_s": session.timeout_s,
            "error_reason": session.error_reason,
            "created_at": float(session.created_at),
            "updated_at": float(session.updated_at),
            "ready_at": session.ready_at,
        }

    def _from_dict(self, d: dict[str, object]) -> SessionRecord:
        def _opt_float(key: str) -> float | None:
            v = d.get(key)
            return None if v in (None, "") else float(str(v))

        error_reason = d.get("error_reason")
        return SessionRecord(
            id=str(d["id"]),
            state=SessionState(str(d["state"])),
            helper_flags=str(d.get("helper_flags") or ""),
            server_flags=str(d["server_flags"]),
            client_flags=str(d["client_flags"]),
            mount_dir=str(d["mount_dir"]),
            timeout_s=_opt_float("timeout_s"),
            error_reason=None if error_reason is None else str(error_reason),
            created_at=float(str(d["created_at"])),
            updated_at=float(str(d["updated_at"])),
            ready_at=_opt_float("ready_at"),
        )

    # ---- API ----
    def put(self, session: SessionRecord) -> None:
        session.updated_at = time.time()
        data = self._to_dict(session)
        p = self.r.pipeline()
        p.set(
            self._key(session.id),
            json.dumps(data, ensure_ascii=False, separators=(",", ":")),
        )
        p.sadd(self.ids_key, session.id)
        p.execute()

    def get(self, session_id: str) -> SessionRecord:
        s = self.r.get(self._key(session_id))
        if s is None:
            raise KeyError(session_id)
        # pyrefly: ignore  # bad-argument-type
        return self._from_dict(json.loads(s))

    def all(self) -> dict[str, SessionRecord]:
        ids = self.r.smembers(self.ids_key)
        if not ids:
            return {}
        p = self.r.pipeline()
        # pyrefly: ignore  # no-matching-overload
        ordered = sorted(ids)
        for i in ordered:
            p.get(self._key(i))
        vals = p.execute()
        out: dict[str, SessionRecord] = {}
        for i, s in zip(ordered, vals):
            if not s:
                continue
            try:
                out[i] = self._from_dict(json.loads(s))
            except Exception as e:
                print("Skipping unreadable session", i, e)
                continue
        return out

    def set_status(
        self,
        session: SessionRecord,
        status: SessionState,
        error_reason: str | None = None,
    ):
        session.state = status
        session.error_reason = error_reason
        self.put(session)

    def reconcile_all(self, live_ids: set[str] | None = None) -> int:
        """
        Supervisors only live in memory; after a restart any session still
        marked provisioning/running has lost its processes. Returns how many
        sessions were marked stopped.
        """
        live = live_ids or set()
        cnt = 0
        # pyrefly: ignore  # no-matching-overload
        for sid in list(self.r.smembers(self.ids_key)):
            try:
                session = self.get(sid)
            except KeyError:
                continue
            if sid in live:
                continue
            if session.state in (SessionState.provisioning, SessionState.running):
                self.set_status(
                    session,
                    SessionState.stopped,
                    error_reason="reconciled: supervisor not running",
                )
                cnt += 1
        return cnt
