import json

import pytest

from implementations.store import RedisStore
from models import SessionRecord, SessionState


# ----------------------
# Fakes for Redis client
# ----------------------
class _FakePipeline:
    def __init__(self, backing):
        self._backing = backing
        self._ops: list[tuple[str, tuple]] = []

    def set(self, key, value):
        self._ops.append(("set", (key, value)))
        return self

    def sadd(self, key, member):
        self._ops.append(("sadd", (key, member)))
        return self

    def get(self, key):
        self._ops.append(("get", (key,)))
        return self

    def execute(self):
        out = []
        for op, args in self._ops:
            if op == "set":
                key, value = args
                self._backing._data[key] = value
                out.append(True)
            elif op == "sadd":
                key, member = args
                self._backing._sets.setdefault(key, set()).add(member)
                out.append(1)
            elif op == "get":
                key = args[0]
                out.append(self._backing._data.get(key))
        self._ops.clear()
        return out


class _FakeRedis:
    def __init__(self):
        self._data: dict[str, str] = {}
        self._sets: dict[str, set[str]] = {}

    def pipeline(self):
        return _FakePipeline(self)

    def get(self, key):
        return self._data.get(key)

    def smembers(self, key):
        return set(self._sets.get(key, set()))


# ----------------------
# Fixtures
# ----------------------
@pytest.fixture(autouse=True)
def patch_redis_client(monkeypatch):
    # RedisStore imports Redis class directly; patch it to provide our fake .from_url
    class _DummyRedisClass:
        @classmethod
        def from_url(cls, url, decode_responses=True):
            return _FakeRedis()

    monkeypatch.setattr("implementations.store.Redis", _DummyRedisClass)
    yield


def _make_session(id_: str = "s-1") -> SessionRecord:
    return SessionRecord(
        id=id_,
        state=SessionState.provisioning,
        helper_flags="--open-ro 3:input.4m",
        server_flags="--ro-fds 3",
        client_flags="--remote-ro-file-unverified 3",
        mount_dir="/data/local/tmp/mnt",
    )


# ----------------------
# Tests
# ----------------------
def test_put_get_roundtrip_json_types():
    store = RedisStore(url="redis://dummy/0", namespace="ns")

    session = _make_session("a1")
    store.put(session)

    raw = json.loads(store.r.get("ns:session:a1"))  # type: ignore[attr-defined]
    assert raw["state"] == "provisioning"
    assert raw["ready_at"] is None

    loaded = store.get("a1")
    assert loaded.id == "a1"
    assert loaded.state == SessionState.provisioning
    assert loaded.server_flags == "--ro-fds 3"
    assert loaded.timeout_s is None
    assert loaded.error_reason is None
    assert loaded.ready_at is None

    session.state = SessionState.running
    session.ready_at = 123.5
    session.timeout_s = 3
    store.put(session)

    loaded2 = store.get("a1")
    assert loaded2.state == SessionState.running
    assert isinstance(loaded2.ready_at, float) and loaded2.ready_at == 123.5
    assert loaded2.timeout_s == 3.0


def test_set_status_updates_state_and_updated_at():
    store = RedisStore(url="redis://dummy/0", namespace="ns")

    session = _make_session("b1")
    store.put(session)
    before = store.get("b1").updated_at

    store.set_status(session, SessionState.error, error_reason="Timed out")
    after = store.get("b1")

    assert after.state == SessionState.error
    assert after.error_reason == "Timed out"
    assert after.updated_at >= before


def test_get_missing_raises_keyerror():
    store = RedisStore(url="redis://dummy/0", namespace="ns")
    with pytest.raises(KeyError):
        _ = store.get("nope")


def test_all_skips_missing_and_corrupt_entries():
    store = RedisStore(url="redis://dummy/0", namespace="ns")
    store.put(_make_session("c1"))
    store.put(_make_session("c2"))

    p = store.r.pipeline()  # type: ignore[attr-defined]
    p.sadd(store.ids_key, "missing-id")
    p.set("ns:session:c3", "{not json")
    p.sadd(store.ids_key, "c3")
    p.execute()

    assert set(store.all().keys()) == {"c1", "c2"}


def test_reconcile_all_stops_orphaned_sessions():
    store = RedisStore(url="redis://dummy/0", namespace="ns")

    running = _make_session("d1")
    running.state = SessionState.running
    store.put(running)

    live = _make_session("d2")
    live.state = SessionState.running
    store.put(live)

    stopped = _make_session("d3")
    stopped.state = SessionState.stopped
    store.put(stopped)

    p = store.r.pipeline()  # type: ignore[attr-defined]
    p.sadd(store.ids_key, "missing-id")
    p.execute()

    assert store.reconcile_all(live_ids={"d2"}) == 1

    d1 = store.get("d1")
    assert d1.state == SessionState.stopped
    assert "reconciled" in (d1.error_reason or "")
    assert store.get("d2").state == SessionState.running
    assert store.get("d3").state == SessionState.stopped
