from __future__ import annotations

import uuid

from fastapi import HTTPException, Depends, APIRouter

import settings
from models import SessionState, SessionCreate, SessionOut, SessionRecord
from implementations import RedisStore, SessionRunner
from security import verify_bearer_token


store = RedisStore(settings.REDIS_URL, settings.REDIS_PREFIX)
runner = SessionRunner(store, settings.NODE_NAME)

sessions_router = APIRouter(
    prefix="/sessions", dependencies=[Depends(verify_bearer_token)]
)

_ACTIVE_STATES = (SessionState.provisioning, SessionState.running)


# ---- REST Endpoints ----
@sessions_router.post("/", response_model=SessionOut, status_code=201)
async def create_session(req: SessionCreate) -> SessionOut:
    # Sessions share the mount point and output dir, and teardown kills by name.
    active = [s for s in store.all().values() if s.state in _ACTIVE_STATES]
    if active:
        raise HTTPException(
            409, f"Session {active[0].id} is still {active[0].state.value}"
        )
    session = SessionRecord(
        id=str(uuid.uuid4()),
        state=SessionState.provisioning,
        helper_flags=req.helper_flags,
        server_flags=req.server_flags,
        client_flags=req.client_flags,
        mount_dir=settings.MOUNT_DIR,
        timeout_s=req.timeout_s,
    )
    store.put(session)
    runner.start(session)
    return SessionOut.from_record(session, runner.node_name)


@sessions_router.get("/", response_model=list[SessionOut])
async def list_sessions() -> list[SessionOut]:
    return [SessionOut.from_record(s, runner.node_name) for s in store.all().values()]


@sessions_router.get("/{session_id}", response_model=SessionOut)
async def get_session(session_id: str) -> SessionOut:
    try:
        session: "SessionRecord" = store.get(session_id)
    except KeyError as e:
        raise HTTPException(404, "Session not found") from e
    return SessionOut.from_record(session, runner.node_name)


@sessions_router.delete("/{session_id}", response_model=SessionOut)
async def delete_session(session_id: str) -> SessionOut:
    try:
        session: "SessionRecord" = store.get(session_id)
    except KeyError as e:
        raise HTTPException(404, "Session not found") from e
    runner.stop(session)
    return SessionOut.from_record(session, runner.node_name)
