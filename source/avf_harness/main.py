from __future__ import annotations

import os
import uvicorn
from fastapi import FastAPI
from fastapi.responses import JSONResponse

import settings
from routes import sessions_router, router_metrics, compilation_router
from routes import sessions


# ===== FastAPI app =====
app = FastAPI(title="avf-harness", version="0.1.0")


@app.get("/health")
async def health():
    return JSONResponse({"ok": "True"})


app.include_router(sessions_router)
app.include_router(router_metrics)
app.include_router(compilation_router)

# ===== Entrypoint =====
if __name__ == "__main__":
    os.makedirs(settings.ARTIFACTS_DIR, exist_ok=True)
    print("Reconciled sessions:", sessions.store.reconcile_all())
    uvicorn.run("main:app", host="0.0.0.0", port=8080, reload=False)
