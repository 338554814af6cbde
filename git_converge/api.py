from __future__ import annotations

from typing import Any

from fastapi import FastAPI, HTTPException

from . import __version__
from .models import StatusResponse
from .service import ReconcileService


def create_app(service: ReconcileService) -> FastAPI:
    app = FastAPI(title="git-converge", version=__version__)

    @app.get("/health")
    async def health() -> dict[str, str]:
        return {"status": "ok"}

    @app.get("/status", response_model=StatusResponse)
    async def status() -> StatusResponse:
        return service.status

    @app.post("/reconcile", response_model=StatusResponse)
    async def reconcile(body: dict[str, Any] | None = None) -> StatusResponse:
        payload = body or {}
        reason = payload.get("reason", "manual")
        try:
            return await service.trigger(reason, payload.get("path"))
        except KeyError as exc:
            raise HTTPException(status_code=404, detail=f"Unknown resource {exc.args[0]}") from exc

    @app.get("/config")
    async def config() -> dict[str, Any]:
        return service.public_config()

    return app
