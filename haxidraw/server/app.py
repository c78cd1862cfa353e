"""FastAPI application that exposes the machine controls to the browser editor."""
from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from typing import Any, Dict, Optional

from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware

from ..config import PlotterSettings
from ..device import PortInfo, SerialBackend, fixed_port
from ..errors import InvalidDrawing, InvalidTransform
from ..session import PlotterSession


def create_session(settings: Optional[PlotterSettings] = None, device: Optional[str] = None) -> PlotterSession:
    settings = settings or PlotterSettings.from_env()
    return PlotterSession(SerialBackend(settings, device=device), settings)


def create_app(session: Optional[PlotterSession] = None, *, watch: bool = True) -> FastAPI:
    session = session or create_session()

    @asynccontextmanager
    async def lifespan(_app: FastAPI):
        await session.start(watch=watch)
        yield
        await session.shutdown()

    app = FastAPI(title="Haxidraw Control Server", lifespan=lifespan)
    app.state.session = session
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.get("/api/health")
    def health() -> Dict[str, str]:
        return {"status": "ok"}

    @app.get("/api/status")
    async def status() -> Dict[str, Any]:
        ports = await asyncio.to_thread(session.backend.authorized_ports)
        return {
            **session.status().as_dict(),
            "viewport": session.viewport.ranges(),
            "ports": [p.as_dict() for p in ports],
        }

    @app.post("/api/connect")
    async def connect(payload: Dict[str, Any] | None = None) -> Dict[str, Any]:
        port = (payload or {}).get("port")
        selector = fixed_port(PortInfo(device=str(port))) if port else None
        ok = await session.connect(selector)
        return {"ok": ok, "status": session.status().as_dict()}

    @app.post("/api/disconnect")
    async def disconnect() -> Dict[str, Any]:
        await session.disconnect()
        return {"ok": True, "status": session.status().as_dict()}

    @app.post("/api/drawing/run")
    async def run_drawing(payload: Dict[str, Any]) -> Dict[str, Any]:
        try:
            handle = session.drive_on_machine(payload)
        except InvalidDrawing as exc:
            raise HTTPException(status_code=400, detail=str(exc)) from exc
        if handle is None:
            raise HTTPException(status_code=409, detail=session.last_error)
        return {"ok": True, "total": handle.total}

    @app.post("/api/drive/cancel")
    async def cancel_drive() -> Dict[str, Any]:
        return {"ok": session.cancel_drive()}

    @app.post("/api/viewport")
    async def set_viewport(payload: Dict[str, Any]) -> Dict[str, Any]:
        try:
            session.set_viewport(payload["scale_x"], payload["scale_y"])
        except KeyError as exc:
            raise HTTPException(status_code=400, detail="scale_x and scale_y are required") from exc
        except InvalidTransform as exc:
            raise HTTPException(status_code=400, detail=str(exc)) from exc
        return {"ok": True, "viewport": session.viewport.ranges()}

    @app.post("/api/filename")
    async def rename(payload: Dict[str, Any]) -> Dict[str, Any]:
        session.rename(payload.get("filename"))
        return {"ok": True, "filename": session.filename}

    return app


app = create_app()


__all__ = ["app", "create_app", "create_session"]
