from __future__ import annotations

import asyncio
import logging
import os

from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware

from core.config import QA_MODE, SESSION_CLEANUP_INTERVAL_SEC, SESSION_RETENTION_SEC
from interview_room.api.ws_interview import router as interview_ws_router
from interview_room.dependencies import DependencyProvider
from interview_room.errors import NotFoundError
from interview_room.orchestrator import InterviewOrchestrator
from interview_room.schemas import HealthResponse, InterviewStateResponse
from interview_room.system_metrics import get_metrics_snapshot

logger = logging.getLogger("interview_room.main")


def _get_allowed_origins() -> list[str]:
    raw = os.getenv("CORS_ALLOW_ORIGINS", "").strip()
    if not raw:
        return [
            "http://localhost:3000",
            "http://127.0.0.1:3000",
        ]
    return [item.strip() for item in raw.split(",") if item.strip()]


def create_app(orchestrator: InterviewOrchestrator | None = None) -> FastAPI:
    app = FastAPI(title="Interview Room")
    app.state.orchestrator = orchestrator or DependencyProvider().create_orchestrator()
    app.state.cleanup_task = None

    allowed_origins = _get_allowed_origins()
    app.add_middleware(
        CORSMiddleware,
        allow_origins=allowed_origins,
        allow_methods=["*"],
        allow_headers=["*"],
        allow_credentials=False,
    )

    @app.on_event("startup")
    async def startup_banner():
        if QA_MODE:
            logger.info("[SYSTEM] QA_MODE ENABLED: offline collaborators, in-memory persistence")
        logger.info("[SYSTEM] CORS allow_origins=%s", allowed_origins)
        logger.info(
            "[SYSTEM] session sweep interval_sec=%s retention_sec=%s",
            SESSION_CLEANUP_INTERVAL_SEC,
            SESSION_RETENTION_SEC,
        )

        async def _session_cleanup_loop():
            while True:
                await asyncio.sleep(SESSION_CLEANUP_INTERVAL_SEC)
                try:
                    removed = await app.state.orchestrator.sweep()
                except Exception:
                    logger.exception("[SYSTEM] session sweep failed")
                    continue
                if removed > 0:
                    logger.info("[SYSTEM] swept completed sessions=%s", removed)

        app.state.cleanup_task = asyncio.create_task(_session_cleanup_loop())

    @app.on_event("shutdown")
    async def shutdown_handler():
        task = app.state.cleanup_task
        if task is not None:
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
            finally:
                app.state.cleanup_task = None
        await app.state.orchestrator.shutdown()
        logger.info("[SYSTEM] shutdown complete")

    @app.get("/health", response_model=HealthResponse)
    async def health():
        return {"status": "ok", "sessions": len(app.state.orchestrator.registry)}

    @app.get("/metrics")
    async def metrics():
        return get_metrics_snapshot(extra={"sessions_registered": len(app.state.orchestrator.registry)})

    @app.get("/interviews/{interview_id}/state", response_model=InterviewStateResponse)
    async def interview_state(interview_id: str):
        try:
            return await app.state.orchestrator.snapshot(interview_id)
        except NotFoundError as exc:
            raise HTTPException(status_code=404, detail=exc.public_message)

    app.include_router(interview_ws_router)
    return app


app = create_app()
