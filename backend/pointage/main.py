"""
Point d'entrée principal de l'API Pointage RH.
Démarrage : uvicorn pointage.main:app --reload
"""

import asyncio
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

import pointage.models  # noqa: F401  enregistre tous les modèles dans Base.metadata avant les routers
from pointage.config import settings
from pointage.database import SessionLocal
from pointage.routers import attendance, employees, scanner
from pointage.scheduler import start_scheduler, stop_scheduler
from pointage.services.badge_reader import BadgeReaderClient
from pointage.services.scan_service import build_scan_processor

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Cycle de vie de l'application :
    crée le ScanProcessor, démarre le scheduler et la tâche du lecteur RFID.
    """
    processor = build_scan_processor(SessionLocal)
    app.state.scan_processor = processor
    start_scheduler(processor)

    reader_task = None
    if settings.RFID_READER_ENABLED:
        reader = BadgeReaderClient(
            settings.RFID_READER_URL,
            on_badge=processor.handle_scan,
            on_connection_change=processor.set_connection,
            reconnect_delay=settings.RFID_RECONNECT_DELAY_SECONDS,
        )
        reader_task = asyncio.create_task(reader.run(), name="rfid-reader")

    yield

    if reader_task is not None:
        reader_task.cancel()
        try:
            await reader_task
        except asyncio.CancelledError:
            pass
    stop_scheduler()


app = FastAPI(
    title="Pointage RH API",
    description="API de pointage par badge RFID (entrées / sorties des employés)",
    version="0.1.0",
    docs_url="/api/docs",
    redoc_url="/api/redoc",
    openapi_url="/api/openapi.json",
    lifespan=lifespan,
)

# CORS : autorise le dashboard servi en local (à restreindre en production).
app.add_middleware(
    CORSMiddleware,
    allow_origins=[],
    allow_origin_regex=r"https?://(localhost|127\.0\.0\.1)(:\d+)?",
    allow_credentials=False,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS", "PATCH"],
    allow_headers=["Content-Type", "Authorization", "Accept"],
)


app.include_router(employees.router)
app.include_router(attendance.router)
app.include_router(scanner.router)


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """
    Intercepte toutes les exceptions non gérées pour que la réponse 500
    passe par CORSMiddleware (headers CORS présents côté navigateur).
    """
    logger.error("Exception non gérée : %s", exc, exc_info=True)
    return JSONResponse(
        status_code=500,
        content={"detail": "Une erreur interne est survenue."},
    )


@app.get("/api/health", tags=["Santé"])
def health_check():
    """Vérifie que l'API est opérationnelle."""
    return {"status": "ok", "service": "Pointage RH API", "version": "0.1.0"}
