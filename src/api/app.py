"""API HTTP del emparejamiento.

- `GET /?number=...` → `{"code": "ABCD-EFGH"}`.
- Errores: `{"message": ...}` con 418 (falta número), 400 (inválido) o 503.
"""

from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import APIRouter, FastAPI, Query, Request
from fastapi.responses import JSONResponse

from core.errors import PairlinkError
from core.logging import get_logger
from core.services.lifecycle import install_exception_handler
from core.services.pairing import PairingService

logger = get_logger(__name__)

router = APIRouter()


def _service(request: Request) -> PairingService:
    return request.app.state.pairing_service


@router.get("/")
async def pair(request: Request, number: str | None = Query(default=None)) -> dict[str, str]:
    code = await _service(request).begin_pairing(number)
    return {"code": code}


@router.get("/health")
async def health() -> dict[str, str]:
    return {"status": "ok"}


async def _pairlink_error_handler(request: Request, exc: PairlinkError) -> JSONResponse:
    if exc.http_status >= 500:
        logger.warning("Pairing request failed: %s", exc)
    return JSONResponse(status_code=exc.http_status, content={"message": str(exc)})


def create_app(service: PairingService) -> FastAPI:
    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        install_exception_handler(asyncio.get_running_loop())
        yield
        await service.aclose()

    app = FastAPI(title="pairlink", lifespan=lifespan)
    app.state.pairing_service = service
    app.include_router(router)
    app.add_exception_handler(PairlinkError, _pairlink_error_handler)
    return app
