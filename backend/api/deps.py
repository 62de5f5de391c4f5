"""FastAPI dependencies resolving the services owned by the application."""

from __future__ import annotations

from typing import Optional

from fastapi import Header, HTTPException, Request

from ..config import settings
from ..services.line_service import LineService
from ..services.refresh_service import RefreshService
from ..workers.scheduler import RefreshScheduler


def get_line_service(request: Request) -> LineService:
    return request.app.state.line_service


def get_refresh_service(request: Request) -> RefreshService:
    return request.app.state.refresh_service


def get_scheduler(request: Request) -> Optional[RefreshScheduler]:
    return getattr(request.app.state, "scheduler", None)


async def require_system_token(x_api_key: Optional[str] = Header(default=None)) -> None:
    token = settings.system_api_token.strip()
    if not token:
        return
    if x_api_key != token:
        raise HTTPException(status_code=401, detail="Invalid API key")
