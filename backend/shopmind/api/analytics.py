"""
Analytics API endpoints - engagement statistics and data export.
"""

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.responses import Response

from ..core.exceptions import MissingIdentityError
from ..models import Analytics, IdentityToken
from ..services import AnalyticsEngine, ExportService
from ..utils.auth import get_optional_identity
from .dependencies import get_analytics_engine, get_export_service

router = APIRouter(prefix="/analytics", tags=["analytics"])


def _unauthorized(error: MissingIdentityError) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=str(error),
        headers={"WWW-Authenticate": "Bearer"},
    )


@router.get("", response_model=Analytics)
async def get_analytics(
    token: Optional[IdentityToken] = Depends(get_optional_identity),
    engine: AnalyticsEngine = Depends(get_analytics_engine),
):
    """
    Compute analytics over every stored session.

    Returns:
        Analytics: Session counts, popular terms/categories and engagement
    """
    try:
        return await engine.compute(token.identity if token else None)
    except MissingIdentityError as e:
        raise _unauthorized(e)


@router.get("/export")
async def export_chat_data(
    token: Optional[IdentityToken] = Depends(get_optional_identity),
    export_service: ExportService = Depends(get_export_service),
):
    """Download all sessions plus analytics as a JSON attachment."""
    try:
        artifact = await export_service.export_snapshot(token.identity if token else None)
    except MissingIdentityError as e:
        raise _unauthorized(e)

    return Response(
        content=artifact.content,
        media_type=artifact.media_type,
        headers={"Content-Disposition": f'attachment; filename="{artifact.filename}"'},
    )
