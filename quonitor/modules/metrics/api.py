from __future__ import annotations

from fastapi import APIRouter
from starlette.responses import Response

from quonitor.core.metrics import get_metrics

router = APIRouter(tags=["metrics"])


@router.get("/metrics", include_in_schema=False)
async def metrics() -> Response:
    metrics = get_metrics()
    return Response(
        content=metrics.render(),
        media_type=metrics.content_type,
        headers={"Cache-Control": "no-cache"},
    )
