from fastapi import APIRouter, Response

from app.outpost.core.metrics import metrics

router = APIRouter()


@router.get("/outpost/ops/metrics")
def get_metrics():
    snapshot = metrics.render()
    return Response(content=snapshot.content, media_type=snapshot.content_type)
