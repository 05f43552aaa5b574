from datetime import datetime
from fastapi import APIRouter, Response

from site_allocation.core.prometheus_metrics import prometheus_collector

router = APIRouter(prefix="/metrics", tags=["metrics"])


@router.get("/health")
async def metrics_health():
    """Health check for metrics system"""
    return {
        "status": "healthy",
        "metrics_system": "operational",
        "timestamp": datetime.now().isoformat()
    }


@router.get("/prometheus")  # Public endpoint for Prometheus scraping
async def prometheus_metrics():
    """Prometheus metrics endpoint for scraping"""
    return Response(content=prometheus_collector.get_prometheus_metrics(), media_type="text/plain")
