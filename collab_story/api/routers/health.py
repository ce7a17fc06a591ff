"""
Health Check Endpoints

Liveness, store connectivity and in-process metrics.
"""

import time
from datetime import datetime, timezone
from typing import Dict, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from collab_story.api.deps import get_metrics, get_store
from collab_story.db.store import Store, StoreError
from collab_story.observability import InMemoryMetrics

router = APIRouter(tags=["health"])


class HealthResponse(BaseModel):
    """Basic health check response."""
    status: str
    timestamp: datetime


class StoreHealthResponse(BaseModel):
    """Store connectivity check response."""
    connected: bool
    latency_ms: Optional[float] = None
    error: Optional[str] = None


class MetricsResponse(BaseModel):
    counters: Dict[str, int]
    timers: Dict[str, Dict[str, float]]


@router.get("/health", response_model=HealthResponse)
def health_check():
    """
    Basic health check endpoint.

    Returns 200 OK if the API is running.
    Does not check the store.
    """
    return HealthResponse(status="ok", timestamp=datetime.now(timezone.utc))


@router.get("/health/store", response_model=StoreHealthResponse)
def store_health_check(store: Store = Depends(get_store)):
    """Verify the store is reachable and report round-trip latency."""
    try:
        start = time.time()
        store.ping()
        latency = (time.time() - start) * 1000  # Convert to ms
        return StoreHealthResponse(connected=True, latency_ms=round(latency, 2))
    except StoreError as e:
        return StoreHealthResponse(connected=False, error=str(e))


@router.get("/metrics", response_model=MetricsResponse)
def metrics(sink: InMemoryMetrics = Depends(get_metrics)):
    """Counters and timers recorded since process start."""
    return sink.snapshot()
