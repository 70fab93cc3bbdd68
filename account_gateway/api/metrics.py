"""Ingestion endpoint for metrics reported by the web frontend."""

import math
import re
from typing import Dict, Optional

import structlog
from fastapi import APIRouter
from fastapi.responses import JSONResponse

from account_gateway.models.api_models import FrontendMetricRequest
from account_gateway.observability import record_frontend_metric

logger = structlog.get_logger()
router = APIRouter(prefix="/api/metrics", tags=["metrics"])

METRIC_NAME_PATTERN = re.compile(r"[a-zA-Z0-9_\-]{1,64}")
ALLOWED_TAG_KEYS = ("path", "source")
DEFAULT_TAGS = {"path": "unknown", "source": "web"}
MAX_TAG_LENGTH = 64


def sanitize_tags(incoming: Optional[Dict[str, Optional[str]]]) -> Dict[str, str]:
    """Keep only known tag keys, trimmed and truncated, falling back to defaults."""
    tags = dict(DEFAULT_TAGS)
    if not incoming:
        return tags

    for key in ALLOWED_TAG_KEYS:
        raw = incoming.get(key)
        if raw is None or not raw.strip():
            continue
        tags[key] = raw.strip()[:MAX_TAG_LENGTH]
    return tags


def _bad_request(message: str) -> JSONResponse:
    return JSONResponse(status_code=400, content={"error": True, "message": message})


@router.post("/frontend", status_code=202)
async def ingest_frontend_metric(request: FrontendMetricRequest):
    """Record one frontend metric sample as a counter increment and a histogram value."""
    if not METRIC_NAME_PATTERN.fullmatch(request.metric):
        return _bad_request("Invalid metric name.")

    value = 1.0 if request.value is None else request.value
    if not math.isfinite(value) or value < 0:
        return _bad_request("Invalid metric value.")

    tags = sanitize_tags(request.tags)
    record_frontend_metric(request.metric, value, tags)
    logger.debug("Frontend metric recorded", metric=request.metric, value=value, **tags)

    return JSONResponse(status_code=202, content={"ok": True})
