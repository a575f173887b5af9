# coinboard/api/health.py
from __future__ import annotations

import time
from datetime import datetime, timezone
from typing import Any, Dict

from fastapi import APIRouter, Request, Response

router = APIRouter(tags=["health"])

APP_STARTED_AT = time.time()


def _now_meta() -> Dict[str, Any]:
    now_ts = time.time()
    now_dt = datetime.fromtimestamp(now_ts, tz=timezone.utc)
    return {
        "now_ts": now_ts,
        "now_unix": int(now_ts),
        "now_iso": now_dt.isoformat().replace("+00:00", "Z"),
        "uptime_s": int(now_ts - APP_STARTED_AT),
    }


def build_ready_payload(request: Request) -> Dict[str, Any]:
    gateway = getattr(request.app.state, "gateway", None)
    if gateway is None:
        return {
            "status": "degraded",
            **_now_meta(),
            "degraded_reasons": ["gateway_not_initialized"],
            "gateway": None,
        }

    return {
        "status": "ok",
        **_now_meta(),
        "degraded_reasons": [],
        "gateway": gateway.describe(),
    }


# ----------------------------
# Endpoints
# ----------------------------
@router.get("/live")
async def live():
    return {"status": "ok"}


@router.get("/ready")
async def ready(request: Request, response: Response):
    payload = build_ready_payload(request)
    if payload["status"] != "ok":
        response.status_code = 503
    return payload
