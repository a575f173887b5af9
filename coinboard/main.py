# coinboard/main.py
from __future__ import annotations

import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from coinboard.api.crypto import router as crypto_router
from coinboard.api.health import router as health_router
from coinboard.config.settings import get_settings
from coinboard.services.gateway import build_gateway

logger = logging.getLogger("coinboard.main")

settings = get_settings()
logging.basicConfig(level=settings.LOG_LEVEL, format="%(asctime)s %(levelname)s %(name)s %(message)s")

app = FastAPI(title="Crypto Dashboard Gateway")

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_methods=["GET", "HEAD", "OPTIONS"],
    allow_headers=["*"],
)

# Routers
app.include_router(health_router)
app.include_router(crypto_router, prefix=settings.API_PREFIX)


@app.get("/")
def root() -> dict[str, str]:
    return {"message": "Crypto dashboard gateway", "api": f"{settings.API_PREFIX}/crypto"}


@app.on_event("startup")
async def on_startup() -> None:
    # one cache and one pair of providers per process
    app.state.gateway = build_gateway(settings)
    logger.info("✅ gateway ready | api=%s/crypto", settings.API_PREFIX)


@app.on_event("shutdown")
async def on_shutdown() -> None:
    gateway = getattr(app.state, "gateway", None)
    if gateway is not None:
        gateway.cache.clear()
    app.state.gateway = None
