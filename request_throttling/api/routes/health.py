from __future__ import annotations

from fastapi import APIRouter, Request

router = APIRouter(tags=["Health"])


@router.get("/health")
async def health_check(request: Request) -> dict:
    """Health check endpoint.

    Used by load balancers and monitoring systems to determine service health.
    Reports whether request throttling is active for this process and, when it
    is, whether the counter store answers a ping.

    Returns:
        dict: "status" set to "ok", "throttling" set to "enabled" or
            "disabled", and "store" set to "ok" or "unavailable" when
            throttling is enabled.
    """

    throttle_config = request.app.state.throttle_config
    body = {
        "status": "ok",
        "throttling": "enabled" if throttle_config.is_enabled else "disabled",
    }

    store = request.app.state.counter_store
    if store is not None:
        body["store"] = "ok" if await store.ping() else "unavailable"

    return body
