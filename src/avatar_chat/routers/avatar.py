"""Streaming avatar token route."""

from __future__ import annotations

import logging
from typing import AsyncIterator

from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse, PlainTextResponse, Response

from ..config import Settings, get_settings
from ..heygen import HeyGenClient, HeyGenError

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api", tags=["avatar"])


async def get_heygen_client(
    settings: Settings = Depends(get_settings),
) -> AsyncIterator[HeyGenClient]:
    client = HeyGenClient(settings)
    try:
        yield client
    finally:
        await client.aclose()


@router.post("/get-access-token", response_model=None)
async def get_access_token(
    client: HeyGenClient = Depends(get_heygen_client),
) -> Response:
    """Return a short-lived streaming token for the avatar session."""

    try:
        token = await client.create_token()
    except HeyGenError as exc:
        logger.error("Error retrieving access token: %s", exc.detail)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"error": str(exc.detail)},
        )

    logger.debug("Issued streaming token")
    return PlainTextResponse(token)


__all__ = ["get_heygen_client", "router"]
