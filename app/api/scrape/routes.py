from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from app.models.common import ErrorResponse
from app.models.metadata.schemas import ScrapeRequest, ScrapeResponse
from app.services.scrape.service import ScrapeService
from app.workers.errors import InvalidURLError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/scrape", tags=["scrape"])


# ---------------------------------------------------------------------------
# Dependency
# ---------------------------------------------------------------------------


def _get_service(request: Request) -> ScrapeService:
    """FastAPI dependency returning the process-wide ``ScrapeService``."""
    return request.app.state.scrape_service


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=ErrorResponse(message=message).model_dump(),
    )


# ---------------------------------------------------------------------------
# POST /scrape/metadata
# ---------------------------------------------------------------------------


@router.post(
    "/metadata",
    response_model=ScrapeResponse,
    responses={400: {"model": ErrorResponse}, 500: {"model": ErrorResponse}},
    summary="Extract webpage metadata for a URL",
)
async def post_metadata(
    body: ScrapeRequest,
    service: ScrapeService = Depends(_get_service),
) -> ScrapeResponse | JSONResponse:
    """Return title, description and social-card metadata for ``url``.

    - **200** : metadata extracted (or served from the 5 minute cache)
    - **400** : ``url`` missing or not a valid absolute URL
    - **500** : neither the static fetch nor the browser produced metadata
    """
    if not body.url:
        return _error(400, "Missing required parameter: url")
    if not isinstance(body.url, str):
        return _error(400, "Invalid URL format")

    try:
        metadata = await service.get_metadata(body.url, body.use_cache)
    except InvalidURLError:
        return _error(400, "Invalid URL format")
    except Exception as exc:
        logger.error("POST /scrape/metadata failed for %s: %s", body.url, exc)
        return _error(500, str(exc))

    return ScrapeResponse(message="Metadata fetched successfully", data=metadata)
