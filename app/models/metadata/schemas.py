from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field

from app.models.metadata.document import Metadata


class ScrapeRequest(BaseModel):
    """Request body for POST /scrape/metadata.

    ``url`` is deliberately loose here: the route answers a missing or
    malformed URL with its own 400 envelope instead of FastAPI's 422.
    """

    url: Any = None
    use_cache: bool = Field(default=True, alias="useCache")


class ScrapeResponse(BaseModel):
    success: bool = True
    message: str
    data: Metadata
