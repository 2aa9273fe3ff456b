from __future__ import annotations

from unittest.mock import AsyncMock, patch

import pytest
from fastapi.testclient import TestClient

from app.main import app


@pytest.fixture
def client():
    """TestClient whose shutdown hook never touches a real browser."""
    with patch(
        "app.services.scrape.service.ScrapeService.close",
        new_callable=AsyncMock,
    ):
        with TestClient(app) as c:
            yield c
