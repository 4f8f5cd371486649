import json
import os
from contextlib import asynccontextmanager
from unittest.mock import AsyncMock, Mock


def load_sample_data(filename):
    with open(os.path.join(os.path.dirname(__file__), "samples", filename)) as f:
        return json.load(f)


def make_response(status=200, body=None, content_type="application/json"):
    response = Mock()
    response.status = status
    response.content_type = content_type
    response.json = AsyncMock(return_value=body)
    response.text = AsyncMock(return_value=body)
    return response


def mock_request(response):
    """Mock for ``session.request`` returning ``response`` as async context."""

    @asynccontextmanager
    async def mock_context(*args, **kwargs):
        yield response

    return Mock(side_effect=mock_context)
