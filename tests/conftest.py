import pytest
from unittest.mock import AsyncMock, Mock
from sanic.log import logger

from scm_bridge.bitbucket import BitbucketScm
from scm_bridge.breaker import BreakerStats, HttpResponse
from scm_bridge.config import Config


@pytest.fixture
def config():
    config = Config(
        OAUTH_CLIENT_ID="abc",
        OAUTH_CLIENT_SECRET="def",
        HTTPS=True,
        API_URL="https://api.bitbucket.org/2.0",
        DEFAULT_BRANCH="master",
        BREAKER_MAX_FAILURES=3,
        BREAKER_RESET_TIMEOUT=30.0,
        REQUEST_TIMEOUT=5.0,
        OVERRIDE_LOGGING="DEBUG",
    )

    logger.setLevel(config.OVERRIDE_LOGGING)

    return config


@pytest.fixture
def breaker():
    breaker = Mock()
    breaker.execute = AsyncMock(return_value=HttpResponse(status_code=200, body={}))
    breaker.close = AsyncMock()
    breaker.stats = Mock(return_value=BreakerStats(total=1))
    return breaker


@pytest.fixture
def scm(config, breaker):
    return BitbucketScm(config, breaker=breaker)
