import pytest
from pydantic import ValidationError
from unittest.mock import Mock

import scm_bridge.config
from scm_bridge.bitbucket import BitbucketScm
from scm_bridge.config import Config


def test_config_from_environment(monkeypatch):
    monkeypatch.setenv("OAUTH_CLIENT_ID", "client")
    monkeypatch.setenv("OAUTH_CLIENT_SECRET", "secret")
    monkeypatch.setenv("HTTPS", "true")
    monkeypatch.setenv("BREAKER_MAX_FAILURES", "7")

    config = Config()  # type: ignore

    assert config.OAUTH_CLIENT_ID == "client"
    assert config.HTTPS is True
    assert config.BREAKER_MAX_FAILURES == 7
    assert config.API_URL == "https://api.bitbucket.org/2.0"
    assert config.DEFAULT_BRANCH == "master"
    assert config.OVERRIDE_LOGGING is None


def test_config_requires_oauth_credentials(monkeypatch):
    monkeypatch.delenv("OAUTH_CLIENT_ID", raising=False)
    monkeypatch.delenv("OAUTH_CLIENT_SECRET", raising=False)

    with pytest.raises(ValidationError):
        Config()  # type: ignore


def test_print_config_masks_secret(config, monkeypatch):
    info = Mock()
    monkeypatch.setattr(scm_bridge.config.logger, "info", info)

    config.print_config()

    lines = [call.args[0] for call in info.call_args_list]
    assert "OAUTH_CLIENT_ID: abc" in lines
    assert "OAUTH_CLIENT_SECRET: ***" in lines
    assert not any("def" in line for line in lines)


def test_adapter_creates_breaker_from_config(config):
    scm = BitbucketScm(config)

    assert scm.breaker.max_failures == config.BREAKER_MAX_FAILURES
    assert scm.breaker.reset_timeout == config.BREAKER_RESET_TIMEOUT
    assert scm.breaker.session is None
