from typing import Literal

from pydantic_settings import BaseSettings
from sanic.log import logger


class Config(BaseSettings):
    OAUTH_CLIENT_ID: str
    OAUTH_CLIENT_SECRET: str

    # Is the orchestrator API served over HTTPS
    HTTPS: bool = False

    API_URL: str = "https://api.bitbucket.org/2.0"

    DEFAULT_BRANCH: str = "master"

    BREAKER_MAX_FAILURES: int = 5
    BREAKER_RESET_TIMEOUT: float = 30.0
    REQUEST_TIMEOUT: float = 10.0

    OVERRIDE_LOGGING: (
        Literal[
            "CRITICAL",
            "FATAL",
            "ERROR",
            "WARNING",
            "WARN",
            "INFO",
            "DEBUG",
            "NOTSET",
        ]
        | None
    ) = None

    def print_config(self):
        """Print configuration values with sensitive attributes masked"""
        sensitive_attrs = {
            "OAUTH_CLIENT_SECRET",
        }

        logger.info("=== SCM Bridge Configuration ===")
        for field_name, field_value in self.model_dump().items():
            if field_name in sensitive_attrs:
                logger.info(f"{field_name}: ***")
            else:
                logger.info(f"{field_name}: {field_value}")
        logger.info("================================")
