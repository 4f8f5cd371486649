from abc import ABC, abstractmethod
from typing import Any, Mapping

from pydantic import BaseModel


class Scm(ABC):
    """
    Contract between the build orchestrator and a source control provider.

    Repositories are referenced by opaque scm uris returned from
    :meth:`resolve_ref`, the orchestrator never looks inside them.
    """

    @abstractmethod
    async def resolve_ref(self, checkout_url: str, token: str) -> str:
        """Resolve a checkout url into an scm uri."""

    @abstractmethod
    async def normalize_webhook(
        self, headers: Mapping[str, Any], payload: Any
    ) -> BaseModel | None:
        """Turn a webhook into a normalized event, None if it should be ignored."""

    @abstractmethod
    async def decorate_author(self, username: str, token: str) -> BaseModel:
        pass

    @abstractmethod
    async def decorate_url(self, scm_uri: str, token: str) -> BaseModel:
        pass

    @abstractmethod
    async def decorate_commit(self, scm_uri: str, sha: str, token: str) -> BaseModel:
        pass

    @abstractmethod
    async def get_commit_sha(self, scm_uri: str, token: str) -> str:
        pass

    @abstractmethod
    async def get_file(
        self, scm_uri: str, path: str, token: str, ref: str | None = None
    ) -> str:
        pass

    @abstractmethod
    async def get_permissions(self, scm_uri: str, token: str) -> BaseModel:
        pass

    @abstractmethod
    async def update_status(
        self,
        scm_uri: str,
        sha: str,
        build_status: str,
        token: str,
        url: str,
        job_name: str | None = None,
    ) -> Any:
        pass

    @abstractmethod
    def get_bell_config(self) -> BaseModel:
        """Return the OAuth configuration for the provider."""

    @abstractmethod
    def get_checkout_command(
        self,
        host: str,
        org: str,
        repo: str,
        branch: str,
        sha: str,
        pr_ref: str | None = None,
    ) -> BaseModel:
        pass

    @abstractmethod
    def stats(self) -> BaseModel:
        """Return call statistics of the transport."""
