import asyncio
from typing import Any, Mapping, TypeVar
from urllib.parse import quote, unquote

from pydantic import BaseModel, ValidationError
from sanic.log import logger

from scm_bridge import metrics
from scm_bridge.base import Scm
from scm_bridge.bitbucket.hooks import normalize_webhook
from scm_bridge.bitbucket.models import (
    BellConfig,
    BranchResponse,
    BuildStatus,
    CheckoutCommand,
    CommitResponse,
    DecoratedAuthor,
    DecoratedCommit,
    DecoratedUrl,
    NormalizedWebhookEvent,
    PermissionSet,
    RepositoryList,
    RepositoryResponse,
    ScmUri,
    UserResponse,
)
from scm_bridge.bitbucket.utils import (
    compose_scm_uri,
    decode_scm_uri,
    make_checkout_command,
    parse_checkout_url,
    status_description,
    to_bitbucket_state,
)
from scm_bridge.breaker import Breaker, BreakerStats, HttpRequest, HttpResponse
from scm_bridge.config import Config
from scm_bridge.exceptions import NotFoundError, UpstreamError

ModelT = TypeVar("ModelT", bound=BaseModel)


class BitbucketScm(Scm):
    def __init__(self, config: Config, breaker: Breaker | None = None):
        self.config = config
        self.breaker = breaker or Breaker.from_config(config)
        if config.OVERRIDE_LOGGING is not None:
            logger.setLevel(config.OVERRIDE_LOGGING)

    async def close(self):
        await self.breaker.close()

    async def __aenter__(self) -> "BitbucketScm":
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.close()

    @property
    def repo_url(self) -> str:
        return f"{self.config.API_URL}/repositories"

    @property
    def user_url(self) -> str:
        return f"{self.config.API_URL}/users"

    def get_branch_url(self, repo_id: str, branch: str) -> str:
        return f"{self.repo_url}/{repo_id}/refs/branches/{quote(branch, safe='/')}"

    def get_commit_url(self, repo_id: str, sha: str) -> str:
        return f"{self.repo_url}/{repo_id}/commit/{quote(sha, safe='')}"

    def get_src_url(self, repo_id: str, ref: str, path: str) -> str:
        # "#" and "?" are legal in branch names and paths
        ref = quote(ref, safe="/")
        path = quote(path.lstrip("/"), safe="/")
        return f"{self.repo_url}/{repo_id}/src/{ref}/{path}"

    def _parse(self, name: str, model: type[ModelT], response: HttpResponse) -> ModelT:
        try:
            return model.model_validate(response.body)
        except ValidationError as e:
            logger.error("%s: unexpected response body: %s", name, e)
            raise UpstreamError(response.status_code, response.body) from e

    async def _request(
        self,
        name: str,
        url: str,
        token: str,
        *,
        method: str = "GET",
        json_body: dict[str, Any] | None = None,
        raw: bool = False,
        ok: tuple[int, ...] = (200,),
        not_found_message: str | None = None,
    ) -> HttpResponse:
        response = await self.breaker.execute(
            HttpRequest(
                url=url,
                method=method,
                token=token,
                json_body=json_body,
                raw=raw,
                name=name,
            )
        )

        if response.status_code in ok:
            return response

        logger.error(
            "%s: %s %s returned status %d",
            name,
            method,
            url,
            response.status_code,
        )
        if response.status_code == 404:
            raise NotFoundError(response.body, not_found_message)
        raise UpstreamError(response.status_code, response.body)

    async def resolve_ref(self, checkout_url: str, token: str) -> str:
        repo_info = parse_checkout_url(checkout_url, self.config.DEFAULT_BRANCH)
        logger.debug(
            "Resolving %s/%s on branch %s",
            repo_info.owner,
            repo_info.repo,
            repo_info.branch,
        )

        # The branch lookup also reports the repository uuid, which replaces
        # the renameable owner/repo path
        response = await self._request(
            "resolve_ref",
            self.get_branch_url(
                quote(f"{repo_info.owner}/{repo_info.repo}", safe="/"),
                repo_info.branch,
            ),
            token,
            not_found_message=f"Cannot find repository {checkout_url}",
        )
        branch = self._parse("resolve_ref", BranchResponse, response)

        return compose_scm_uri(
            repo_info.hostname,
            f"{repo_info.owner}/{branch.repository.uuid}",
            repo_info.branch,
        )

    async def normalize_webhook(
        self, headers: Mapping[str, Any], payload: Any
    ) -> NormalizedWebhookEvent | None:
        return normalize_webhook(headers, payload)

    async def decorate_author(self, username: str, token: str) -> DecoratedAuthor:
        response = await self._request(
            "decorate_author", f"{self.user_url}/{quote(username, safe='')}", token
        )
        user = self._parse("decorate_author", UserResponse, response)

        return DecoratedAuthor(
            url=user.links.html.href,
            name=user.display_name,
            username=user.username,
            avatar=user.links.avatar.href,
        )

    async def decorate_url(self, scm_uri: str, token: str) -> DecoratedUrl:
        scm = decode_scm_uri(scm_uri)
        response = await self._request(
            "decorate_url", f"{self.repo_url}/{scm.repo_id}", token
        )
        repository = self._parse("decorate_url", RepositoryResponse, response)

        return DecoratedUrl(
            url=repository.links.html.href,
            name=repository.full_name,
            branch=scm.branch,
        )

    async def decorate_commit(
        self, scm_uri: str, sha: str, token: str
    ) -> DecoratedCommit:
        scm = decode_scm_uri(scm_uri)
        response = await self._request(
            "decorate_commit",
            self.get_commit_url(scm.repo_id, sha),
            token,
        )
        commit = self._parse("decorate_commit", CommitResponse, response)

        author = await self.decorate_author(commit.author.user.username, token)

        return DecoratedCommit(
            url=commit.links.html.href,
            message=commit.message,
            author=author,
        )

    async def get_commit_sha(self, scm_uri: str, token: str) -> str:
        scm = decode_scm_uri(scm_uri)
        response = await self._request(
            "get_commit_sha", self.get_branch_url(scm.repo_id, scm.branch), token
        )
        return self._parse("get_commit_sha", BranchResponse, response).target.hash

    async def get_file(
        self, scm_uri: str, path: str, token: str, ref: str | None = None
    ) -> str:
        scm = decode_scm_uri(scm_uri)
        ref = ref or scm.branch
        logger.debug("Fetching %s at %s from %s", path, ref, scm.repo_id)

        response = await self._request(
            "get_file",
            self.get_src_url(scm.repo_id, ref, path),
            token,
            raw=True,
        )
        return response.body

    async def _has_role(self, scm: ScmUri, role: str | None, token: str) -> bool:
        url = f"{self.repo_url}/{quote(scm.owner, safe='')}"
        if role is not None:
            url = f"{url}?role={role}"

        response = await self._request("get_permissions", url, token)
        repositories = self._parse("get_permissions", RepositoryList, response)

        return any(repo.uuid == scm.uuid for repo in repositories.values)

    async def get_permissions(self, scm_uri: str, token: str) -> PermissionSet:
        scm = decode_scm_uri(scm_uri)

        # The first failure propagates, the other results are discarded
        admin, push, pull = await asyncio.gather(
            self._has_role(scm, "admin", token),
            self._has_role(scm, "contributor", token),
            self._has_role(scm, None, token),
        )
        logger.debug(
            "Permissions on %s: admin=%s push=%s pull=%s",
            scm.repo_id,
            admin,
            push,
            pull,
        )

        return PermissionSet(admin=admin, push=push, pull=pull)

    async def update_status(
        self,
        scm_uri: str,
        sha: str,
        build_status: BuildStatus | str,
        token: str,
        url: str,
        job_name: str | None = None,
    ) -> Any:
        scm = decode_scm_uri(scm_uri)
        state = to_bitbucket_state(build_status)

        payload = {
            "url": url,
            "state": state.value,
            "key": sha,
            "description": status_description(job_name),
        }

        logger.debug("Posting commit status for sha %s: %s", sha, state)
        response = await self._request(
            "update_status",
            f"{self.get_commit_url(scm.repo_id, sha)}/statuses/build",
            unquote(token),
            method="POST",
            json_body=payload,
            ok=(200, 201),
        )
        metrics.commit_status_updates_total.labels(state.value).inc()

        return response.body

    def get_bell_config(self) -> BellConfig:
        return BellConfig(
            client_id=self.config.OAUTH_CLIENT_ID,
            client_secret=self.config.OAUTH_CLIENT_SECRET,
            is_secure=self.config.HTTPS,
            force_https=self.config.HTTPS,
        )

    def get_checkout_command(
        self,
        host: str,
        org: str,
        repo: str,
        branch: str,
        sha: str,
        pr_ref: str | None = None,
    ) -> CheckoutCommand:
        return make_checkout_command(
            host=host, org=org, repo=repo, branch=branch, sha=sha, pr_ref=pr_ref
        )

    def stats(self) -> BreakerStats:
        return self.breaker.stats()
