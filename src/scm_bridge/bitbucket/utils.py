import re
from types import MappingProxyType
from typing import Any, Mapping

from multidict import CIMultiDict
from sanic.log import logger

from scm_bridge.bitbucket.models import (
    BitbucketState,
    BuildStatus,
    CheckoutCommand,
    CheckoutUrlInfo,
    ScmUri,
)
from scm_bridge.exceptions import InvalidRefError, MalformedUrlError

PRODUCT_NAME = "Screwdriver"

CHECKOUT_COMMAND_NAME = "sd-checkout-code"
COMMITTER_NAME = "sd-buildbot"
COMMITTER_EMAIL = "dev-null@screwdriver.cd"

CHECKOUT_URL = re.compile(
    r"^(?:(?:https://(?:[^@/:\s]+@)?)|git@)"
    r"(?P<hostname>[^/:\s]+)(?:/|:)"
    r"(?P<owner>[^/:\s]+)/"
    r"(?P<repo>[^\s]+?)(?:\.git)?"
    r"(?P<branch>#[^\s]*)?$"
)

SCM_URI_SEPARATOR = ":"


def parse_checkout_url(checkout_url: str, default_branch: str) -> CheckoutUrlInfo:
    """
    Split a checkout url into hostname, owner, repo and branch.

    Args:
        checkout_url: Url like ``https://user@bitbucket.org/owner/repo.git#branch``
        default_branch: Branch to use when the url has no ``#branch`` suffix

    Returns:
        The parsed checkout url

    Raises:
        MalformedUrlError: If the url doesn't match the checkout url grammar
    """
    matched = CHECKOUT_URL.match(checkout_url)
    if matched is None:
        raise MalformedUrlError(f"Invalid checkout url: {checkout_url}")

    branch = (matched["branch"] or "")[1:]

    return CheckoutUrlInfo(
        hostname=matched["hostname"],
        owner=matched["owner"],
        repo=matched["repo"],
        branch=branch or default_branch,
    )


def compose_scm_uri(hostname: str, repo_id: str, branch: str) -> str:
    parts = (hostname, repo_id, branch)
    for part in parts:
        if not part or SCM_URI_SEPARATOR in part:
            raise InvalidRefError(f"Invalid scm uri component: {part!r}")
    return SCM_URI_SEPARATOR.join(parts)


def decode_scm_uri(scm_uri: str) -> ScmUri:
    parts = scm_uri.split(SCM_URI_SEPARATOR)
    if len(parts) != 3 or not all(parts):
        raise InvalidRefError(f"Invalid scm uri: {scm_uri}")

    hostname, repo_id, branch = parts
    return ScmUri(hostname=hostname, repo_id=repo_id, branch=branch)


def _to_bitbucket_state(build_status: BuildStatus) -> BitbucketState:
    match build_status:
        case BuildStatus.SUCCESS:
            return BitbucketState.SUCCESSFUL
        case BuildStatus.RUNNING | BuildStatus.QUEUED:
            return BitbucketState.INPROGRESS
        case BuildStatus.FAILURE:
            return BitbucketState.FAILED
        case BuildStatus.ABORTED:
            return BitbucketState.STOPPED
        case _:
            raise ValueError(f"Unknown build status {build_status}")


# Built eagerly so that an unmapped build status fails at import time
STATE_MAP = MappingProxyType(
    {status: _to_bitbucket_state(status) for status in BuildStatus}
)


def to_bitbucket_state(build_status: BuildStatus | str) -> BitbucketState:
    state = STATE_MAP[BuildStatus(build_status)]
    logger.debug("Status: %s => %s", build_status, state)
    return state


def status_description(job_name: str | None = None) -> str:
    if job_name:
        return f"{PRODUCT_NAME}/{job_name}"
    return PRODUCT_NAME


def get_header(headers: Mapping[str, Any], key: str) -> str | None:
    return CIMultiDict(headers).get(key)


def make_checkout_command(
    host: str,
    org: str,
    repo: str,
    branch: str,
    sha: str,
    pr_ref: str | None = None,
) -> CheckoutCommand:
    checkout_url = f"https://{host}/{org}/{repo}"
    checkout_ref = branch if pr_ref else sha

    command = [
        f"echo Cloning {checkout_url}, on branch {branch}",
        f"git clone --quiet --progress --branch {branch} "
        f"{checkout_url} $SD_SOURCE_DIR",
        f"echo Reset to SHA {checkout_ref}",
        f"git reset --hard {checkout_ref}",
        "echo Setting user name and user email",
        f"git config user.name {COMMITTER_NAME}",
        f"git config user.email {COMMITTER_EMAIL}",
    ]

    if pr_ref:
        command += [
            f"echo Fetching PR and merging with {branch}",
            f"git fetch origin {pr_ref}",
            f"git merge {sha}",
        ]

    return CheckoutCommand(name=CHECKOUT_COMMAND_NAME, command=" && ".join(command))
