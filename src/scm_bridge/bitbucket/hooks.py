from typing import Any, Mapping
from urllib.parse import urlparse

from pydantic import ValidationError
from sanic.log import logger

from scm_bridge import metrics
from scm_bridge.bitbucket.models import (
    HookAction,
    HookType,
    NormalizedWebhookEvent,
    PullRequestEvent,
    PushEvent,
    Repository,
)
from scm_bridge.bitbucket.utils import get_header

EVENT_KEY_HEADER = "X-Event-Key"
REQUEST_ID_HEADER = "X-Request-UUID"


def make_checkout_url(repository: Repository) -> str:
    """Build a checkout url with the repository owner as user info."""
    link = urlparse(repository.links.html.href)
    return (
        f"{link.scheme}://{repository.owner.username}"
        f"@{link.hostname}{link.path}.git"
    )


def pull_request_action(action: str) -> HookAction | None:
    match action:
        case "created":
            return HookAction.opened
        case "updated":
            return HookAction.synchronized
        # Bitbucket documents "fulfilled", older integrations send "fullfilled"
        case "fulfilled" | "fullfilled" | "rejected":
            return HookAction.closed
        case _:
            return None


def on_repo(
    action: str, hook_id: str | None, payload: Any
) -> NormalizedWebhookEvent | None:
    if action != "push":
        logger.debug("Ignoring repo action: %s", action)
        return None

    data = PushEvent.model_validate(payload)

    # One branch per delivery is assumed, the last change is reported
    change = data.push.changes[-1]
    logger.debug("Push has %d changes", len(data.push.changes))
    if change.new is None:
        logger.debug("Push change deletes a branch, ignoring")
        return None

    return NormalizedWebhookEvent(
        hook_id=hook_id,
        type=HookType.repo,
        action=HookAction.push,
        username=data.actor.username,
        checkout_url=make_checkout_url(data.repository),
        branch=change.new.name,
        sha=change.new.target.hash,
    )


def on_pullrequest(
    action: str, hook_id: str | None, payload: Any
) -> NormalizedWebhookEvent | None:
    hook_action = pull_request_action(action)
    if hook_action is None:
        logger.debug("Ignoring pullrequest action: %s", action)
        return None

    data = PullRequestEvent.model_validate(payload)
    pr = data.pullrequest
    logger.debug("Pull request #%d: %s => %s", pr.id, action, hook_action)

    return NormalizedWebhookEvent(
        hook_id=hook_id,
        type=HookType.pr,
        action=hook_action,
        username=data.actor.username,
        checkout_url=make_checkout_url(data.repository),
        branch=pr.destination.branch.name,
        sha=pr.source.commit.hash,
        pr_num=pr.id,
        pr_ref=pr.source.branch.name,
    )


def normalize_webhook(
    headers: Mapping[str, Any], payload: Any
) -> NormalizedWebhookEvent | None:
    """
    Classify a Bitbucket webhook into a normalized event.

    Args:
        headers: Request headers of the webhook delivery
        payload: Decoded JSON body of the webhook delivery

    Returns:
        The normalized event, or None if the webhook requires no action.
        Unknown, unsupported and malformed webhooks are all ignored.
    """
    event_key = get_header(headers, EVENT_KEY_HEADER) or ""
    hook_id = get_header(headers, REQUEST_ID_HEADER)
    hook_type, _, action = event_key.partition(":")

    logger.debug("Received webhook %s (%s)", event_key, hook_id)

    parsed = None
    # The header is sender controlled, only known categories become labels
    category = "unknown"
    try:
        match hook_type:
            case "repo":
                category = hook_type
                parsed = on_repo(action, hook_id, payload)
            case "pullrequest":
                category = hook_type
                parsed = on_pullrequest(action, hook_id, payload)
            case _:
                logger.debug("Ignoring event category: %s", hook_type)
    except ValidationError as e:
        logger.warning("Ignoring malformed %s webhook %s: %s", event_key, hook_id, e)

    metrics.webhooks_received_total.labels(
        category, "ignored" if parsed is None else "normalized"
    ).inc()
    return parsed
