from enum import StrEnum

from pydantic import BaseModel, Field


class BuildStatus(StrEnum):
    SUCCESS = "SUCCESS"
    RUNNING = "RUNNING"
    QUEUED = "QUEUED"
    FAILURE = "FAILURE"
    ABORTED = "ABORTED"


class BitbucketState(StrEnum):
    SUCCESSFUL = "SUCCESSFUL"
    INPROGRESS = "INPROGRESS"
    FAILED = "FAILED"
    STOPPED = "STOPPED"


class HookType(StrEnum):
    repo = "repo"
    pr = "pr"


class HookAction(StrEnum):
    push = "push"
    opened = "opened"
    synchronized = "synchronized"
    closed = "closed"


class CheckoutUrlInfo(BaseModel):
    hostname: str
    owner: str
    repo: str
    branch: str


class ScmUri(BaseModel):
    hostname: str
    repo_id: str  # owner/{uuid}
    branch: str

    @property
    def owner(self) -> str:
        return self.repo_id.split("/", 1)[0]

    @property
    def uuid(self) -> str:
        return self.repo_id.split("/", 1)[-1]


class NormalizedWebhookEvent(BaseModel):
    hook_id: str | None
    type: HookType
    action: HookAction
    username: str
    checkout_url: str
    branch: str
    sha: str
    pr_num: int | None = None
    pr_ref: str | None = None


class PermissionSet(BaseModel):
    admin: bool
    push: bool
    pull: bool


class DecoratedAuthor(BaseModel):
    url: str
    name: str
    username: str
    avatar: str


class DecoratedUrl(BaseModel):
    url: str
    name: str
    branch: str


class DecoratedCommit(BaseModel):
    url: str
    message: str
    author: DecoratedAuthor


class BellConfig(BaseModel):
    provider: str = "bitbucket"
    client_id: str
    client_secret: str
    is_secure: bool
    force_https: bool


class CheckoutCommand(BaseModel):
    name: str
    command: str


# Partial schemas of the Bitbucket webhook payloads and API responses,
# only the fields read by the adapter are declared.


class Href(BaseModel):
    href: str


class Account(BaseModel):
    username: str


class RepositoryLinks(BaseModel):
    html: Href


class Repository(BaseModel):
    owner: Account
    links: RepositoryLinks


class Target(BaseModel):
    hash: str


class BranchRef(BaseModel):
    name: str
    target: Target


class PushChange(BaseModel):
    # null when the change deletes a branch
    new: BranchRef | None = None


class Push(BaseModel):
    changes: list[PushChange] = Field(min_length=1)


class PushEvent(BaseModel):
    actor: Account
    repository: Repository
    push: Push


class Branch(BaseModel):
    name: str


class Commit(BaseModel):
    hash: str


class PullRequestSource(BaseModel):
    branch: Branch
    commit: Commit


class PullRequestDestination(BaseModel):
    branch: Branch


class PullRequest(BaseModel):
    id: int
    source: PullRequestSource
    destination: PullRequestDestination


class PullRequestEvent(BaseModel):
    actor: Account
    repository: Repository
    pullrequest: PullRequest


class UserLinks(BaseModel):
    html: Href
    avatar: Href


class UserResponse(BaseModel):
    username: str
    display_name: str
    links: UserLinks


class RepositoryResponse(BaseModel):
    full_name: str
    links: RepositoryLinks


class BranchRepository(BaseModel):
    uuid: str


class BranchResponse(BaseModel):
    target: Target
    repository: BranchRepository


class CommitLinks(BaseModel):
    html: Href


class CommitAuthor(BaseModel):
    user: Account


class CommitResponse(BaseModel):
    message: str
    links: CommitLinks
    author: CommitAuthor


class RepositorySummary(BaseModel):
    uuid: str


class RepositoryList(BaseModel):
    values: list[RepositorySummary] = []
