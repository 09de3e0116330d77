from __future__ import annotations

import enum
from dataclasses import dataclass, field
from datetime import datetime


def _parse_timestamp(value: str) -> datetime:
    # GitHub timestamps end in "Z", which older fromisoformat() rejects.
    if value.endswith("Z"):
        value = value[:-1] + "+00:00"
    return datetime.fromisoformat(value)


@dataclass(frozen=True)
class RepositoryLink:
    """An ``owner/name`` pair parsed from a github.com URL."""

    owner: str
    name: str

    @property
    def full_name(self) -> str:
        return f"{self.owner}/{self.name}"

    @property
    def url(self) -> str:
        return f"https://github.com/{self.owner}/{self.name}"


@dataclass(frozen=True)
class RepositoryRecord:
    """Normalized representation of a GitHub repository, ready to persist."""

    id: str
    name: str
    owner: str
    full_name: str
    url: str
    description: str | None
    is_private: bool
    username: str
    homepage: str | None
    language: str | None
    stars: int
    watchers: int
    forks: int
    avatar_url: str
    created_at: datetime
    updated_at: datetime
    topics: list[str] = field(default_factory=list)

    @classmethod
    def from_github(cls, repo: dict, username: str) -> RepositoryRecord:
        """Build from a ``GET /repos/{owner}/{repo}`` response body.

        The numeric GitHub id is kept as a string. Missing or empty optional
        fields become ``None`` so they are sent explicitly rather than omitted.
        """
        return cls(
            id=str(repo["id"]),
            name=repo["name"],
            owner=repo["owner"]["login"],
            full_name=repo["full_name"],
            url=repo["html_url"],
            description=repo.get("description") or None,
            is_private=bool(repo["private"]),
            username=username,
            homepage=repo.get("homepage") or None,
            language=repo.get("language") or None,
            stars=int(repo["stargazers_count"]),
            watchers=int(repo["watchers_count"]),
            forks=int(repo["forks_count"]),
            avatar_url=repo["owner"]["avatar_url"],
            created_at=_parse_timestamp(repo["created_at"]),
            updated_at=_parse_timestamp(repo["updated_at"]),
            topics=list(repo.get("topics") or []),
        )

    def to_payload(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "owner": self.owner,
            "fullName": self.full_name,
            "url": self.url,
            "description": self.description,
            "isPrivate": self.is_private,
            "username": self.username,
            "homepage": self.homepage,
            "language": self.language,
            "stars": self.stars,
            "watchers": self.watchers,
            "forks": self.forks,
            "topics": list(self.topics),
            "avatarUrl": self.avatar_url,
            "createdAt": self.created_at.isoformat(),
            "updatedAt": self.updated_at.isoformat(),
        }


@dataclass(frozen=True)
class IssueRecord:
    """An open issue belonging to a persisted repository."""

    id: str
    title: str
    body: str | None
    state: str
    number: int
    repository_id: str

    @classmethod
    def from_github(cls, issue: dict, repository_id: str) -> IssueRecord:
        return cls(
            id=str(issue["id"]),
            title=issue["title"],
            body=issue.get("body"),
            state=issue["state"],
            number=int(issue["number"]),
            repository_id=repository_id,
        )

    def to_payload(self, repository_id: str | None = None) -> dict:
        """Backend body; ``repository_id`` overrides the stored back-reference."""
        return {
            "title": self.title,
            "body": self.body,
            "state": self.state,
            "number": self.number,
            "repositoryId": repository_id or self.repository_id,
        }


class Phase(str, enum.Enum):
    IDLE = "idle"
    FETCHING = "fetching"
    FETCHED = "fetched"
    SAVING = "saving"
    SAVED = "saved-awaiting-issues"
    ISSUES_FETCHED = "issues-fetched"


@dataclass
class WorkflowState:
    """Snapshot rendered by the presentation shell."""

    phase: Phase = Phase.IDLE
    status_message: str | None = None
    repository: RepositoryRecord | None = None
    issues: list[IssueRecord] = field(default_factory=list)
    repository_id: str | None = None
    # Per-issue feedback keyed by issue number.
    issue_status: dict[int, str] = field(default_factory=dict)

    def reset(self) -> None:
        self.phase = Phase.IDLE
        self.status_message = None
        self.repository = None
        self.issues = []
        self.repository_id = None
        self.issue_status = {}
