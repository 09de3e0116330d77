from __future__ import annotations

from types import TracebackType

import httpx
from loguru import logger

from issuebridge.errors import IssueSaveFailed, PersistFailed
from issuebridge.models import IssueRecord, RepositoryRecord

REPOSITORY_PATH = "/api/saveRepository"
ISSUE_PATH = "/api/saveRepository/issue"


class BackendClient:
    """Writes repositories and issues to the application backend."""

    def __init__(self, base_url: str, token: str = "", *, timeout: float = 30) -> None:
        headers = {"Accept": "application/json"}
        if token:
            headers["Authorization"] = f"Bearer {token}"
        self._client = httpx.AsyncClient(
            base_url=base_url,
            headers=headers,
            timeout=timeout,
        )

    async def __aenter__(self) -> BackendClient:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        await self.close()

    async def save_repository(self, repo: RepositoryRecord) -> str:
        """Submit the full record and return the id it is stored under.

        The GitHub id we send is treated as the durable key.
        """
        try:
            resp = await self._client.post(REPOSITORY_PATH, json=repo.to_payload())
            resp.raise_for_status()
        except httpx.HTTPStatusError as exc:
            logger.warning(
                "Backend rejected repository {} (HTTP {}): {}",
                repo.full_name, exc.response.status_code, exc.response.text,
            )
            raise PersistFailed() from exc
        except httpx.HTTPError as exc:
            logger.opt(exception=True).error(
                "Failed to save repository {}", repo.full_name
            )
            raise PersistFailed() from exc

        logger.info("Saved repository {} (id {})", repo.full_name, repo.id)
        return repo.id

    async def save_issue(self, issue: IssueRecord, repository_id: str) -> None:
        """Create one issue under ``repository_id``.

        A ``{"msg": ...}`` error body from the backend is passed through verbatim.
        """
        try:
            resp = await self._client.post(
                ISSUE_PATH, json=issue.to_payload(repository_id)
            )
            resp.raise_for_status()
        except httpx.HTTPStatusError as exc:
            detail = _error_message(exc.response)
            logger.warning(
                "Backend rejected issue #{} (HTTP {}): {}",
                issue.number, exc.response.status_code, detail or exc.response.text,
            )
            raise IssueSaveFailed(issue.number, detail) from exc
        except httpx.HTTPError as exc:
            logger.opt(exception=True).error("Failed to save issue #{}", issue.number)
            raise IssueSaveFailed(issue.number) from exc

        logger.info("Saved issue #{} for repository {}", issue.number, repository_id)

    async def close(self) -> None:
        await self._client.aclose()


def _error_message(resp: httpx.Response) -> str | None:
    try:
        body = resp.json()
    except ValueError:
        return None
    if isinstance(body, dict) and isinstance(body.get("msg"), str) and body["msg"]:
        return body["msg"]
    return None
