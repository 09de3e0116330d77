from __future__ import annotations

from types import TracebackType

import httpx
from loguru import logger

from issuebridge.errors import ForkNotAllowed, IssueFetchFailed, RemoteFetchFailed
from issuebridge.models import IssueRecord, RepositoryLink, RepositoryRecord

API_URL = "https://api.github.com"


class GitHubClient:
    """Read-only access to the two GitHub resources the import needs."""

    def __init__(
        self,
        token: str = "",
        *,
        base_url: str = API_URL,
        timeout: float = 30,
    ) -> None:
        headers = {
            "Accept": "application/vnd.github+json",
            "X-GitHub-Api-Version": "2022-11-28",
        }
        if token:
            headers["Authorization"] = f"Bearer {token}"
        self._client = httpx.AsyncClient(
            base_url=base_url,
            headers=headers,
            timeout=timeout,
        )

    # -- context manager ---------------------------------------------------

    async def __aenter__(self) -> GitHubClient:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        await self.close()

    # -- public API ---------------------------------------------------------

    async def fetch_repository(self, link: RepositoryLink) -> RepositoryRecord:
        """Fetch repository metadata and project it into a record.

        Every transport or API failure is reported as :class:`RemoteFetchFailed`;
        the underlying cause is only logged. Forks raise :class:`ForkNotAllowed`
        before any record is built.
        """
        try:
            resp = await self._client.get(f"/repos/{link.owner}/{link.name}")
            resp.raise_for_status()
            data = resp.json()
        except httpx.HTTPStatusError as exc:
            logger.warning(
                "GitHub returned HTTP {} for {}",
                exc.response.status_code, link.full_name,
            )
            raise RemoteFetchFailed() from exc
        except (httpx.HTTPError, ValueError) as exc:
            logger.opt(exception=True).warning(
                "Failed to fetch repository {}", link.full_name
            )
            raise RemoteFetchFailed() from exc

        if not isinstance(data, dict):
            logger.warning("Unexpected repository payload for {}", link.full_name)
            raise RemoteFetchFailed()

        if data.get("fork"):
            logger.info("Rejected fork: {}", link.full_name)
            raise ForkNotAllowed()

        try:
            record = RepositoryRecord.from_github(data, username=link.owner)
        except (KeyError, TypeError, ValueError) as exc:
            logger.opt(exception=True).warning(
                "Malformed repository payload for {}", link.full_name
            )
            raise RemoteFetchFailed() from exc

        logger.info("Fetched repository {} (id {})", record.full_name, record.id)
        return record

    async def fetch_issues(
        self, owner: str, name: str, repository_id: str
    ) -> list[IssueRecord]:
        """Fetch the first page of open issues, skipping pull requests.

        The issues endpoint also lists pull requests; those carry a
        ``pull_request`` key. API order is kept as-is.
        """
        full_name = f"{owner}/{name}"
        try:
            resp = await self._client.get(f"/repos/{owner}/{name}/issues")
            resp.raise_for_status()
            data = resp.json()
        except httpx.HTTPStatusError as exc:
            logger.warning(
                "GitHub returned HTTP {} listing issues of {}",
                exc.response.status_code, full_name,
            )
            raise IssueFetchFailed() from exc
        except (httpx.HTTPError, ValueError) as exc:
            logger.opt(exception=True).warning(
                "Failed to fetch issues for {}", full_name
            )
            raise IssueFetchFailed() from exc

        if not isinstance(data, list):
            logger.warning("Unexpected issues payload for {}", full_name)
            raise IssueFetchFailed()

        try:
            issues = [
                IssueRecord.from_github(item, repository_id)
                for item in data
                if "pull_request" not in item
            ]
        except (KeyError, TypeError, ValueError) as exc:
            logger.opt(exception=True).warning(
                "Malformed issue entry for {}", full_name
            )
            raise IssueFetchFailed() from exc

        logger.info(
            "Fetched {} issues for {} ({} pull requests skipped)",
            len(issues), full_name, len(data) - len(issues),
        )
        return issues

    async def close(self) -> None:
        await self._client.aclose()
