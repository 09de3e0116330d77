from __future__ import annotations

import argparse
import asyncio
import logging
import sys

from loguru import logger

from issuebridge.backend import BackendClient
from issuebridge.config import Config
from issuebridge.github import GitHubClient
from issuebridge.models import IssueRecord, Phase, RepositoryRecord
from issuebridge.workflow import IngestionWorkflow


def _print_repository(repo: RepositoryRecord) -> None:
    print(f"\n{'=' * 60}")
    print(f" {repo.full_name}")
    print(f"{'=' * 60}")
    print(f"  {repo.description or 'No description'}")
    print(f"  🔗 {repo.url}")
    print(f"  🔒 {'Private' if repo.is_private else 'Public'}")
    print(f"  ★{repo.stars}  forks {repo.forks}  {repo.language or ''}".rstrip())
    if repo.topics:
        print(f"  topics: {', '.join(repo.topics)}")
    print(f"{'=' * 60}\n")


def _print_issues(issues: list[IssueRecord]) -> None:
    print("  Open issues:")
    for issue in issues:
        excerpt = (issue.body or "")[:100] or "No description"
        print(f"    #{issue.number}: {issue.title}")
        print(f"        {excerpt}")
        print(f"        State: {issue.state}")
    print()


def _parse_numbers(raw: str) -> list[int]:
    numbers: list[int] = []
    for token in raw.replace(" ", "").split(","):
        if not token:
            continue
        try:
            numbers.append(int(token.lstrip("#")))
        except ValueError:
            logger.warning("Ignoring invalid issue number: {}", token)
    return numbers


def _select_issues(
    issues: list[IssueRecord],
    *,
    numbers: list[int] | None,
    all_issues: bool,
    interactive: bool,
) -> list[IssueRecord]:
    if all_issues:
        return list(issues)
    if not numbers:
        if not interactive:
            return []
        numbers = _parse_numbers(
            input("Issue numbers to save (comma-separated, blank to skip): ")
        )

    by_number = {issue.number: issue for issue in issues}
    selected: list[IssueRecord] = []
    for number in dict.fromkeys(numbers):
        if number in by_number:
            selected.append(by_number[number])
        else:
            logger.warning("Issue #{} is not among the open issues", number)
    return selected


async def _run_import(
    config: Config,
    link: str,
    *,
    username: str | None,
    assume_yes: bool,
    issue_numbers: list[int] | None,
    all_issues: bool,
    dry_run: bool,
) -> int:
    async with GitHubClient(
        config.github_token, timeout=config.http_timeout
    ) as github, BackendClient(
        config.backend_url, config.backend_token, timeout=config.http_timeout
    ) as backend:
        workflow = IngestionWorkflow(github, backend, username)
        try:
            logger.info("Checking {}…", link.strip())
            fetched = await workflow.fetch_repository(link)
            state = workflow.state
            print(f"  {state.status_message}")
            if not fetched:
                return 1

            _print_repository(state.repository)

            if dry_run:
                print("  Dry-run mode — nothing saved.")
                return 0

            if not assume_yes:
                answer = input("Save repository? [y/N] ").strip().lower()
                if answer not in ("y", "yes"):
                    print("  Aborted — nothing saved.")
                    return 0

            saved = await workflow.save_repository()
            print(f"  {state.status_message}")
            if not saved:
                return 1
            if state.phase is not Phase.ISSUES_FETCHED:
                # Repository is saved; only the issue listing failed.
                return 0
            if not state.issues:
                print("  No open issues.")
                return 0

            _print_issues(state.issues)
            selected = _select_issues(
                state.issues,
                numbers=issue_numbers,
                all_issues=all_issues,
                interactive=not assume_yes,
            )
            if not selected:
                print("  No issues selected.")
                return 0

            logger.info("Saving {} issues", len(selected))
            results = await asyncio.gather(
                *(workflow.save_issue(issue) for issue in selected)
            )
            for issue in selected:
                print(f"    #{issue.number}  {state.issue_status.get(issue.number, '')}")

            print(f"\n{'=' * 60}")
            print(
                f"  Import complete — {sum(results)} saved, "
                f"{len(results) - sum(results)} failed"
            )
            print(f"{'=' * 60}\n")
            return 0
        finally:
            workflow.close()


def cmd_import(
    config: Config,
    link: str,
    *,
    username: str | None = None,
    assume_yes: bool = False,
    issue_numbers: list[int] | None = None,
    all_issues: bool = False,
    dry_run: bool = False,
) -> int:
    """Register a GitHub repository with the backend and import selected issues."""
    return asyncio.run(
        _run_import(
            config,
            link,
            username=username or config.github_username or None,
            assume_yes=assume_yes,
            issue_numbers=issue_numbers,
            all_issues=all_issues,
            dry_run=dry_run,
        )
    )


class _InterceptHandler(logging.Handler):
    """Route stdlib logging (httpx, httpcore) into loguru."""

    def emit(self, record: logging.LogRecord) -> None:
        try:
            level = logger.level(record.levelname).name
        except ValueError:
            level = record.levelno
        frame, depth = logging.currentframe(), 2
        while frame and frame.f_code.co_filename == logging.__file__:
            frame = frame.f_back
            depth += 1
        logger.opt(depth=depth, exception=record.exc_info).log(
            level, record.getMessage()
        )


def _setup_logging(level: str = "INFO") -> None:
    logger.remove()
    logger.add(
        sys.stderr,
        level=level,
        format=(
            "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | "
            "<level>{level: <8}</level> | "
            "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> — "
            "<level>{message}</level>"
        ),
    )

    logging.basicConfig(handlers=[_InterceptHandler()], level=0, force=True)
    for name in ("httpx", "httpcore"):
        logging.getLogger(name).setLevel(logging.WARNING)


def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(
        prog="issuebridge",
        description="Register your GitHub repository with the backend and import its issues",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Log debug output (overrides LOG_LEVEL)",
    )
    sub = parser.add_subparsers(dest="command")

    import_p = sub.add_parser("import", help="Fetch, save and import issues of a repository")
    import_p.add_argument("link", help="Repository URL, e.g. https://github.com/you/repo")
    import_p.add_argument(
        "--username",
        default=None,
        help="Signed-in GitHub username (default: env GITHUB_USERNAME)",
    )
    import_p.add_argument(
        "-y",
        "--yes",
        action="store_true",
        help="Save without asking for confirmation and never prompt",
    )
    import_p.add_argument(
        "--issue",
        dest="issues",
        type=int,
        action="append",
        default=None,
        metavar="NUMBER",
        help="Issue number to save (repeatable)",
    )
    import_p.add_argument(
        "--all-issues",
        action="store_true",
        help="Save every open issue",
    )
    import_p.add_argument(
        "--dry-run",
        action="store_true",
        help="Fetch and preview the repository without saving anything",
    )

    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        sys.exit(1)

    try:
        config = Config.from_env()
    except KeyError as exc:
        _setup_logging()
        logger.error("{} is not set. Add it to your environment or .env file.", exc.args[0])
        sys.exit(1)

    _setup_logging("DEBUG" if args.verbose else config.log_level)

    if args.command == "import":
        sys.exit(
            cmd_import(
                config,
                args.link,
                username=args.username,
                assume_yes=args.yes,
                issue_numbers=args.issues,
                all_issues=args.all_issues,
                dry_run=args.dry_run,
            )
        )
