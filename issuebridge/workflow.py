from __future__ import annotations

from loguru import logger

from issuebridge.backend import BackendClient
from issuebridge.errors import IngestionError, RepositoryNotPersisted
from issuebridge.github import GitHubClient
from issuebridge.links import check_ownership, normalize_link, require_username
from issuebridge.models import IssueRecord, Phase, RepositoryRecord, WorkflowState

FETCHED_MESSAGE = '✅ Repository info fetched. Click "Save Repository" to continue.'
SAVED_MESSAGE = "✅ Repository saved successfully!"

_TRANSITIONS: dict[Phase, set[Phase]] = {
    Phase.IDLE: {Phase.FETCHING},
    Phase.FETCHING: {Phase.IDLE, Phase.FETCHED},
    Phase.FETCHED: {Phase.SAVING},
    # A failed save returns to whichever phase it started from.
    Phase.SAVING: {Phase.FETCHED, Phase.SAVED, Phase.ISSUES_FETCHED},
    Phase.SAVED: {Phase.SAVING, Phase.ISSUES_FETCHED},
    Phase.ISSUES_FETCHED: {Phase.SAVING},
}

_SAVEABLE = frozenset({Phase.FETCHED, Phase.SAVED, Phase.ISSUES_FETCHED})


def issue_saved_message(number: int) -> str:
    return f"✅ Issue #{number} saved."


class IngestionWorkflow:
    """Drives one "add repository" session from link to saved issues.

    Each public step is a coroutine that returns ``True`` on success. Failures
    never propagate: they are logged and turned into ``state.status_message``.

    Every step remembers the generation it started in. Starting a new fetch or
    closing the workflow bumps the generation, and results of older steps are
    then dropped instead of being written into the state.
    """

    def __init__(
        self,
        github: GitHubClient,
        backend: BackendClient,
        username: str | None,
    ) -> None:
        self.github = github
        self.backend = backend
        self.username = username
        self._state: WorkflowState | None = WorkflowState()
        self._generation = 0
        self._fetching = False
        self._save_token: object | None = None

    @property
    def state(self) -> WorkflowState | None:
        """The live state, or ``None`` once the workflow has been closed."""
        return self._state

    @property
    def is_fetching(self) -> bool:
        return self._fetching

    @property
    def is_saving(self) -> bool:
        """True from the start of a save until its issue fetch has resolved."""
        return self._save_token is not None

    @property
    def closed(self) -> bool:
        return self._state is None

    def close(self) -> None:
        """Discard the state; in-flight requests finish but their results are dropped."""
        self._state = None
        self._generation += 1

    # -- steps ---------------------------------------------------------------

    async def fetch_repository(self, raw_link: str) -> bool:
        state = self._state
        if state is None:
            return False
        if self._fetching:
            logger.debug("Fetch already in flight, ignoring {!r}", raw_link)
            return False

        self._generation += 1
        generation = self._generation
        # Results of an earlier save are dropped from here on, so it no longer blocks.
        self._save_token = None
        state.reset()

        try:
            require_username(self.username)
            link = normalize_link(raw_link)
            check_ownership(link, self.username)
        except IngestionError as exc:
            return self._fail(state, exc)

        self._fetching = True
        self._transition(state, Phase.FETCHING)
        try:
            record = await self.github.fetch_repository(link)
        except IngestionError as exc:
            if not self._is_current(generation):
                return False
            self._transition(state, Phase.IDLE)
            return self._fail(state, exc)
        finally:
            self._fetching = False

        if not self._is_current(generation):
            logger.debug("Dropping late repository response for {}", link.full_name)
            return False

        state.repository = record
        self._transition(state, Phase.FETCHED)
        state.status_message = FETCHED_MESSAGE
        return True

    async def save_repository(self) -> bool:
        """Persist the held repository, then load its open issues.

        Returns ``True`` once the repository is saved, even when the follow-up
        issue fetch fails; a saved repository is never rolled back.
        """
        state = self._state
        if state is None or state.repository is None or state.phase not in _SAVEABLE:
            logger.debug("Nothing to save (phase {})", state.phase.value if state else "closed")
            return False
        # The save and its issue fetch form one step; neither half may overlap a new save.
        if self._save_token is not None:
            logger.debug("Save already in flight for {}", state.repository.full_name)
            return False

        token = self._save_token = object()
        try:
            return await self._save_and_load_issues(state)
        finally:
            if self._save_token is token:
                self._save_token = None

    async def save_issue(self, issue: IssueRecord) -> bool:
        """Save one issue. Several may run at once; the status line is last-write-wins."""
        state = self._state
        if state is None:
            return False

        repository_id = state.repository_id
        if repository_id is None:
            return self._fail(state, RepositoryNotPersisted(), issue)

        generation = self._generation
        try:
            await self.backend.save_issue(issue, repository_id)
        except IngestionError as exc:
            if not self._is_current(generation):
                return False
            return self._fail(state, exc, issue)

        if not self._is_current(generation):
            return False

        message = issue_saved_message(issue.number)
        state.status_message = message
        state.issue_status[issue.number] = message
        return True

    # -- helpers ---------------------------------------------------------------

    async def _save_and_load_issues(self, state: WorkflowState) -> bool:
        generation = self._generation
        record = state.repository
        previous = state.phase
        self._transition(state, Phase.SAVING)
        try:
            repository_id = await self.backend.save_repository(record)
        except IngestionError as exc:
            if not self._is_current(generation):
                return False
            self._transition(state, previous)
            return self._fail(state, exc)

        if not self._is_current(generation):
            return False

        state.repository_id = repository_id
        state.issues = []
        state.status_message = SAVED_MESSAGE
        self._transition(state, Phase.SAVED)

        await self._fetch_issues(state, generation, record, repository_id)
        return True

    async def _fetch_issues(
        self,
        state: WorkflowState,
        generation: int,
        record: RepositoryRecord,
        repository_id: str,
    ) -> None:
        try:
            issues = await self.github.fetch_issues(
                record.owner, record.name, repository_id
            )
        except IngestionError as exc:
            if self._is_current(generation):
                self._fail(state, exc)
            return

        if not self._is_current(generation):
            return

        state.issues = issues
        self._transition(state, Phase.ISSUES_FETCHED)

    def _is_current(self, generation: int) -> bool:
        return self._state is not None and generation == self._generation

    @staticmethod
    def _transition(state: WorkflowState, phase: Phase) -> None:
        if phase not in _TRANSITIONS[state.phase]:
            raise RuntimeError(
                f"Illegal phase transition {state.phase.value} -> {phase.value}"
            )
        logger.debug("Phase {} -> {}", state.phase.value, phase.value)
        state.phase = phase

    @staticmethod
    def _fail(
        state: WorkflowState, exc: IngestionError, issue: IssueRecord | None = None
    ) -> bool:
        logger.warning("{}: {}", type(exc).__name__, exc.status)
        state.status_message = exc.status
        if issue is not None:
            state.issue_status[issue.number] = exc.status
        return False
