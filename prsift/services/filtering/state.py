"""Filter state coordinator.

Owns the current filter configuration, the search query and the filter
metadata, and is the only place they change. All methods must be called from
the event loop that owns the instance. Background work (search debounce, team
fetches) resumes on that loop before touching state, so mutations never race.

Errors never escape this module: persistence and fetch failures degrade to a
working state and leave a user-facing message in ``error_message``.
"""

import asyncio
from collections.abc import Awaitable, Callable
from logging import getLogger

from prsift.conf.filters import FilterSettings
from prsift.services.github.errors import APIErrorKind, classify_http_error
from prsift.services.github.models import PullRequest, Team

from .engine import FilterEngine
from .metadata import FilterMetadata, TeamsFailed, TeamsLoaded, TeamsLoading, TeamsState, derive_metadata
from .models import FilterConfiguration
from .persistence import FilterDecodeError, FilterPersistence

logger = getLogger(__name__)

SAVE_FAILED_MESSAGE = "Failed to save filter preferences. Your selections may not persist after restart."
LOAD_FAILED_MESSAGE = "Previous filter preferences could not be loaded and have been reset."
CLEAR_FAILED_MESSAGE = "Failed to clear filter preferences. Some filters may still be saved."
TEAMS_CLEARED_MESSAGE = "Team filtering is unavailable. Your team filter selections have been cleared."
TEAMS_CLEARED_SAVE_FAILED_MESSAGE = (
    "Team filtering is unavailable. Your team filter selections have been cleared for now, "
    "but the change could not be saved and they may return after restart."
)

FETCH_FAILED_MESSAGES = {
    APIErrorKind.NETWORK: "Could not reach GitHub. Check your connection and try again.",
    APIErrorKind.RATE_LIMITED: "GitHub is limiting requests right now. Wait a few minutes and try again.",
    APIErrorKind.SERVER: "GitHub is having trouble right now. Try again shortly.",
    APIErrorKind.UNAUTHORIZED: "GitHub did not accept your sign-in. Sign in again to continue.",
    APIErrorKind.FORBIDDEN: "Your GitHub sign-in does not allow this. Sign in again with the required access.",
}
DEFAULT_FETCH_FAILED_MESSAGE = "Could not load pull requests. Try again."

TEAMS_UNAVAILABLE_MESSAGES = {
    APIErrorKind.FORBIDDEN: (
        "Team filters need permission to read your organization's teams. "
        "Sign in again with team access to use them. Organization and repository filters still work."
    ),
    APIErrorKind.UNAUTHORIZED: "Team filters are unavailable until you sign in again.",
}
DEFAULT_TEAMS_UNAVAILABLE_MESSAGE = "Teams could not be loaded right now. Refresh to try again."

StateListener = Callable[["FilterState"], None]
PullRequestFetcher = Callable[[], Awaitable[list[PullRequest]]]
TeamFetcher = Callable[[], Awaitable[list[Team]]]


def teams_unavailable_reason(teams: TeamsState) -> str | None:
    """User-facing explanation for failed team data, or None when teams are not failed."""
    if not isinstance(teams, TeamsFailed):
        return None
    return TEAMS_UNAVAILABLE_MESSAGES.get(teams.error.kind, DEFAULT_TEAMS_UNAVAILABLE_MESSAGE)


class FilterState:
    """Observable state for pull request filtering and search."""

    def __init__(
        self,
        persistence: FilterPersistence,
        settings: FilterSettings | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        engine: FilterEngine | None = None,
    ) -> None:
        """Initialize filter state.

        Args:
            persistence: Storage for the filter configuration
            settings: Filter settings (defaults to global settings)
            sleep: Coroutine used for the debounce delay (injectable for tests)
            engine: Filter engine (defaults to a new FilterEngine)
        """
        if settings is None:
            from prsift.settings import settings as global_settings

            settings = global_settings

        self._persistence = persistence
        self._debounce_seconds = settings.search_debounce_seconds
        self._sleep = sleep
        self._engine = engine or FilterEngine()

        self._search_query = ""
        self._debounced_search_query = ""
        self._configuration = FilterConfiguration.empty()
        self._metadata = FilterMetadata()
        self._pull_requests: list[PullRequest] = []
        self._error_message: str | None = None

        self._search_task: asyncio.Task[None] | None = None
        self._search_generation = 0
        self._team_request_id = 0
        self._listeners: list[StateListener] = []

    @property
    def search_query(self) -> str:
        """Search text as typed, updated immediately."""
        return self._search_query

    @property
    def debounced_search_query(self) -> str:
        """Search text used for filtering, updated after the debounce delay."""
        return self._debounced_search_query

    @property
    def configuration(self) -> FilterConfiguration:
        return self._configuration

    @property
    def metadata(self) -> FilterMetadata:
        return self._metadata

    @property
    def pull_requests(self) -> list[PullRequest]:
        return list(self._pull_requests)

    @property
    def error_message(self) -> str | None:
        return self._error_message

    @property
    def teams_unavailable_reason(self) -> str | None:
        return teams_unavailable_reason(self._metadata.teams)

    def subscribe(self, listener: StateListener) -> Callable[[], None]:
        """Register listener to be called after every state change.

        Returns:
            A callable that removes the listener
        """
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _notify(self) -> None:
        for listener in list(self._listeners):
            try:
                listener(self)
            except Exception:
                logger.exception("Filter state listener failed")

    def _set_error(self, message: str) -> None:
        self._error_message = message
        self._notify()

    def clear_error(self) -> None:
        """Dismiss the current error message."""
        if self._error_message is not None:
            self._error_message = None
            self._notify()

    # Search

    def update_search_query(self, query: str) -> None:
        """Update the search text and schedule the debounced update.

        Any pending debounced update is cancelled, so only the latest text ever
        reaches ``debounced_search_query``. Must be called with a running loop.
        """
        self._search_query = query
        self._cancel_pending_search()
        self._search_generation += 1
        self._search_task = asyncio.get_running_loop().create_task(
            self._apply_debounced_query(query, self._search_generation)
        )
        self._notify()

    async def _apply_debounced_query(self, query: str, generation: int) -> None:
        await self._sleep(self._debounce_seconds)
        if generation != self._search_generation:
            return
        self._debounced_search_query = query
        logger.debug(f"Applied debounced search query {query!r}")
        self._notify()

    def _cancel_pending_search(self) -> None:
        if self._search_task is not None and not self._search_task.done():
            self._search_task.cancel()
        self._search_task = None

    def clear_search_query(self) -> None:
        """Cancel any pending update and reset both search values immediately."""
        self._cancel_pending_search()
        self._search_generation += 1
        self._search_query = ""
        self._debounced_search_query = ""
        self._notify()

    async def wait_for_search(self) -> None:
        """Wait until any pending debounced update has finished or been cancelled."""
        task = self._search_task
        if task is not None:
            await asyncio.wait({task})

    # Configuration

    async def update_filter_configuration(self, configuration: FilterConfiguration) -> None:
        """Replace the configuration and persist it.

        The in-memory configuration is updated before persisting; a failed save
        only sets ``error_message``.
        """
        self._configuration = configuration
        self._notify()
        if not await self._save(configuration):
            self._set_error(SAVE_FAILED_MESSAGE)

    async def _save(self, configuration: FilterConfiguration) -> bool:
        try:
            await self._persistence.save(configuration)
        except Exception as e:
            logger.error(f"Failed to save filter configuration: {e}")
            return False
        return True

    async def load_persisted_configuration(self) -> None:
        """Restore the stored configuration.

        Corrupt data is wiped and the configuration reset to empty.
        """
        try:
            loaded = await self._persistence.load()
        except Exception as e:
            if isinstance(e, FilterDecodeError):
                logger.warning(f"Failed to load filter configuration: {e}. Clearing corrupted data.")
            else:
                logger.error(f"Failed to load filter configuration: {e}. Clearing stored data.")
            try:
                await self._persistence.clear()
            except Exception as clear_error:
                logger.error(f"Failed to clear corrupted filter configuration: {clear_error}")
            self._configuration = FilterConfiguration.empty()
            self._set_error(LOAD_FAILED_MESSAGE)
            return

        if loaded is not None:
            self._configuration = loaded
            logger.info(f"Restored filter configuration with {loaded.active_filter_count} active filters")
            self._notify()

    async def clear_all_filters(self) -> None:
        """Reset to the empty configuration and remove it from storage."""
        self._configuration = FilterConfiguration.empty()
        self._notify()
        try:
            await self._persistence.clear()
        except Exception as e:
            logger.error(f"Failed to clear filter configuration: {e}")
            self._set_error(CLEAR_FAILED_MESSAGE)

    # Metadata

    def update_metadata(self, pull_requests: list[PullRequest]) -> None:
        """Re-derive organizations and repositories; team state is left as is."""
        self._pull_requests = list(pull_requests)
        self._metadata = derive_metadata(pull_requests).with_teams(self._metadata.teams)
        self._notify()

    async def update_metadata_with_teams(self, pull_requests: list[PullRequest], fetch_teams: TeamFetcher) -> None:
        """Re-derive organizations and repositories, then fetch teams.

        Teams are "loading" while the fetch runs. If the fetch fails, selected
        team filters are cleared and the trimmed configuration is persisted. A
        result that arrives after a newer call has started is discarded.
        """
        self._team_request_id += 1
        request_id = self._team_request_id

        self._pull_requests = list(pull_requests)
        base = derive_metadata(pull_requests)
        self._metadata = base.with_teams(TeamsLoading())
        self._notify()

        try:
            teams = await fetch_teams()
        except Exception as e:
            error = classify_http_error(e)
            if request_id != self._team_request_id:
                logger.debug(f"Discarding stale team fetch failure (request {request_id})")
                return
            logger.warning(f"Failed to fetch teams ({error.kind.value}): {error.message}")
            self._metadata = self._metadata.with_teams(TeamsFailed(error))
            self._notify()
            await self._clear_invalid_team_filters()
            return

        if request_id != self._team_request_id:
            logger.debug(f"Discarding stale team fetch result (request {request_id})")
            return

        self._metadata = self._metadata.with_teams(TeamsLoaded(tuple(teams)))
        logger.info(f"Loaded {len(teams)} teams")
        self._notify()

    async def _clear_invalid_team_filters(self) -> None:
        if not self._configuration.selected_teams:
            return

        logger.info("Clearing team filters due to unavailable team data")
        self._configuration = self._configuration.with_teams(frozenset())
        self._notify()
        if await self._save(self._configuration):
            self._set_error(TEAMS_CLEARED_MESSAGE)
        else:
            self._set_error(TEAMS_CLEARED_SAVE_FAILED_MESSAGE)

    async def refresh(
        self,
        fetch_pull_requests: PullRequestFetcher,
        fetch_teams: TeamFetcher | None = None,
    ) -> bool:
        """Fetch pull requests and update metadata.

        On failure the previous pull requests and metadata are kept and a
        message explaining how to recover is set.

        Returns:
            True if new pull requests were loaded
        """
        try:
            pull_requests = await fetch_pull_requests()
        except Exception as e:
            error = classify_http_error(e)
            logger.warning(f"Failed to fetch pull requests ({error.kind.value}): {error.message}")
            self._set_error(FETCH_FAILED_MESSAGES.get(error.kind, DEFAULT_FETCH_FAILED_MESSAGE))
            return False

        if fetch_teams is None:
            self.update_metadata(pull_requests)
        else:
            await self.update_metadata_with_teams(pull_requests, fetch_teams)
        return True

    # Results

    def filtered_pull_requests(self, pull_requests: list[PullRequest] | None = None) -> list[PullRequest]:
        """Apply the current configuration and debounced query.

        Args:
            pull_requests: Candidates; defaults to the last loaded pull requests
        """
        candidates = self._pull_requests if pull_requests is None else pull_requests
        return self._engine.apply(
            self._configuration,
            self._debounced_search_query,
            candidates,
            self._metadata.teams,
        )
