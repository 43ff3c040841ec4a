import asyncio
from collections.abc import Callable
from functools import wraps
from logging import getLogger
from typing import Any

import typer
from rich.console import Console

from .services.cache import configure_caches
from .services.filtering.fuzzy import FuzzyMatcher
from .services.filtering.models import FilterConfiguration
from .services.filtering.persistence import InMemoryFilterPersistence, JsonFileFilterPersistence
from .services.filtering.state import FilterState
from .services.formatter import format_filter_configuration, format_pr_list, show_progress
from .services.github.auth import GitHubClient
from .services.github.details import PullRequestDetailsCollector
from .services.github.pullrequests import ReviewRequestCollector
from .services.github.teams import TeamCollector
from .settings import settings

# Configure caches on module load
configure_caches()

app = typer.Typer()
filters_app = typer.Typer(help="Show, change or clear the saved filters.")
app.add_typer(filters_app, name="filters")

logger = getLogger(__name__)
console = Console()


def syncify(f: Callable[..., Any]) -> Callable[..., Any]:
    """This simple decorator converts an async function into a sync function,
    allowing it to work with Typer.
    """

    @wraps(f)
    def wrapper(*args: Any, **kwargs: Any) -> Any:
        return asyncio.run(f(*args, **kwargs))

    return wrapper


async def _skip_debounce(_: float) -> None:
    """One-shot commands apply the search immediately."""


def _file_persistence() -> JsonFileFilterPersistence:
    return JsonFileFilterPersistence(settings.filter_store_path)


def _apply_overrides(
    configuration: FilterConfiguration,
    organizations: list[str] | None,
    repositories: list[str] | None,
    teams: list[str] | None,
) -> FilterConfiguration:
    """Replace each dimension given on the command line, keep the others."""
    if organizations:
        configuration = configuration.with_organizations(frozenset(organizations))
    if repositories:
        configuration = configuration.with_repositories(frozenset(repositories))
    if teams:
        configuration = configuration.with_teams(frozenset(teams))
    return configuration


def _print_state_error(state: FilterState) -> None:
    if state.error_message:
        console.print(f"[yellow]Warning:[/yellow] {state.error_message}")
        state.clear_error()


@app.command(help=f"Display the current installed version of {settings.project_name}.")
def version() -> None:
    from . import __version__

    typer.echo(f"{settings.project_name} - {__version__}")


@app.command(name="list", help="List pull requests awaiting your review, filtered and searched.")
@syncify
async def list_review_requests(
    org: list[str] | None = typer.Option(
        None,
        "--org",
        help="Only show pull requests from this organization. Can be specified multiple times.",
    ),
    repo: list[str] | None = typer.Option(
        None,
        "--repo",
        help="Only show pull requests from this repository (owner/name). Can be specified multiple times.",
    ),
    team: list[str] | None = typer.Option(
        None,
        "--team",
        help="Only show pull requests from repositories of this team (slug). Can be specified multiple times.",
    ),
    search: str = typer.Option(
        "",
        "--search",
        "-s",
        help="Fuzzy search across title, repository and author",
    ),
    token: str | None = typer.Option(
        None,
        "--token",
        help="GitHub token (overrides GITHUB_TOKEN)",
    ),
    save: bool = typer.Option(
        False,
        "--save",
        help="Save the --org/--repo/--team selections as the default filters",
    ),
    show_urls: bool = typer.Option(
        False,
        "--show-urls",
        help="Display PR URLs in output",
    ),
    show_scores: bool = typer.Option(
        False,
        "--show-scores",
        help="Display the search score of each pull request",
    ),
    show_details: bool = typer.Option(
        False,
        "--show-details",
        help="Fetch and display line changes and reviewers for each pull request",
    ),
    show_filters: bool = typer.Option(
        False,
        "--show-filters",
        help="Display the active filters and the organizations, repositories and teams available",
    ),
) -> None:
    """List pull requests awaiting review."""
    try:
        state = FilterState(_file_persistence(), settings, sleep=_skip_debounce)
        await state.load_persisted_configuration()
        _print_state_error(state)

        if org or repo or team:
            configuration = _apply_overrides(state.configuration, org, repo, team)
            if not save:
                # Command-line selections apply to this run only
                state = FilterState(InMemoryFilterPersistence(), settings, sleep=_skip_debounce)
            await state.update_filter_configuration(configuration)
            _print_state_error(state)

        github_client = GitHubClient(token_override=token).get_authenticated_client()

        async with github_client:
            collector = ReviewRequestCollector(github_client, max_results=settings.github_max_review_requests)
            fetch_teams = None
            if state.configuration.selected_teams or show_filters:
                fetch_teams = TeamCollector(github_client).collect_teams

            with show_progress("Collecting review requests..."):
                loaded = await state.refresh(collector.collect_review_requests, fetch_teams)

            if not loaded:
                console.print(f"[red]Error:[/red] {state.error_message}")
                raise typer.Exit(1)

            if state.teams_unavailable_reason:
                console.print(f"[yellow]Note:[/yellow] {state.teams_unavailable_reason}")
            _print_state_error(state)

            state.update_search_query(search)
            await state.wait_for_search()
            results = state.filtered_pull_requests()

            details = None
            if show_details and results:
                details_collector = PullRequestDetailsCollector(
                    github_client, max_concurrent_requests=settings.github_details_concurrency
                )
                with show_progress("Fetching pull request details..."):
                    details = await details_collector.collect_details(results)

        scores = None
        if show_scores and search.strip():
            matcher = FuzzyMatcher()
            scores = {pr.identifier: matcher.score(search, pr) for pr in results}

        format_pr_list(
            results,
            show_urls=show_urls,
            scores=scores,
            total_count=len(state.pull_requests),
            details=details,
        )

        if show_filters:
            format_filter_configuration(state.configuration, state.metadata, console=console)

    except typer.Exit:
        raise
    except ValueError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1)
    except Exception as e:
        logger.exception("Unexpected error while listing review requests")
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1)


@filters_app.command(name="show", help="Show the saved filters.")
@syncify
async def show_filters() -> None:
    state = FilterState(_file_persistence(), settings)
    await state.load_persisted_configuration()
    _print_state_error(state)
    format_filter_configuration(state.configuration, console=console)


@filters_app.command(name="set", help="Save filters. Only the dimensions given are replaced.")
@syncify
async def set_filters(
    org: list[str] | None = typer.Option(None, "--org", help="Organization to filter by (repeatable)"),
    repo: list[str] | None = typer.Option(None, "--repo", help="Repository owner/name to filter by (repeatable)"),
    team: list[str] | None = typer.Option(None, "--team", help="Team slug to filter by (repeatable)"),
) -> None:
    state = FilterState(_file_persistence(), settings)
    await state.load_persisted_configuration()
    _print_state_error(state)

    await state.update_filter_configuration(_apply_overrides(state.configuration, org, repo, team))
    if state.error_message:
        console.print(f"[red]Error:[/red] {state.error_message}")
        raise typer.Exit(1)

    format_filter_configuration(state.configuration, console=console)


@filters_app.command(name="clear", help="Remove all saved filters.")
@syncify
async def clear_filters() -> None:
    state = FilterState(_file_persistence(), settings)
    await state.clear_all_filters()
    if state.error_message:
        console.print(f"[red]Error:[/red] {state.error_message}")
        raise typer.Exit(1)
    console.print("[green]Filters cleared.[/green]")


if __name__ == "__main__":
    app()
