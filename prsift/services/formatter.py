from logging import getLogger

from rich.console import Console
from rich.panel import Panel
from rich.progress import Progress, SpinnerColumn, TextColumn
from rich.table import Table

from .filtering.metadata import FilterMetadata, TeamsFailed, TeamsLoaded
from .filtering.models import FilterConfiguration
from .github.models import PullRequest, PullRequestDetails

logger = getLogger(__name__)


def format_pr_list(
    pull_requests: list[PullRequest],
    show_urls: bool = False,
    scores: dict[tuple[str, str, int], float] | None = None,
    total_count: int | None = None,
    details: dict[tuple[str, str, int], PullRequestDetails | None] | None = None,
    console: Console | None = None,
) -> None:
    """Display pull requests in the order given using Rich.

    Args:
        pull_requests: Pull requests, already filtered and ranked
        show_urls: Whether to display PR URLs (default: False)
        scores: Optional search scores keyed by PR identifier, shown in a Score column
        total_count: Number of pull requests before filtering, for the table caption
        details: Optional per-PR details, shown in Changes and Reviewers columns;
            a missing or None entry is shown as unavailable
        console: Console to print to (default: a new Console)
    """
    console = console or Console()

    if not pull_requests:
        console.print(
            Panel(
                "[yellow]No pull requests match the current filters.[/yellow]\n"
                "Run [bold]prsift filters clear[/bold] or change the search to see more.",
                title="No Results",
                border_style="yellow",
            )
        )
        return

    caption = None
    if total_count is not None and total_count != len(pull_requests):
        caption = f"Showing {len(pull_requests)} of {total_count} pull requests"

    table = Table(title="Review Requests", caption=caption, show_header=True, header_style="bold magenta")
    table.add_column("Repository", style="white")
    table.add_column("PR #", style="cyan", no_wrap=True)
    table.add_column("Title", style="white")
    table.add_column("Author", style="green", no_wrap=True)
    table.add_column("Updated", style="dim", no_wrap=True)

    if scores is not None:
        table.add_column("Score", style="yellow", no_wrap=True)

    if details is not None:
        table.add_column("Changes", no_wrap=True)
        table.add_column("Reviewers", style="green")

    if show_urls:
        table.add_column("URL", style="dim")

    for pr in pull_requests:
        title = f"[dim]Draft:[/dim] {pr.title}" if pr.is_draft else pr.title
        updated = pr.updated_at.strftime("%Y-%m-%d") if pr.updated_at else "-"
        row = [pr.repository_full_name, str(pr.number), title, pr.author_login, updated]

        if scores is not None:
            score = scores.get(pr.identifier)
            row.append(f"{score:.2f}" if score is not None else "-")

        if details is not None:
            row.extend(_format_details(details.get(pr.identifier)))

        if show_urls:
            row.append(pr.url)

        table.add_row(*row)

    console.print(table)


def _format_details(pr_details: PullRequestDetails | None) -> list[str]:
    if pr_details is None:
        return ["[dim]unavailable[/dim]", "[dim]unavailable[/dim]"]
    changes = (
        f"[green]+{pr_details.additions}[/green] [red]-{pr_details.deletions}[/red] ~{pr_details.changed_files}"
    )
    return [changes, ", ".join(pr_details.all_reviewers) or "-"]


def format_filter_chips(configuration: FilterConfiguration) -> list[str]:
    """Return labels for the active filters.

    Repositories are only listed when no organization is selected, since an
    organization selection already implies its repositories.
    """
    chips = [f"ORG {org}" for org in sorted(configuration.selected_organizations)]
    if not configuration.selected_organizations:
        chips.extend(f"REPO {repo}" for repo in sorted(configuration.selected_repositories))
    chips.extend(f"TEAM {team}" for team in sorted(configuration.selected_teams))
    return chips


def format_filter_configuration(
    configuration: FilterConfiguration,
    metadata: FilterMetadata | None = None,
    console: Console | None = None,
) -> None:
    """Display the active filter configuration and, when known, the available options.

    Args:
        configuration: Configuration to display
        metadata: Available filter options (optional)
        console: Console to print to (default: a new Console)
    """
    console = console or Console()

    if configuration.is_empty:
        body = "[dim]No filters active. All review requests are shown.[/dim]"
    else:
        body = "\n".join(f"[cyan]{chip}[/cyan]" for chip in format_filter_chips(configuration))

    console.print(Panel(body, title=f"Filters ({configuration.active_filter_count})", border_style="cyan"))

    if metadata is None:
        return

    lines = [
        f"[bold]Organizations:[/bold] {', '.join(metadata.sorted_organizations) or '-'}",
        f"[bold]Repositories:[/bold] {', '.join(metadata.sorted_repositories) or '-'}",
    ]
    if isinstance(metadata.teams, TeamsLoaded):
        lines.append(f"[bold]Teams:[/bold] {', '.join(team.full_slug for team in metadata.teams.teams) or '-'}")
    elif isinstance(metadata.teams, TeamsFailed):
        lines.append("[bold]Teams:[/bold] [yellow]unavailable[/yellow]")

    console.print(Panel("\n".join(lines), title="Available", border_style="dim"))


def show_progress(message: str) -> Progress:
    """Create and return a progress spinner.

    Args:
        message: Message to display with spinner

    Returns:
        Progress context manager
    """
    progress = Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        transient=True,
    )
    progress.add_task(description=message, total=None)
    return progress
