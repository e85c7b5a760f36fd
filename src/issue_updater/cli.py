"""CLI interface for the issue updater."""

from __future__ import annotations

import logging
import os
import sys
from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console
from rich.logging import RichHandler

from issue_updater import __version__
from issue_updater.config import DEFAULT_CONFIG_PATH, Config, StepConfig, TrackerConfig
from issue_updater.core.history import load_build_history
from issue_updater.core.models import Build, BuildContext
from issue_updater.core.updater import IssueUpdateStep
from issue_updater.errors import ConfigurationError
from issue_updater.tracker.connection import (
    CheckResult,
    TrackerConnection,
    check_pattern,
    check_url,
    validate_login,
)
from issue_updater.utils.git import get_build_chain

app = typer.Typer(
    name="issue-updater",
    help="Comment on and progress JIRA issues referenced by commit messages.",
    no_args_is_help=True,
)
console = Console()

ConfigOption = Annotated[
    Path | None,
    typer.Option("--config", "-c", help=f"Configuration file (default: {DEFAULT_CONFIG_PATH})"),
]


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
        force=True,
    )


def _load_config(config_path: Path | None) -> Config:
    # An explicit path must exist; only the default location may be absent
    if config_path is not None and not config_path.exists():
        console.print(f"[bold red]Configuration error:[/bold red] Config file not found: {config_path}")
        raise typer.Exit(1)
    try:
        return Config.load(config_path)
    except ConfigurationError as e:
        console.print(f"[bold red]Configuration error:[/bold red] {e}")
        raise typer.Exit(1) from None


def _report(result: CheckResult, ok_message: str) -> None:
    if result.ok:
        console.print(f"[green]{result.message or ok_message}[/green]")
        return
    console.print(f"[bold red]{result.message}[/bold red]")
    raise typer.Exit(1)


def _load_builds(history: Path | None, repo: Path | None, tag_pattern: str, step: StepConfig) -> Build:
    if history is not None:
        try:
            build = load_build_history(history)
        except ConfigurationError as e:
            console.print(f"[bold red]{e}[/bold red]")
            raise typer.Exit(1) from None
        if build is None:
            console.print(f"[bold red]Build history {history} is empty[/bold red]")
            raise typer.Exit(1)
        return build

    build = get_build_chain(repo, tag_pattern=tag_pattern, max_builds=step.num_of_pre_build + 1)
    if build is None:
        console.print(f"[bold red]Cannot read git history in {repo or Path.cwd()}[/bold red]")
        raise typer.Exit(1)
    return build


@app.command()
def update(
    config_path: ConfigOption = None,
    history: Annotated[
        Path | None,
        typer.Option("--history", help="YAML build history; git tags are used when omitted", exists=True, dir_okay=False),
    ] = None,
    repo: Annotated[
        Path | None,
        typer.Option("--repo", help="Git repository to read (default: current directory)"),
    ] = None,
    tag_pattern: Annotated[
        str,
        typer.Option("--tags", help="Glob of tags marking finished builds"),
    ] = "build-*",
    issue_pattern: Annotated[
        str | None,
        typer.Option("--pattern", "-p", help="Issue key regex"),
    ] = None,
    comments: Annotated[
        str | None,
        typer.Option("--comment", help="Comment text; $VAR and ${VAR} are expanded"),
    ] = None,
    status: Annotated[
        str | None,
        typer.Option("--status", "-s", help="Only update issues in this status"),
    ] = None,
    action: Annotated[
        str | None,
        typer.Option("--action", "-a", help="Workflow action to trigger"),
    ] = None,
    num_builds: Annotated[
        int | None,
        typer.Option("--num-builds", "-n", help="Number of earlier builds to scan"),
    ] = None,
    dry_run: Annotated[
        bool,
        typer.Option("--dry-run", help="Log comments and transitions without applying them"),
    ] = False,
    fail_on_error: Annotated[
        bool,
        typer.Option("--fail-on-error", help="Exit non-zero when JIRA cannot be updated"),
    ] = False,
    verbose: Annotated[
        bool,
        typer.Option("--verbose", "-v", help="Show debug logging"),
    ] = False,
) -> None:
    """Update the JIRA issues referenced by the current build's commits."""
    _configure_logging(verbose)
    config = _load_config(config_path)

    overrides: dict[str, object] = {
        name: value
        for name, value in {
            "issue_pattern": issue_pattern,
            "comments": comments,
            "status_for_transition": status,
            "assign_for_action": action,
            "num_of_pre_build": num_builds,
        }.items()
        if value is not None
    }
    if dry_run:
        overrides["dry_run"] = True
    if fail_on_error:
        overrides["fail_on_error"] = True
    step = config.resolved_step(**overrides)

    build = _load_builds(history, repo, tag_pattern, step)

    environment = dict(os.environ)
    environment.setdefault("BUILD_ID", build.id)

    tracker = TrackerConnection(config.tracker) if config.tracker is not None else None
    context = BuildContext(build=build, environment=environment, log=sys.stdout)
    result = IssueUpdateStep(step).perform(context, tracker)

    if verbose:
        console.print(
            f"[dim]keys={result.issue_keys} commented={result.commented} "
            f"transitioned={result.transitioned} skipped={result.skipped}[/dim]"
        )
    if not result.success:
        raise typer.Exit(1)


@app.command("check-url")
def check_url_command(
    url: Annotated[str, typer.Argument(help="JIRA base URL")],
) -> None:
    """Check that a JIRA instance and its SOAP service are reachable."""
    _report(check_url(url), "JIRA SOAP service is reachable")


@app.command()
def validate(
    config_path: ConfigOption = None,
    url: Annotated[str | None, typer.Option("--url", help="JIRA base URL (default: from config)")] = None,
    username: Annotated[str | None, typer.Option("--username", "-u", help="JIRA user name")] = None,
    password: Annotated[str | None, typer.Option("--password", help="JIRA password")] = None,
) -> None:
    """Check that the credentials can log in."""
    config = _load_config(config_path)
    if config.tracker is not None:
        url = url or config.tracker.url
        username = username or config.tracker.username
        password = password or config.tracker.password
    _report(validate_login(url, username, password), "Success")


@app.command("check-pattern")
def check_pattern_command(
    pattern: Annotated[str, typer.Argument(help="Issue key regex")],
) -> None:
    """Check that an issue key pattern compiles."""
    _report(check_pattern(pattern), "Pattern is valid")


@app.command("issue-url")
def issue_url(
    key: Annotated[str, typer.Argument(help="Issue key, e.g. PROJ-12")],
    config_path: ConfigOption = None,
) -> None:
    """Print the browse URL of an issue."""
    config = _load_config(config_path)
    try:
        tracker = config.require_tracker()
    except ConfigurationError as e:
        console.print(f"[bold red]{e}[/bold red]")
        raise typer.Exit(1) from None
    print(TrackerConnection(tracker).resolve_issue_url(key))


@app.command()
def init(
    url: Annotated[str, typer.Option("--url", help="JIRA base URL")],
    config_path: ConfigOption = None,
    username: Annotated[str | None, typer.Option("--username", "-u", help="JIRA user name")] = None,
    force: Annotated[bool, typer.Option("--force", "-f", help="Overwrite an existing file")] = False,
) -> None:
    """Write a configuration file with default step settings."""
    path = config_path or DEFAULT_CONFIG_PATH
    if path.exists() and not force:
        console.print(f"[yellow]Config file already exists: {path} (use --force to overwrite)[/yellow]")
        raise typer.Exit(1)

    try:
        tracker = TrackerConfig(url=url, username=username)
    except ValueError as e:
        console.print(f"[bold red]{e}[/bold red]")
        raise typer.Exit(1) from None

    Config(tracker=tracker).save(path)
    console.print(f"[green]Wrote {path}[/green]")


@app.command()
def version() -> None:
    """Show the issue updater version."""
    console.print(f"issue-updater {__version__}")


def main() -> None:
    app()


if __name__ == "__main__":
    main()
