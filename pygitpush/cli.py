"""CLI interface for pygitpush."""

import logging
from datetime import datetime
from pathlib import Path
from typing import Any, Optional

import click

from .api import GitHubClient
from .cli_progress import run_push_with_progress
from .config import config
from .exceptions import GitPushAPIError, GitPushConfigError, GitPushError
from .models import FileStatus, RepositoryTarget
from .output import OutputFormatter
from .sync import PushStatisticsStore, SyncEngine, SyncPhase, summarize_changes

logger = logging.getLogger(__name__)


def _create_client(ctx: Any) -> GitHubClient:
    """Create an API client from the --token option or the configuration.

    Raises:
        GitPushConfigError: If no token is available
    """
    return GitHubClient(token=ctx.obj.get("token"))


def _exit_not_configured(ctx: Any, out: OutputFormatter, error: Exception) -> None:
    out.error(str(error))
    out.info("Run 'pygitpush init' to configure your token and repository")
    ctx.exit(1)


def _read_archive(path: str) -> bytes:
    return Path(path).read_bytes()


@click.group()
@click.option("--token", "-t", envvar="GITHUB_TOKEN", help="GitHub access token")
@click.option("--quiet", "-q", is_flag=True, help="Suppress non-essential output")
@click.option("--json", is_flag=True, help="Output in JSON format")
@click.option(
    "--verbose",
    "-v",
    is_flag=True,
    help="Enable verbose/debug logging output",
)
@click.version_option(package_name="pygitpush")
@click.pass_context
def main(
    ctx: Any,
    token: Optional[str],
    quiet: bool,
    json: bool,
    verbose: bool,
) -> None:
    """pygitpush - Push project exports to a GitHub branch."""
    # Store settings in context for subcommands to access
    ctx.ensure_object(dict)
    ctx.obj["token"] = token
    ctx.obj["out"] = OutputFormatter(json_output=json, quiet=quiet)
    ctx.obj["verbose"] = verbose

    # Configure logging based on verbose flag
    if verbose:
        logging.basicConfig(
            level=logging.DEBUG,
            format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
            datefmt="%H:%M:%S",
        )
        logging.getLogger("pygitpush").setLevel(logging.DEBUG)
    else:
        logging.basicConfig(level=logging.WARNING)


@main.command()
@click.option(
    "--token",
    "-t",
    prompt="Enter your GitHub access token",
    hide_input=True,
    help="GitHub access token",
)
@click.option("--owner", "-o", help="Default repository owner")
@click.option("--repo", "-r", help="Default repository name")
@click.option("--branch", "-b", help="Default branch (default: main)")
@click.pass_context
def init(
    ctx: Any,
    token: str,
    owner: Optional[str],
    repo: Optional[str],
    branch: Optional[str],
) -> None:
    """Initialize pygitpush configuration.

    Stores your token (and optionally a default repository) in
    ~/.config/pygitpush/config for future use.
    """
    out: OutputFormatter = ctx.obj["out"]

    out.info("Validating token...")
    try:
        with GitHubClient(token=token) as client:
            user = client.get_authenticated_user()
        out.success(f"Token is valid (user: {user.get('login', 'unknown')})")
    except GitPushError as e:
        out.error(f"Token validation failed: {e}")
        if not click.confirm("Save token anyway?", default=False):
            out.warning("Configuration cancelled.")
            ctx.exit(1)

    config.save_token(token)
    if owner and repo:
        config.save_repository(owner, repo, branch)

    summary = [
        ("Status", "Configuration saved successfully"),
        ("Config file", str(config.get_config_path())),
    ]
    if owner and repo:
        summary.append(("Repository", f"{owner}/{repo}@{branch or 'main'}"))
    out.print_summary("Initialization Complete", summary)


@main.command()
@click.pass_context
def status(ctx: Any) -> None:
    """Check token validity and show the configured repository."""
    out: OutputFormatter = ctx.obj["out"]

    try:
        client = _create_client(ctx)
    except GitPushConfigError as e:
        _exit_not_configured(ctx, out, e)
        return

    try:
        with client:
            user = client.get_authenticated_user()
    except GitPushAPIError as e:
        out.error(str(e))
        ctx.exit(1)
        return

    repository = None
    if config.repo_owner and config.repo_name:
        repository = f"{config.repo_owner}/{config.repo_name}@{config.branch or 'main'}"

    if out.json_output:
        out.output_json(
            {
                "user": user.get("login"),
                "repository": repository,
                "config_file": str(config.get_config_path()),
            }
        )
        return

    out.print_summary(
        "Status",
        [
            ("User", str(user.get("login", "unknown"))),
            ("Repository", repository or "not configured"),
            ("Config file", str(config.get_config_path())),
        ],
    )


@main.command("rate-limit")
@click.pass_context
def rate_limit(ctx: Any) -> None:
    """Show the remaining GitHub API budget."""
    out: OutputFormatter = ctx.obj["out"]

    try:
        client = _create_client(ctx)
    except GitPushConfigError as e:
        _exit_not_configured(ctx, out, e)
        return

    try:
        with client:
            budget = client.get_rate_limit()
    except GitPushAPIError as e:
        out.error(str(e))
        ctx.exit(1)
        return

    reset_at = datetime.fromtimestamp(budget.reset_epoch_seconds)
    if out.json_output:
        out.output_json(
            {
                "remaining": budget.remaining,
                "limit": budget.limit,
                "reset": budget.reset_epoch_seconds,
            }
        )
        return

    out.print(
        f"Remaining: {budget.remaining}"
        + (f"/{budget.limit}" if budget.limit is not None else "")
        + f" | Resets at: {reset_at.strftime('%H:%M:%S')}"
    )


@main.command()
@click.argument("archive", type=click.Path(exists=True, dir_okay=False))
@click.option("--owner", "-o", help="Repository owner (default: from config)")
@click.option("--repo", "-r", help="Repository name (default: from config)")
@click.option("--branch", "-b", help="Branch (default: from config or main)")
@click.option("--all", "show_all", is_flag=True, help="Also list unchanged files")
@click.pass_context
def diff(
    ctx: Any,
    archive: str,
    owner: Optional[str],
    repo: Optional[str],
    branch: Optional[str],
    show_all: bool,
) -> None:
    """Show what a push of ARCHIVE would change, without writing.

    ARCHIVE: ZIP export of the project
    """
    out: OutputFormatter = ctx.obj["out"]

    try:
        target = RepositoryTarget.from_config(owner, repo, branch)
        client = _create_client(ctx)
    except GitPushConfigError as e:
        _exit_not_configured(ctx, out, e)
        return

    try:
        with client:
            engine = SyncEngine(client, target)
            changes = engine.compare_archive(_read_archive(archive))
    except GitPushConfigError as e:
        _exit_not_configured(ctx, out, e)
        return
    except GitPushError as e:
        out.error(str(e))
        ctx.exit(1)
        return

    counts = summarize_changes(changes)
    rows = [
        {"status": change.status.value, "path": path}
        for path, change in sorted(changes.items())
        if show_all or change.status != FileStatus.UNCHANGED
    ]

    if out.json_output:
        out.output_json({"target": target.full_name, "counts": counts, "files": rows})
        return

    if rows:
        out.output_table(rows, ["status", "path"], {"status": "Status", "path": "Path"})
    elif counts["added"] + counts["modified"] + counts["deleted"] == 0:
        out.info("No changes detected")

    out.print_summary(
        f"Changes against {target.full_name}@{target.branch}",
        [
            ("Added", str(counts["added"])),
            ("Modified", str(counts["modified"])),
            ("Deleted", str(counts["deleted"])),
            ("Unchanged", str(counts["unchanged"])),
        ],
    )


@main.command()
@click.argument("archive", type=click.Path(exists=True, dir_okay=False))
@click.option("--owner", "-o", help="Repository owner (default: from config)")
@click.option("--repo", "-r", help="Repository name (default: from config)")
@click.option("--branch", "-b", help="Branch (default: from config or main)")
@click.option("--message", "-m", help="Commit message")
@click.option("--project-id", help="Project identifier recorded in statistics")
@click.option(
    "--apply-deletions",
    is_flag=True,
    help="Remove files that are on the branch but not in the archive",
)
@click.option(
    "--no-progress",
    is_flag=True,
    help="Disable progress bars",
)
@click.pass_context
def push(
    ctx: Any,
    archive: str,
    owner: Optional[str],
    repo: Optional[str],
    branch: Optional[str],
    message: Optional[str],
    project_id: Optional[str],
    apply_deletions: bool,
    no_progress: bool,
) -> None:
    """Push the changed files of ARCHIVE to a GitHub branch.

    ARCHIVE: ZIP export of the project
    """
    out: OutputFormatter = ctx.obj["out"]

    try:
        target = RepositoryTarget.from_config(owner, repo, branch)
        client = _create_client(ctx)
    except GitPushConfigError as e:
        _exit_not_configured(ctx, out, e)
        return

    data = _read_archive(archive)
    engine = SyncEngine(
        client,
        target,
        stats=PushStatisticsStore(),
        apply_deletions=apply_deletions,
    )
    project = project_id or Path(archive).stem

    try:
        if no_progress or out.quiet or out.json_output:
            outcome = engine.push_archive(data, message=message, project_id=project)
        else:
            outcome = run_push_with_progress(
                engine, data, message=message, project_id=project
            )
    except KeyboardInterrupt:
        out.warning("Push cancelled by user")
        ctx.exit(130)  # Standard exit code for SIGINT
        return
    except GitPushConfigError as e:
        _exit_not_configured(ctx, out, e)
        return
    except GitPushError as e:
        out.error(str(e))
        if engine.phase == SyncPhase.AUTH_ERROR:
            out.info("Run 'pygitpush init' to configure a new token")
        ctx.exit(1)
        return
    finally:
        client.close()

    for warning in engine.warnings:
        out.warning(warning)

    if out.json_output:
        out.output_json(
            {
                "target": f"{target.full_name}@{target.branch}",
                "files_uploaded": outcome.files_uploaded,
                "total_files": outcome.total_files,
                "api_calls": outcome.api_calls,
                "duration_ms": outcome.duration_ms,
                "commit": outcome.commit_sha,
                "counts": summarize_changes(outcome.changes),
            }
        )
        return

    if outcome.files_uploaded == 0 and outcome.commit_sha is None:
        out.success("No changes detected")
        return

    out.success(f"Successfully pushed {outcome.files_uploaded} files")
    summary = [
        ("Repository", f"{target.full_name}@{target.branch}"),
        ("Files uploaded", f"{outcome.files_uploaded} of {outcome.total_files}"),
        ("API calls", str(outcome.api_calls)),
        ("Duration", f"{outcome.duration_ms / 1000:.1f}s"),
    ]
    if outcome.commit_sha:
        summary.append(("Commit", outcome.commit_sha))
    out.print_summary("Push Complete", summary)


@main.command()
@click.option("--limit", "-n", type=int, default=10, help="Records to show")
@click.option("--clear", is_flag=True, help="Delete stored statistics")
@click.pass_context
def stats(ctx: Any, limit: int, clear: bool) -> None:
    """Show push statistics recorded on this machine."""
    out: OutputFormatter = ctx.obj["out"]
    store = PushStatisticsStore()

    if clear:
        if store.clear():
            out.success("Push statistics cleared")
        else:
            out.info("No push statistics stored")
        return

    summary = store.load()
    if out.json_output:
        data = summary.to_dict()
        data["records"] = data["records"][:limit]
        out.output_json(data)
        return

    out.print_summary(
        "Push Statistics",
        [
            ("Attempts", str(summary.total_attempts)),
            ("Successes", str(summary.total_successes)),
            ("Failures", str(summary.total_failures)),
            ("Last push", summary.last_push or "never"),
        ],
    )
    rows = [
        {
            "time": record.timestamp,
            "event": record.event.value,
            "repository": f"{record.repo_owner}/{record.repo_name}@{record.branch}",
            "files": record.files_count,
            "error": record.error or "",
        }
        for record in summary.records[:limit]
    ]
    if rows:
        out.print()
        out.output_table(
            rows,
            ["time", "event", "repository", "files", "error"],
            {
                "time": "Time",
                "event": "Event",
                "repository": "Repository",
                "files": "Files",
                "error": "Error",
            },
        )


if __name__ == "__main__":
    main()
