"""Typer CLI entrypoint for the batch scraper."""

from __future__ import annotations

import json
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Any, List, Optional

import typer
from rich import box
from rich.console import Console
from rich.table import Table

from .config import ConfigRepository, ScraperSettings
from .errors import OrchestrationError, ValidationError
from .logging_conf import available_job_logs, configure_logging, log_dir, tail_log
from .orchestrator import ScrapeOrchestrator
from .store import JobStore, build_store
from .ui import ProgressReporter

app = typer.Typer(
    help="Batch scraper command line tool",
    no_args_is_help=True,
    rich_markup_mode=None,
)
log_app = typer.Typer(
    name="log",
    help="Inspect log files",
    no_args_is_help=True,
    rich_markup_mode=None,
)

console = Console()

EXIT_VALIDATION = 1
EXIT_INTERNAL = 2


@dataclass
class AppState:
    repository: ConfigRepository
    settings: ScraperSettings
    store: JobStore
    orchestrator: ScrapeOrchestrator

    def close(self) -> None:
        self.orchestrator.close()
        self.store.close()


def build_state(verbose: bool) -> AppState:
    configure_logging(verbose=verbose)
    repository = ConfigRepository()
    settings = repository.load_settings()
    store = build_store(settings, repository.locator.project_root)
    orchestrator = ScrapeOrchestrator(settings, store)
    return AppState(
        repository=repository,
        settings=settings,
        store=store,
        orchestrator=orchestrator,
    )


def _get_state(ctx: typer.Context) -> AppState:
    state = ctx.obj
    if state is None:
        state = build_state(verbose=False)
        ctx.obj = state
        ctx.call_on_close(state.close)
    return state


def _progress_default_enabled() -> bool:
    return bool(getattr(sys.stdout, "isatty", lambda: False)())


def _shorten(url: str, limit: int) -> str:
    return url if len(url) <= limit else url[: limit - 3] + "..."


def _render_results_table(payload: dict[str, Any], limit: int) -> Table:
    style = {"OK": "green", "PARTIAL": "yellow", "FAILED": "red"}.get(payload["status"], "white")
    table = Table(
        title=f"Job {payload['jobId']} [{style}]{payload['status']}[/{style}]",
        box=box.SIMPLE_HEAD,
    )
    table.add_column("#", style="dim", justify="right")
    table.add_column("URL", overflow="fold")
    table.add_column("OK", justify="center")
    table.add_column("HTTP", justify="right")
    table.add_column("Error", style="red", overflow="fold")
    for index, row in enumerate(payload["results"], start=1):
        table.add_row(
            str(index),
            _shorten(row["url"], limit),
            "[green]✓[/green]" if row["ok"] else "[red]✗[/red]",
            str(row.get("statusCode", "")),
            row.get("error", ""),
        )
    return table


def _render_issues(issues: list[dict[str, Any]]) -> Table:
    table = Table(title="Invalid request", box=box.SIMPLE_HEAD, title_style="red")
    table.add_column("Field", style="cyan")
    table.add_column("Problem")
    for issue in issues:
        location = ".".join(str(part) for part in issue.get("loc", ())) or "body"
        table.add_row(location, str(issue.get("msg", "")))
    return table


def _build_payload(
    state: AppState,
    urls: Optional[List[str]],
    request_file: Optional[Path],
    label: Optional[str],
    config_file: Optional[Path],
) -> dict[str, Any]:
    payload: dict[str, Any] = {}
    if request_file is not None:
        payload.update(state.repository.load_request_file(request_file))
    if urls:
        payload["urls"] = list(payload.get("urls") or []) + list(urls)
    payload.setdefault("urls", [])
    if label is not None:
        payload["label"] = label
    if config_file is not None:
        try:
            payload["config"] = state.repository.load_mapping_file(config_file)
        except ValueError as exc:
            raise typer.BadParameter(str(exc), param_hint="--config") from exc
    return payload


@app.callback()
def main(
    ctx: typer.Context,
    verbose: bool = typer.Option(False, "--verbose", help="Enable debug logging.", is_flag=True),
) -> None:
    state = build_state(verbose)
    ctx.obj = state
    ctx.call_on_close(state.close)


@app.command("submit", help="Fetch and parse a batch of URLs as one job.")
def submit(
    ctx: typer.Context,
    urls: Optional[List[str]] = typer.Argument(None, help="URLs to fetch."),
    request_file: Optional[Path] = typer.Option(
        None, "--file", "-f", help="YAML/JSON file with urls, label and config."
    ),
    label: Optional[str] = typer.Option(None, "--label", help="Human readable job label."),
    config_file: Optional[Path] = typer.Option(
        None, "--config", help="YAML/JSON file holding the job config mapping."
    ),
    as_json: bool = typer.Option(False, "--json", help="Print the raw response as JSON.", is_flag=True),
    progress: Optional[bool] = typer.Option(
        None, "--progress/--no-progress", help="Show a live progress bar."
    ),
) -> None:
    state = _get_state(ctx)
    payload = _build_payload(state, urls, request_file, label, config_file)

    progress_flag = _progress_default_enabled() if progress is None else progress
    reporter = ProgressReporter(
        enabled=progress_flag and state.settings.enable_progress_bar and not as_json,
        max_url_length=state.settings.max_url_display_length,
    )
    reporter.set_label(str(payload.get("label") or "batch")[:12])
    try:
        response = state.orchestrator.submit(
            payload,
            on_start=reporter.start,
            on_outcome=lambda outcome: reporter.advance(outcome.ok, current_url=outcome.url),
        )
    except ValidationError as exc:
        if as_json:
            typer.echo(json.dumps({"error": "Invalid body", "issues": exc.issues}, ensure_ascii=False))
        else:
            console.print(_render_issues(exc.issues))
        raise typer.Exit(code=EXIT_VALIDATION)
    except OrchestrationError as exc:
        if as_json:
            typer.echo(json.dumps({"error": "Internal server error", "message": str(exc)}))
        else:
            console.print(f"Job failed before completion: {exc}", style="red")
        raise typer.Exit(code=EXIT_INTERNAL)
    finally:
        reporter.close()

    body = response.to_dict()
    if as_json:
        typer.echo(json.dumps(body, ensure_ascii=False))
        return
    console.print(_render_results_table(body, state.settings.max_url_display_length))
    stats = response.summary.stats
    console.print(
        f"requested {stats.total_urls_requested}, unique {stats.total_urls_unique}, "
        f"success {stats.success}, failed {stats.failed}, {stats.duration_ms} ms"
    )


def _reader(state: AppState) -> Any:
    if not hasattr(state.store, "list_jobs"):
        console.print(
            f"The `{state.settings.store.backend.value}` store does not support listing.",
            style="red",
        )
        raise typer.Exit(code=EXIT_VALIDATION)
    return state.store


@app.command("jobs", help="List recent jobs.")
def jobs(
    ctx: typer.Context,
    limit: int = typer.Option(20, "--limit", help="Number of jobs to show."),
) -> None:
    state = _get_state(ctx)
    rows = _reader(state).list_jobs(limit=limit)
    if not rows:
        console.print("No jobs yet.", style="dim")
        return
    table = Table(title=f"Latest {len(rows)} jobs", box=box.SIMPLE_HEAD)
    table.add_column("ID", style="cyan")
    table.add_column("Label", overflow="fold")
    table.add_column("Status")
    table.add_column("OK/Total", justify="right")
    table.add_column("Started", style="dim")
    for row in rows:
        stats = row.get("stats") or {}
        ratio = f"{stats.get('success', '-')}/{stats.get('total_urls_unique', len(row['seeds']))}"
        table.add_row(row["id"], row["label"], row["status"], ratio, str(row.get("last_run_at")))
    console.print(table)


@app.command("show", help="Show per-target outcomes of one job.")
def show(ctx: typer.Context, job_id: str = typer.Argument(..., help="Job id.")) -> None:
    state = _get_state(ctx)
    reader = _reader(state)
    job = reader.get_job(job_id)
    if job is None:
        console.print(f"Job `{job_id}` not found.", style="red")
        raise typer.Exit(code=EXIT_VALIDATION)
    results = {row["target_id"]: row for row in reader.list_results(job_id)}
    errors = {row["target_id"]: row for row in reader.list_errors(job_id)}
    table = Table(title=f"{job['label']} ({job['status']})", box=box.SIMPLE_HEAD)
    table.add_column("URL", overflow="fold")
    table.add_column("HTTP", justify="right")
    table.add_column("Title / Error", overflow="fold")
    for target in reader.list_targets(job_id):
        result = results.get(target["id"])
        error = errors.get(target["id"])
        if result is not None:
            detail = result["structured"].get("title") or ""
        elif error is not None:
            detail = f"[red]{error['code']}: {error['message']}[/red]"
        else:
            detail = "[dim]pending[/dim]"
        status = target.get("last_status")
        table.add_row(target["url"], "" if status is None else str(status), detail)
    console.print(table)


@app.command("serve", help="Serve the HTTP submission endpoint.")
def serve(
    ctx: typer.Context,
    host: str = typer.Option("127.0.0.1", "--host"),
    port: int = typer.Option(8000, "--port"),
) -> None:
    import uvicorn

    from .api import create_app

    state = _get_state(ctx)
    uvicorn.run(create_app(state.orchestrator), host=host, port=port)


app.add_typer(log_app, name="log", help="List or tail log files")


@log_app.command("list", help="List per-job log files.")
def log_list() -> None:
    logs = list(available_job_logs())
    if not logs:
        console.print("No job logs yet.", style="dim")
        return
    table = Table(box=box.SIMPLE_HEAD)
    table.add_column("File", style="green")
    for path in logs:
        table.add_row(path.name)
    console.print(table)


@log_app.command("show", help="Show the tail of the global or a job log.")
def log_show(
    job_id: Optional[str] = typer.Option(None, "--job", help="Job id (global log when omitted)."),
    tail: int = typer.Option(100, "--tail", help="Number of lines."),
) -> None:
    base_dir = log_dir()
    path = base_dir / "jobs" / f"{job_id}.log" if job_id else base_dir / "scraper.log"
    lines = tail_log(path, tail)
    if not lines:
        console.print(f"No log content at {path}.", style="dim")
        return
    for line in lines:
        typer.echo(line.rstrip("\n"))


def cli() -> None:
    app()


if __name__ == "__main__":
    cli()
