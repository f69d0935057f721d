"""CLI entrypoint for manuscript-review."""

from __future__ import annotations

from pathlib import Path

import typer
import uvicorn

from manuscript_review.passage import count_occurrences
from manuscript_review.report_parser import is_valid_tool_report, parse_tool_report

app = typer.Typer(name="manuscript-review", help="One-by-one review of AI-suggested manuscript edits", invoke_without_command=True)


@app.callback(invoke_without_command=True)
def start(
    ctx: typer.Context,
    port: int = typer.Option(3000, help="Server port"),
    state_dir: Path | None = typer.Option(None, help="Directory for config.yaml and the session cache"),
) -> None:
    """Start the manuscript review server."""
    if ctx.invoked_subcommand is not None:
        return

    from manuscript_review.server import create_app

    fastapi_app = create_app(state_dir=state_dir)

    typer.echo(f"Starting Manuscript Review on http://localhost:{port}")

    log_config = uvicorn.config.LOGGING_CONFIG
    log_config["formatters"]["default"]["fmt"] = "%(asctime)s %(levelprefix)s %(message)s"
    log_config["formatters"]["default"]["datefmt"] = "%Y-%m-%d %H:%M:%S"
    log_config["formatters"]["access"]["fmt"] = '%(asctime)s %(levelprefix)s %(client_addr)s - "%(request_line)s" %(status_code)s'
    log_config["formatters"]["access"]["datefmt"] = "%Y-%m-%d %H:%M:%S"
    log_config["loggers"]["manuscript_review"] = {"handlers": ["default"], "level": "INFO", "propagate": False}

    config = uvicorn.Config(
        fastapi_app,
        host="0.0.0.0",
        port=port,
        log_level="info",
        log_config=log_config,
        timeout_graceful_shutdown=1,
    )
    uvicorn.Server(config).run()


@app.command("inspect")
def inspect_report(
    report: Path = typer.Argument(..., exists=True, dir_okay=False, help="Edit report text file"),
    manuscript: Path = typer.Argument(..., exists=True, dir_okay=False, help="Manuscript text file"),
) -> None:
    """List the edits in REPORT and whether each passage can be located in MANUSCRIPT."""
    report_text = report.read_text(encoding="utf-8")
    content = manuscript.read_text(encoding="utf-8")

    if not is_valid_tool_report(report_text):
        typer.echo("Report does not contain readable issues", err=True)
        raise typer.Exit(code=1)

    issues = parse_tool_report(report_text)
    if not issues:
        typer.echo("No issues found in report", err=True)
        raise typer.Exit(code=1)

    for issue in issues:
        count = count_occurrences(content, issue.passage)
        if count == 0:
            where = "missing"
        elif count == 1:
            where = "found"
        else:
            where = f"ambiguous ({count} matches)"
        excerpt = issue.passage.replace("\n", " ")[:60]
        typer.echo(f"[{issue.id + 1}] {where}: {excerpt}")

    typer.echo(f"{len(issues)} issue(s)")


if __name__ == "__main__":
    app()
