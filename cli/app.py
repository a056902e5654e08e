from __future__ import annotations

from dataclasses import dataclass, replace
from pathlib import Path
from typing import Dict, Optional

import typer

from app.main import run as run_server
from cli.client import CollectorClient
from cli.config import CLIConfig, load_config
from cli.render import render_message
from datastore.record_store import StoreInitializationError
from logging_config import configure_logging
from settings import MAX_PORT, MIN_PORT, get_settings


@dataclass
class CLIState:
    config: CLIConfig
    host: Optional[str] = None
    port: Optional[int] = None


app = typer.Typer(
    help="Collect CO2 readings over TCP: run the server or submit a reading.",
    context_settings={"help_option_names": ["-h", "--help"]},
)


def _get_state(ctx: typer.Context) -> CLIState:
    state = ctx.obj
    if not isinstance(state, CLIState):
        typer.secho("CLI state is uninitialized.", fg=typer.colors.RED, err=True)
        raise typer.Exit(code=1)
    return state


class PromptAnswers:
    """Answer prompts from pre-supplied values first, then interactively.

    A pre-supplied value is used once; if the server rejects it the user is
    asked for a replacement.
    """

    def __init__(self, presets: Dict[str, Optional[str]]) -> None:
        self._presets = {key: value for key, value in presets.items() if value is not None}

    def __call__(self, prompt: str) -> str:
        lowered = prompt.lower()
        for key in list(self._presets):
            if key in lowered:
                value = self._presets.pop(key)
                typer.echo(f"{prompt.strip()} {value}")
                return value
        return typer.prompt(prompt.strip().rstrip(":"))


@app.callback()
def main(
    ctx: typer.Context,
    host: Optional[str] = typer.Option(
        None,
        "--host",
        "-H",
        help="Server host (defaults to COLLECTOR_HOST env or 127.0.0.1).",
    ),
    port: Optional[int] = typer.Option(
        None,
        "--port",
        "-p",
        min=MIN_PORT,
        max=MAX_PORT,
        help="Server port (defaults to COLLECTOR_PORT env or 8080).",
    ),
) -> None:
    """Entry point for the CLI."""
    ctx.obj = CLIState(config=load_config(host=host, port=port), host=host, port=port)


@app.command("serve")
def serve_command(
    ctx: typer.Context,
    max_sessions: Optional[int] = typer.Option(
        None,
        "--max-sessions",
        min=1,
        help="Maximum concurrent client sessions.",
    ),
    store_path: Optional[Path] = typer.Option(
        None,
        "--store-path",
        dir_okay=False,
        help="CSV file that accepted records are appended to.",
    ),
    log_level: Optional[str] = typer.Option(None, "--log-level", help="Override LOG_LEVEL."),
) -> None:
    """Run the collector server until interrupted."""
    state = _get_state(ctx)
    base = get_settings()
    settings = replace(
        base,
        host=state.host or base.host,
        port=state.port or base.port,
        max_sessions=max_sessions or base.max_sessions,
        store_path=str(store_path) if store_path is not None else base.store_path,
    )
    if log_level:
        configure_logging(log_level.upper(), force=True)

    typer.echo(
        f"Serving on {settings.host}:{settings.port} "
        f"(max {settings.max_sessions} sessions, store {settings.store_path}). Press Ctrl+C to stop."
    )
    try:
        run_server(settings)
    except StoreInitializationError as exc:
        typer.secho(str(exc), fg=typer.colors.RED, err=True)
        raise typer.Exit(code=1)
    except OSError as exc:
        typer.secho(
            f"Could not start server on port {settings.port}: {exc}",
            fg=typer.colors.RED,
            err=True,
        )
        raise typer.Exit(code=1)


@app.command("submit")
def submit_command(
    ctx: typer.Context,
    user_id: Optional[str] = typer.Option(None, "--user-id", help="Answer for the User ID prompt."),
    postcode: Optional[str] = typer.Option(None, "--postcode", help="Answer for the postcode prompt."),
    co2: Optional[str] = typer.Option(None, "--co2", help="Answer for the CO2 reading prompt."),
) -> None:
    """Connect to the server and submit one CO2 reading."""
    state = _get_state(ctx)
    client = CollectorClient(state.config)
    ctx.call_on_close(client.close)
    typer.echo(f"Connecting to {state.config.host}:{state.config.port} ...")

    answers = PromptAnswers({"user id": user_id, "postcode": postcode, "co2": co2})
    if not client.run_dialog(answers, render_message):
        raise typer.Exit(code=1)
