from __future__ import annotations

import typer

from protocol.messages import Message, MessageKind


def render_message(message: Message) -> None:
    """Print a server message; requests are prompted for, not rendered."""
    if message.kind is MessageKind.error:
        typer.secho(f"ERROR: {message.text}", fg=typer.colors.RED)
    elif message.kind is MessageKind.success:
        typer.secho(f"SUCCESS: {message.text}", fg=typer.colors.GREEN)
    elif message.kind is MessageKind.info:
        typer.secho(message.text, bold=True)
    elif message.kind is MessageKind.close:
        typer.echo("Connection closed by server.")
