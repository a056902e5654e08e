from __future__ import annotations

import socket
from typing import Callable, Optional

import typer

from cli.config import CLIConfig
from protocol.channel import ChannelError, MessageChannel
from protocol.messages import Message, MessageKind


class CollectorClient:
    """Minimal client that answers server prompts until the server closes."""

    def __init__(self, config: CLIConfig) -> None:
        self._config = config
        self._channel: Optional[MessageChannel] = None

    def connect(self) -> None:
        if self._channel is not None:
            return
        address = self._config.address
        try:
            sock = socket.create_connection(address, timeout=self._config.connect_timeout)
        except OSError as exc:
            typer.secho(
                f"Cannot connect to server at {address[0]}:{address[1]}: {exc}",
                fg=typer.colors.RED,
                err=True,
            )
            raise typer.Exit(code=1)
        # the dialog waits on the user, so reads must not time out
        sock.settimeout(None)
        self._channel = MessageChannel(sock)

    def close(self) -> None:
        if self._channel is not None:
            self._channel.close()

    def run_dialog(
        self,
        answer: Callable[[str], str],
        on_message: Callable[[Message], None],
    ) -> bool:
        """Answer each request and hand every other message to ``on_message``.

        Returns ``True`` if the server reported success before closing.
        """
        self.connect()
        assert self._channel is not None
        succeeded = False
        try:
            while True:
                message = self._channel.receive()
                if message.kind is MessageKind.request:
                    self._channel.send(Message.response(answer(message.text)))
                    continue
                on_message(message)
                if message.kind is MessageKind.success:
                    succeeded = True
                elif message.kind is MessageKind.close:
                    return succeeded
        except ChannelError as exc:
            typer.secho(f"Connection to server lost: {exc}", fg=typer.colors.RED, err=True)
            raise typer.Exit(code=1)
