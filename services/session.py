"""Per-connection dialog that collects one CO2 record."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional, Protocol

from models.records import Record
from protocol.channel import ChannelClosed, ChannelError, DecodeError
from protocol.messages import Message, MessageKind
from services.validation import FieldValidator, ValidationResult

logger = logging.getLogger(__name__)

WELCOME_TEXT = "Welcome to the CO2 monitoring service!"
SUCCESS_TEXT = "Data accepted and logged"
PERSISTENCE_ERROR_TEXT = "Data accepted but failed to write to database"


class SessionStage(str, Enum):
    """Dialog stages; ``complete`` is terminal."""

    awaiting_user_id = "awaiting_user_id"
    awaiting_postcode = "awaiting_postcode"
    awaiting_co2 = "awaiting_co2"
    complete = "complete"


PROMPTS: Dict[SessionStage, str] = {
    SessionStage.awaiting_user_id: "Please enter your User ID: ",
    SessionStage.awaiting_postcode: "Please enter your postcode: ",
    SessionStage.awaiting_co2: "Please enter the CO2 reading (in ppm): ",
}


class Channel(Protocol):
    def send(self, message: Message) -> None: ...

    def receive(self) -> Message: ...

    def close(self) -> None: ...


class RecordSink(Protocol):
    def append(self, record: Record) -> bool: ...


class ProtocolViolation(Exception):
    """The client sent a message kind the dialog does not accept."""


@dataclass
class SessionState:
    """Mutable dialog state; each field is set once and never overwritten."""

    stage: SessionStage = SessionStage.awaiting_user_id
    user_id: Optional[str] = None
    postcode: Optional[str] = None
    co2_ppm: Optional[float] = None


class CollectionSession:
    """Drives one client through the user ID, postcode and CO2 prompts.

    The session owns its channel and closes it when :meth:`run` returns,
    whatever the outcome. It is not reusable: one dialog per connection.
    """

    def __init__(
        self,
        channel: Channel,
        store: RecordSink,
        validator: Optional[FieldValidator] = None,
        session_id: Optional[str] = None,
    ) -> None:
        self.channel = channel
        self.store = store
        self.validator = validator or FieldValidator()
        self.session_id = session_id
        self.state = SessionState()

    @property
    def stage(self) -> SessionStage:
        return self.state.stage

    def run(self) -> SessionStage:
        logger.info("Session started", extra=self._log_extra())
        try:
            self.channel.send(Message.info(WELCOME_TEXT))
            self._prompt()
            while self.state.stage is not SessionStage.complete:
                self.handle_response(self._await_response())
            self.channel.send(Message.close())
            logger.info("Session complete", extra=self._log_extra())
        except ProtocolViolation as exc:
            logger.warning(
                "Protocol violation; ending session",
                extra=self._log_extra(reason=str(exc)),
            )
            self._abort(str(exc))
        except DecodeError as exc:
            logger.warning(
                "Undecodable message; ending session",
                extra=self._log_extra(reason=str(exc)),
            )
            self._abort("Undecodable message received; closing connection")
        except ChannelClosed as exc:
            logger.info(
                "Connection lost before dialog completed",
                extra=self._log_extra(reason=str(exc)),
            )
        except ChannelError as exc:
            logger.error("Channel failure", extra=self._log_extra(reason=str(exc)))
        finally:
            self.channel.close()
        return self.state.stage

    def handle_response(self, text: str) -> None:
        """Apply one response to the current stage and reply to the client."""
        stage = self.state.stage
        if stage is SessionStage.awaiting_user_id:
            self._accept_field(
                self.validator.validate_user_id(text), "user_id", SessionStage.awaiting_postcode
            )
        elif stage is SessionStage.awaiting_postcode:
            self._accept_field(
                self.validator.validate_postcode(text), "postcode", SessionStage.awaiting_co2
            )
        elif stage is SessionStage.awaiting_co2:
            self._accept_reading(self.validator.validate_co2(text))
        else:
            raise ProtocolViolation("Dialog is already complete")

    def _await_response(self) -> str:
        message = self.channel.receive()
        if message.kind is not MessageKind.response:
            raise ProtocolViolation(
                f"Unexpected {message.kind.value} message; expected a response"
            )
        return message.text

    def _accept_field(
        self, result: ValidationResult, field_name: str, next_stage: SessionStage
    ) -> None:
        if not result.valid:
            self._reject(result)
            return
        setattr(self.state, field_name, result.value)
        self.state.stage = next_stage
        self._prompt()

    def _accept_reading(self, result: ValidationResult) -> None:
        if not result.valid:
            self._reject(result)
            return

        assert self.state.user_id is not None and self.state.postcode is not None
        record = Record(
            user_id=self.state.user_id,
            postcode=self.state.postcode,
            co2_ppm=float(result.value),  # type: ignore[arg-type]
        )
        if not self.store.append(record):
            logger.warning(
                "Record could not be persisted; asking for the reading again",
                extra=self._log_extra(),
            )
            self.channel.send(Message.error(PERSISTENCE_ERROR_TEXT))
            self._prompt()
            return

        self.state.co2_ppm = record.co2_ppm
        self.state.stage = SessionStage.complete
        self.channel.send(Message.success(f"{SUCCESS_TEXT} at {record.timestamp}"))

    def _reject(self, result: ValidationResult) -> None:
        logger.debug("Input rejected", extra=self._log_extra(reason=result.error))
        self.channel.send(Message.error(result.error or "Invalid input"))
        self._prompt()

    def _prompt(self) -> None:
        self.channel.send(Message.request(PROMPTS[self.state.stage]))

    def _abort(self, reason: str) -> None:
        # best effort: the peer may already be gone
        try:
            self.channel.send(Message.error(reason))
            self.channel.send(Message.close())
        except ChannelError as exc:
            logger.debug("Could not notify client", extra=self._log_extra(reason=str(exc)))

    def _log_extra(self, **extra: Any) -> Dict[str, Any]:
        context: Dict[str, Any] = {
            "session_id": self.session_id,
            "peer": getattr(self.channel, "peer", None),
            "stage": self.state.stage.value,
            "user_id": self.state.user_id,
        }
        context.update(extra)
        return context
