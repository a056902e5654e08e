"""Pydantic schemas for messages exchanged over a collector connection."""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class MessageKind(str, Enum):
    """Message discriminator; ``response`` is the only client-to-server kind."""

    request = "request"
    response = "response"
    info = "info"
    error = "error"
    success = "success"
    close = "close"


class Message(BaseModel):
    """A single typed message carried in one frame."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    kind: MessageKind
    text: str = Field(default="", description="Prompt, answer, or status text.")

    @classmethod
    def request(cls, text: str) -> "Message":
        return cls(kind=MessageKind.request, text=text)

    @classmethod
    def response(cls, text: str) -> "Message":
        return cls(kind=MessageKind.response, text=text)

    @classmethod
    def info(cls, text: str) -> "Message":
        return cls(kind=MessageKind.info, text=text)

    @classmethod
    def error(cls, text: str) -> "Message":
        return cls(kind=MessageKind.error, text=text)

    @classmethod
    def success(cls, text: str) -> "Message":
        return cls(kind=MessageKind.success, text=text)

    @classmethod
    def close(cls) -> "Message":
        return cls(kind=MessageKind.close, text="")
