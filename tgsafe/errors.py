"""Exception types shared across formatting and delivery."""

from __future__ import annotations

from enum import Enum
from typing import Optional


class TgsafeError(Exception):
    """Base class for every error raised by :mod:`tgsafe`."""


class ConfigError(TgsafeError, ValueError):
    """Configuration value is missing or has the wrong shape."""


class FormattingError(TgsafeError):
    """The markup escaper reached a state it cannot recover from.

    Never surfaced to callers of :func:`tgsafe.send_message`; the format
    pipeline catches it and degrades the message to stripped plain text.
    """


class FailureKind(str, Enum):
    TRANSPORT = "transport"
    API_REJECTION = "api_rejection"


class SendFailure(TgsafeError):
    """Remote send did not succeed.

    ``kind`` tells whether the request never got a usable answer
    (``TRANSPORT``) or the Bot API answered and declined the payload
    (``API_REJECTION``).  The delivery cascade treats both the same way.
    """

    def __init__(
        self,
        kind: FailureKind,
        description: str,
        *,
        status: Optional[int] = None,
        retry_after: Optional[float] = None,
    ) -> None:
        self.kind = kind
        self.description = description
        self.status = status
        self.retry_after = retry_after
        super().__init__(str(self))

    @classmethod
    def transport(cls, description: str) -> "SendFailure":
        return cls(FailureKind.TRANSPORT, description)

    @classmethod
    def rejection(
        cls,
        status: Optional[int],
        description: str,
        *,
        retry_after: Optional[float] = None,
    ) -> "SendFailure":
        return cls(
            FailureKind.API_REJECTION,
            description,
            status=status,
            retry_after=retry_after,
        )

    def __str__(self) -> str:
        if self.status is not None:
            return f"{self.kind.value} (status={self.status}): {self.description}"
        return f"{self.kind.value}: {self.description}"


__all__ = [
    "ConfigError",
    "FailureKind",
    "FormattingError",
    "SendFailure",
    "TgsafeError",
]
