"""
Recognition outcomes.

One remote OCR attempt ends in exactly one of these variants; the outcome
classifier turns them into what gets persisted and what the caller sees.
"""

from dataclasses import dataclass
from typing import Optional, Union


@dataclass(frozen=True)
class Recognized:
    """Well-formed success payload with a numeric ``result``."""

    value: float
    raw: str


@dataclass(frozen=True)
class Unreadable:
    """HTTP success, but no usable value (HTML, bad JSON, missing/invalid result)."""

    raw_body: str


@dataclass(frozen=True)
class RemoteFailure:
    """
    Non-2xx answer, or a broken connection (``status_code`` is None).

    ``server_timeout`` is set when the body carries a timeout marker, i.e.
    the remote side gave up rather than failing outright.
    """

    status_code: Optional[int]
    body: str
    server_timeout: bool = False


@dataclass(frozen=True)
class TimedOut:
    """Local deadline elapsed before any response; the request was cancelled."""

    elapsed: float


RecognitionOutcome = Union[Recognized, Unreadable, RemoteFailure, TimedOut]
