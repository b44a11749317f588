# meter_app/services/outcome_classifier.py

from dataclasses import dataclass

from meter_app.core.exceptions import RecognitionTransportFailure
from meter_app.models.meter_reading import PLACEHOLDER_VALUE, ReadingStatus
from meter_app.models.recognition import (
    RecognitionOutcome,
    Recognized,
    RemoteFailure,
    TimedOut,
    Unreadable,
)

MESSAGES = {
    ReadingStatus.SUCCESS: "Meter reading recognized",
    ReadingStatus.NEEDS_MANUAL_INPUT: "Could not read the meter value. The image was saved, please enter the value manually.",
    ReadingStatus.TIMEOUT: "Recognition timed out. The image was saved, please enter the value manually.",
}


@dataclass(frozen=True)
class Decision:
    value: float
    status: ReadingStatus

    @property
    def message(self) -> str:
        return MESSAGES[self.status]

    @property
    def is_placeholder(self) -> bool:
        return self.status is not ReadingStatus.SUCCESS


def classify(outcome: RecognitionOutcome) -> Decision:
    """
    Decide what to persist for one recognition attempt.

    Everything that still leaves a usable photo gets a row, with the
    placeholder value when nothing was read. A remote failure without a
    timeout signature raises ``RecognitionTransportFailure`` instead.
    """
    if isinstance(outcome, Recognized):
        return Decision(value=outcome.value, status=ReadingStatus.SUCCESS)
    if isinstance(outcome, Unreadable):
        return Decision(value=PLACEHOLDER_VALUE, status=ReadingStatus.NEEDS_MANUAL_INPUT)
    if isinstance(outcome, TimedOut):
        return Decision(value=PLACEHOLDER_VALUE, status=ReadingStatus.TIMEOUT)
    if isinstance(outcome, RemoteFailure):
        if outcome.server_timeout:
            return Decision(value=PLACEHOLDER_VALUE, status=ReadingStatus.TIMEOUT)
        status = outcome.status_code if outcome.status_code is not None else "connection error"
        raise RecognitionTransportFailure(
            f"Recognition service request failed ({status})",
            status_code=outcome.status_code,
        )
    raise TypeError(f"Unknown recognition outcome: {outcome!r}")
