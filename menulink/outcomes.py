from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional

TRANSPORT_FAILURE_MESSAGE = "Something went wrong. Please try again later."


class OutcomeKind(str, Enum):
    READY = "ready"
    NOT_FOUND = "not_found"
    INACTIVE = "inactive"
    OTHER = "other"


@dataclass(frozen=True)
class Outcome:
    kind: OutcomeKind
    payload: Any = None
    message: str = ""

    @property
    def ok(self) -> bool:
        return self.kind is OutcomeKind.READY


@dataclass(frozen=True)
class Wording:
    not_found: str
    failed: str
    inactive: str = "Membership is not active"


RESTAURANT_WORDING = Wording(not_found="Restaurant not found", failed="Failed to load restaurant")
PDF_WORDING = Wording(not_found="PDF not found", failed="Failed to load PDF")


def ready(payload: Any) -> Outcome:
    return Outcome(OutcomeKind.READY, payload=payload)


def other(message: str = TRANSPORT_FAILURE_MESSAGE) -> Outcome:
    return Outcome(OutcomeKind.OTHER, message=message)


def _message(body: dict, fallback: str) -> str:
    message = body.get("message")
    if isinstance(message, str) and message:
        return message
    return fallback


def classify(status_code: Optional[int], body: Any, wording: Wording = RESTAURANT_WORDING) -> Outcome:
    """Map an HTTP status and decoded JSON body onto an ``Outcome``.

    ``status_code`` is ``None`` when no response arrived at all. Markers are
    compared by identity so only a literal JSON ``false`` counts; ``slug`` is
    checked before ``membership``.
    """
    if status_code is None:
        return other()
    if not isinstance(body, dict):
        return other(wording.failed)

    success = body.get("success") is True
    if success and 200 <= status_code < 300:
        return ready(body)
    if body.get("slug") is False:
        return Outcome(OutcomeKind.NOT_FOUND, message=_message(body, wording.not_found))
    if body.get("membership") is False:
        return Outcome(OutcomeKind.INACTIVE, message=_message(body, wording.inactive))
    return other(_message(body, wording.failed))
