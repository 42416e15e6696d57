"""
Stop / POD progress. Pure functions over a route's stop list. No storage.
"""

from dataclasses import replace
from datetime import datetime, timezone
from typing import Iterable, Optional

from transport_backend.domain.errors import PreconditionError
from transport_backend.domain.models import (
    STOP_ARRIVED,
    STOP_COMPLETED,
    STOP_FAILED,
    STOP_PENDING,
    PodData,
    Stop,
)

# target status -> statuses it may be reached from
STOP_TRANSITIONS = {
    STOP_ARRIVED: frozenset({STOP_PENDING}),
    STOP_COMPLETED: frozenset({STOP_ARRIVED}),
    STOP_FAILED: frozenset({STOP_PENDING, STOP_ARRIVED}),
}

TERMINAL_STOP_STATUSES = frozenset({STOP_COMPLETED, STOP_FAILED})


def _now() -> datetime:
    return datetime.now(timezone.utc)


def compute_progress(stops: list[Stop]) -> int:
    """
    Percentage of completed stops, rounded half-up. 0 for an empty list.
    Only a fully completed list reaches 100; anything short of that caps at 99.
    """
    if not stops:
        return 0
    completed = sum(1 for s in stops if s.status == STOP_COMPLETED)
    if completed == len(stops):
        return 100
    # half-up (round() is half-even)
    return min(99, int(100 * completed / len(stops) + 0.5))


def is_route_complete(stops: list[Stop]) -> bool:
    """True iff every stop is completed. Failed stops block auto-completion."""
    return bool(stops) and all(s.status == STOP_COMPLETED for s in stops)


def all_stops_terminal(stops: list[Stop]) -> bool:
    return all(s.status in TERMINAL_STOP_STATUSES for s in stops)


def pod_count(stops: list[Stop]) -> int:
    return sum(1 for s in stops if s.has_pod)


def apply_pod(stop: Stop, pod: PodData, now: Optional[datetime] = None) -> Stop:
    """
    Record proof of delivery and complete the stop.
    Re-applying the same payload to a completed stop returns it unchanged.
    """
    recipient = (pod.recipient_name or "").strip()
    if not recipient:
        raise PreconditionError("Recipient name is required for proof of delivery")
    if stop.status == STOP_FAILED:
        raise PreconditionError(f"Stop {stop.sequence} was marked failed; proof of delivery not accepted")

    if (
        stop.status == STOP_COMPLETED
        and stop.recipient_name == recipient
        and stop.delivery_notes == pod.delivery_notes
        and stop.pod_photo_url == pod.pod_photo_url
        and stop.signature_url == pod.signature_url
    ):
        return stop

    return replace(
        stop,
        status=STOP_COMPLETED,
        recipient_name=recipient,
        delivery_notes=pod.delivery_notes,
        pod_photo_url=pod.pod_photo_url,
        signature_url=pod.signature_url,
        completed_at=stop.completed_at if stop.status == STOP_COMPLETED else (now or _now()),
    )


def apply_stop_transition(
    stop: Stop,
    new_status: str,
    notes: Optional[str] = None,
    now: Optional[datetime] = None,
) -> Stop:
    """pending -> arrived -> completed, pending|arrived -> failed. Anything else raises."""
    allowed_from = STOP_TRANSITIONS.get(new_status)
    if allowed_from is None or stop.status not in allowed_from:
        raise PreconditionError(
            f"Stop {stop.sequence} cannot move from {stop.status!r} to {new_status!r}"
        )
    now = now or _now()
    changes: dict = {"status": new_status}
    if new_status == STOP_ARRIVED:
        changes["actual_arrival"] = now
    elif new_status == STOP_COMPLETED:
        changes["completed_at"] = now
    elif new_status == STOP_FAILED and notes:
        changes["failure_reason"] = notes
    if notes and new_status in TERMINAL_STOP_STATUSES:
        changes["delivery_notes"] = notes
    return replace(stop, **changes)


def renumber_stops(stops: Iterable[Stop]) -> list[Stop]:
    """Contiguous sequences 1..n in the given visiting order."""
    return [replace(s, sequence=i) for i, s in enumerate(stops, start=1)]


def validate_sequences(stops: list[Stop]) -> None:
    sequences = sorted(s.sequence for s in stops)
    if sequences != list(range(1, len(stops) + 1)):
        raise PreconditionError(f"Stop sequences must be contiguous from 1, got {sequences}")
    ids = [s.stop_id for s in stops]
    if len(set(ids)) != len(ids):
        raise PreconditionError("Stop ids must be unique within a route")


def replace_stop(stops: list[Stop], updated: Stop) -> list[Stop]:
    return [updated if s.stop_id == updated.stop_id else s for s in stops]
