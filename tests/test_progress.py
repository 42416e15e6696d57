from datetime import datetime, timezone

import pytest

from transport_backend.domain.errors import PreconditionError
from transport_backend.domain.models import PodData, Stop
from transport_backend.domain.progress import (
    all_stops_terminal,
    apply_pod,
    apply_stop_transition,
    compute_progress,
    is_route_complete,
    pod_count,
    renumber_stops,
    validate_sequences,
)

NOW = datetime(2025, 10, 9, 14, 30, tzinfo=timezone.utc)


def stops(*statuses):
    return [Stop(stop_id=f"S{i}", sequence=i, address=f"Stop {i}", status=s) for i, s in enumerate(statuses, 1)]


def test_progress_of_empty_route_is_zero():
    assert compute_progress([]) == 0
    assert is_route_complete([]) is False


@pytest.mark.parametrize(
    "statuses, expected",
    [
        (("completed", "completed", "pending"), 67),
        (("completed", "pending", "pending"), 33),
        (("completed", "pending"), 50),
        (("completed", "arrived", "failed", "pending", "pending", "pending", "pending", "pending"), 13),
        (("completed",) * 4, 100),
        (("failed", "failed"), 0),
    ],
)
def test_progress_rounds_completed_ratio(statuses, expected):
    assert compute_progress(stops(*statuses)) == expected


def test_progress_rounds_half_up():
    # 1/8 = 12.5%
    assert compute_progress(stops("completed", *["pending"] * 7)) == 13


@pytest.mark.parametrize(
    "completed, total, expected",
    [(199, 200, 99), (999, 1000, 99), (200, 200, 100), (1, 200, 1)],
)
def test_progress_reaches_100_only_when_every_stop_is_completed(completed, total, expected):
    s = stops(*(["completed"] * completed + ["pending"] * (total - completed)))
    assert compute_progress(s) == expected
    assert (compute_progress(s) == 100) == is_route_complete(s)


def test_failed_stop_blocks_completion():
    s = stops("completed", "failed", "completed")
    assert is_route_complete(s) is False
    assert all_stops_terminal(s) is True


def test_route_complete_only_when_every_stop_completed():
    assert is_route_complete(stops("completed", "completed")) is True
    assert is_route_complete(stops("completed", "arrived")) is False


def test_apply_pod_completes_stop():
    stop = stops("arrived")[0]
    pod = PodData(recipient_name="  Chinedu Eze ", delivery_notes="Left with gate security", pod_photo_url="https://cdn/p.jpg")

    done = apply_pod(stop, pod, now=NOW)

    assert done.status == "completed"
    assert done.recipient_name == "Chinedu Eze"
    assert done.delivery_notes == "Left with gate security"
    assert done.pod_photo_url == "https://cdn/p.jpg"
    assert done.completed_at == NOW
    assert done.has_pod
    assert stop.status == "arrived"


def test_apply_pod_accepted_from_pending():
    assert apply_pod(stops("pending")[0], PodData(recipient_name="Bisi"), now=NOW).status == "completed"


@pytest.mark.parametrize("name", ["", "   "])
def test_apply_pod_requires_recipient(name):
    with pytest.raises(PreconditionError):
        apply_pod(stops("arrived")[0], PodData(recipient_name=name))


def test_apply_pod_rejected_on_failed_stop():
    with pytest.raises(PreconditionError):
        apply_pod(stops("failed")[0], PodData(recipient_name="Bisi"))


def test_apply_same_pod_twice_is_unchanged():
    pod = PodData(recipient_name="Bisi", delivery_notes="ok")
    first = apply_pod(stops("arrived")[0], pod, now=NOW)
    again = apply_pod(first, pod, now=datetime(2030, 1, 1, tzinfo=timezone.utc))
    assert again == first


@pytest.mark.parametrize(
    "current, target",
    [("pending", "arrived"), ("arrived", "completed"), ("pending", "failed"), ("arrived", "failed")],
)
def test_allowed_stop_transitions(current, target):
    assert apply_stop_transition(stops(current)[0], target, now=NOW).status == target


@pytest.mark.parametrize(
    "current, target",
    [
        ("completed", "pending"),
        ("completed", "arrived"),
        ("failed", "arrived"),
        ("pending", "completed"),
        ("pending", "pending"),
        ("arrived", "delivered"),
    ],
)
def test_invalid_stop_transitions(current, target):
    with pytest.raises(PreconditionError):
        apply_stop_transition(stops(current)[0], target)


def test_transition_records_timestamps_and_notes():
    arrived = apply_stop_transition(stops("pending")[0], "arrived", now=NOW)
    assert arrived.actual_arrival == NOW

    failed = apply_stop_transition(arrived, "failed", notes="Customer not available")
    assert failed.failure_reason == "Customer not available"
    assert failed.delivery_notes == "Customer not available"


def test_pod_count():
    s = stops("completed", "pending")
    s[0] = apply_pod(s[0], PodData(recipient_name="Bisi"), now=NOW)
    assert pod_count(s) == 1


def test_renumber_and_validate_sequences():
    renumbered = renumber_stops(reversed(stops("pending", "pending", "pending")))
    assert [s.sequence for s in renumbered] == [1, 2, 3]
    assert [s.stop_id for s in renumbered] == ["S3", "S2", "S1"]
    validate_sequences(renumbered)

    gap = [Stop(stop_id="A", sequence=1, address="a"), Stop(stop_id="B", sequence=3, address="b")]
    with pytest.raises(PreconditionError):
        validate_sequences(gap)

    duplicate = [Stop(stop_id="A", sequence=1, address="a"), Stop(stop_id="A", sequence=2, address="b")]
    with pytest.raises(PreconditionError):
        validate_sequences(duplicate)
