"""Slot Generator: open start times for a service on a calendar date.

Candidates are walked from each window's start in fixed steps of
``SLOT_GRANULARITY_MINUTES`` (not in steps of the service duration), so a
long service can offer start times whose intervals overlap each other. A
candidate ``c`` survives when ``[c, c + duration)`` does not intersect
``[b, b + duration)`` for any active booking ``b``.
"""

import logging
from collections.abc import Iterable
from datetime import date

from sqlalchemy.orm import Session

from marketplace.core import config, errors
from marketplace.database import SlotLocks, storage_operation
from marketplace.models.service import Service
from marketplace.scheduling.ledger import BookingLedger
from marketplace.scheduling.rules import AvailabilityRuleStore
from marketplace.scheduling.times import format_minutes, parse_date, parse_time, weekday_index

logger = logging.getLogger(__name__)


def resolve_duration(duration_minutes: int | None, default: int | None = None) -> int:
    fallback = default if default is not None else config.DEFAULT_SERVICE_DURATION_MINUTES
    if duration_minutes is None or duration_minutes <= 0:
        return fallback
    return duration_minutes


def intervals_overlap(start_a: int, end_a: int, start_b: int, end_b: int) -> bool:
    return start_a < end_b and start_b < end_a


def generate_slots(
    windows: Iterable[tuple[int, int]],
    duration: int,
    booked: Iterable[int],
    step: int | None = None,
) -> list[str]:
    """Compute open "HH:MM" starts from (start, end) minute windows.

    The result is ascending with no duplicates, even when windows overlap
    or touch.
    """
    if step is None:
        step = config.SLOT_GRANULARITY_MINUTES
    if duration <= 0 or step <= 0:
        raise errors.ValidationError('Duration and step must be positive.')

    booked_starts = sorted(set(booked))
    open_starts: set[int] = set()

    for window_start, window_end in windows:
        candidate = window_start
        while candidate + duration <= window_end:
            candidate_end = candidate + duration
            if not any(
                intervals_overlap(candidate, candidate_end, booked_start, booked_start + duration)
                for booked_start in booked_starts
            ):
                open_starts.add(candidate)
            candidate += step

    return [format_minutes(minute) for minute in sorted(open_starts)]


class SlotGenerator:
    def __init__(
        self,
        db: Session,
        rules: AvailabilityRuleStore | None = None,
        ledger: BookingLedger | None = None,
        default_duration: int | None = None,
        granularity: int | None = None,
        slot_locks: SlotLocks | None = None,
    ) -> None:
        self.db = db
        self.rules = rules or AvailabilityRuleStore(db)
        self.ledger = ledger or BookingLedger(db, slot_locks)
        self.default_duration = default_duration or config.DEFAULT_SERVICE_DURATION_MINUTES
        self.granularity = granularity or config.SLOT_GRANULARITY_MINUTES

    def compute_available_slots(self, service_id: int, scheduled_date: str | date) -> list[str]:
        target_date = parse_date(scheduled_date)
        day_of_week = weekday_index(target_date)

        with storage_operation(self.db, 'compute_available_slots', service_id=service_id, date=str(target_date)):
            service = self.db.get(Service, service_id)
        if service is None:
            raise errors.NotFoundError('Service not found.')

        windows = self.rules.list_enabled_windows(service_id, day_of_week)
        if not windows:
            return []

        duration = resolve_duration(service.duration_minutes, self.default_duration)
        booked = self.ledger.booked_minutes(service_id, target_date)

        slots = generate_slots(
            [(parse_time(window.start_time), parse_time(window.end_time)) for window in windows],
            duration,
            booked,
            step=self.granularity,
        )
        logger.debug(
            'Service %s on %s: %s windows, %s booked, %s open slots',
            service_id,
            target_date,
            len(windows),
            len(booked),
            len(slots),
        )
        return slots
