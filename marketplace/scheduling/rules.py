"""Availability Rule Store: weekly recurring windows per service."""

import logging
from collections.abc import Iterable
from typing import NamedTuple

from sqlalchemy.orm import Session

from marketplace.core import errors
from marketplace.database import storage_operation
from marketplace.models.availability import AvailabilityWindow
from marketplace.models.service import Service
from marketplace.scheduling.times import normalize_time, parse_time, validate_day_of_week

logger = logging.getLogger(__name__)


class WindowSpec(NamedTuple):
    day_of_week: int
    start_time: str
    end_time: str
    enabled: bool = True


def validate_window(day_of_week: int, start_time: str, end_time: str) -> tuple[int, str, str]:
    """Check a window's day and range, returning it with zero-padded times."""
    day = validate_day_of_week(day_of_week)
    if parse_time(start_time) >= parse_time(end_time):
        raise errors.ValidationError('Start time must be before end time.')
    return day, normalize_time(start_time), normalize_time(end_time)


class AvailabilityRuleStore:
    def __init__(self, db: Session) -> None:
        self.db = db

    def _require_service(self, service_id: int) -> Service:
        service = self.db.get(Service, service_id)
        if service is None:
            raise errors.NotFoundError('Service not found.')
        return service

    def add_window(
        self,
        service_id: int,
        day_of_week: int,
        start_time: str,
        end_time: str,
        enabled: bool = True,
    ) -> AvailabilityWindow:
        day, start, end = validate_window(day_of_week, start_time, end_time)

        with storage_operation(self.db, 'add_window', service_id=service_id, day_of_week=day):
            self._require_service(service_id)

            window = AvailabilityWindow(
                service_id=service_id,
                day_of_week=day,
                start_time=start,
                end_time=end,
                is_enabled=enabled,
            )
            self.db.add(window)
            self.db.commit()
            self.db.refresh(window)

        logger.info('Added window %s for service %s: day %s %s-%s', window.id, service_id, day, start, end)
        return window

    def list_enabled_windows(self, service_id: int, day_of_week: int) -> list[AvailabilityWindow]:
        day = validate_day_of_week(day_of_week)

        with storage_operation(self.db, 'list_enabled_windows', service_id=service_id, day_of_week=day):
            return self.db.query(AvailabilityWindow).filter(
                AvailabilityWindow.service_id == service_id,
                AvailabilityWindow.day_of_week == day,
                AvailabilityWindow.is_enabled.is_(True),
            ).order_by(AvailabilityWindow.start_time.asc(), AvailabilityWindow.id.asc()).all()

    def list_windows(self, service_id: int) -> list[AvailabilityWindow]:
        with storage_operation(self.db, 'list_windows', service_id=service_id):
            self._require_service(service_id)
            return self.db.query(AvailabilityWindow).filter(
                AvailabilityWindow.service_id == service_id,
            ).order_by(
                AvailabilityWindow.day_of_week.asc(),
                AvailabilityWindow.start_time.asc(),
                AvailabilityWindow.id.asc(),
            ).all()

    def get_window(self, window_id: int) -> AvailabilityWindow:
        with storage_operation(self.db, 'get_window', window_id=window_id):
            window = self.db.get(AvailabilityWindow, window_id)
        if window is None:
            raise errors.NotFoundError('Availability window not found.')
        return window

    def set_window_enabled(self, window_id: int, enabled: bool) -> AvailabilityWindow:
        with storage_operation(self.db, 'set_window_enabled', window_id=window_id):
            window = self.db.get(AvailabilityWindow, window_id)
            if window is None:
                raise errors.NotFoundError('Availability window not found.')

            window.is_enabled = enabled
            self.db.commit()
            self.db.refresh(window)

        logger.info('Window %s %s', window_id, 'enabled' if enabled else 'disabled')
        return window

    def replace_windows(self, service_id: int, windows: Iterable[WindowSpec]) -> list[AvailabilityWindow]:
        """Swap every window of a service for ``windows`` in one transaction."""
        validated = []
        for entry in windows:
            spec = WindowSpec(*entry)
            validated.append((validate_window(spec.day_of_week, spec.start_time, spec.end_time), spec.enabled))

        with storage_operation(self.db, 'replace_windows', service_id=service_id):
            self._require_service(service_id)

            self.db.query(AvailabilityWindow).filter(
                AvailabilityWindow.service_id == service_id,
            ).delete(synchronize_session=False)

            created = [
                AvailabilityWindow(
                    service_id=service_id,
                    day_of_week=day,
                    start_time=start,
                    end_time=end,
                    is_enabled=enabled,
                )
                for (day, start, end), enabled in validated
            ]
            self.db.add_all(created)
            self.db.commit()
            for window in created:
                self.db.refresh(window)

        logger.info('Replaced windows for service %s (%s windows)', service_id, len(created))
        return sorted(created, key=lambda window: (window.day_of_week, window.start_time, window.id))

    def remove_window(self, window_id: int) -> None:
        with storage_operation(self.db, 'remove_window', window_id=window_id):
            deleted = self.db.query(AvailabilityWindow).filter(
                AvailabilityWindow.id == window_id,
            ).delete(synchronize_session=False)
            self.db.commit()

        if deleted:
            logger.info('Removed window %s', window_id)
