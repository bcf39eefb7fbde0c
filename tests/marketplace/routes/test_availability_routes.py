from datetime import date

import pytest
from fastapi import HTTPException
from pydantic import ValidationError

from marketplace.models.availability import AvailabilityWindow
from marketplace.models.user import USER_TYPE_CLIENT, USER_TYPE_PROVIDER
from marketplace.routes.availability_routes import (
    ReplaceWindowsRequest,
    UpdateWindowRequest,
    WindowRequest,
    create_window,
    delete_window,
    list_available_slots,
    list_windows,
    replace_windows,
    update_window,
)


def test_window_request_normalizes_times() -> None:
    request = WindowRequest(day_of_week=1, start_time='8:00', end_time='12:00')

    assert request.start_time == '08:00'
    assert request.enabled is True


@pytest.mark.parametrize(
    'payload',
    [
        {'day_of_week': 7, 'start_time': '08:00', 'end_time': '12:00'},
        {'day_of_week': 1, 'start_time': '12:00', 'end_time': '08:00'},
        {'day_of_week': 1, 'start_time': '8am', 'end_time': '12:00'},
    ],
)
def test_window_request_rejects_invalid_payloads(payload: dict) -> None:
    with pytest.raises(ValidationError):
        WindowRequest(**payload)


def test_create_window_requires_service_owner(db, make_service, make_user) -> None:
    service = make_service()
    other_provider = make_user(USER_TYPE_PROVIDER)

    with pytest.raises(HTTPException) as exception_info:
        create_window(
            service_id=service.id,
            data=WindowRequest(day_of_week=1, start_time='08:00', end_time='12:00'),
            db=db,
            current_user=other_provider,
        )

    assert exception_info.value.status_code == 403


def test_create_window_returns_404_for_unknown_service(db, make_user) -> None:
    with pytest.raises(HTTPException) as exception_info:
        create_window(
            service_id=999,
            data=WindowRequest(day_of_week=1, start_time='08:00', end_time='12:00'),
            db=db,
            current_user=make_user(USER_TYPE_PROVIDER),
        )

    assert exception_info.value.status_code == 404
    assert exception_info.value.detail == 'Service not found.'


def test_provider_manages_windows_and_clients_see_slots(db, database, make_service, make_user) -> None:
    provider = make_user(USER_TYPE_PROVIDER)
    service = make_service(provider=provider, duration_minutes=60)

    morning = create_window(
        service_id=service.id,
        data=WindowRequest(day_of_week=1, start_time='08:00', end_time='10:00'),
        db=db,
        current_user=provider,
    )
    create_window(
        service_id=service.id,
        data=WindowRequest(day_of_week=1, start_time='14:00', end_time='15:00'),
        db=db,
        current_user=provider,
    )

    slots = list_available_slots(service_id=service.id, slot_date=date(2026, 1, 5), db=db, database=database)
    assert slots == ['08:00', '08:30', '09:00', '14:00']

    update_window(window_id=morning.id, data=UpdateWindowRequest(enabled=False), db=db, current_user=provider)
    slots = list_available_slots(service_id=service.id, slot_date=date(2026, 1, 5), db=db, database=database)
    assert slots == ['14:00']

    assert [window.id for window in list_windows(service_id=service.id, db=db)][0] == morning.id


def test_replace_windows_route_swaps_schedule(db, make_service, make_user) -> None:
    provider = make_user(USER_TYPE_PROVIDER)
    service = make_service(provider=provider)
    db.add(AvailabilityWindow(service_id=service.id, day_of_week=1, start_time='08:00', end_time='12:00'))
    db.commit()

    windows = replace_windows(
        service_id=service.id,
        data=ReplaceWindowsRequest(
            windows=[
                WindowRequest(day_of_week=6, start_time='08:00', end_time='14:00'),
                WindowRequest(day_of_week=0, start_time='08:00', end_time='12:00', enabled=False),
            ]
        ),
        db=db,
        current_user=provider,
    )

    assert [(window.day_of_week, window.is_enabled) for window in windows] == [(0, False), (6, True)]


def test_delete_window_is_idempotent(db, make_service, make_user) -> None:
    provider = make_user(USER_TYPE_PROVIDER)
    service = make_service(provider=provider)
    window = AvailabilityWindow(service_id=service.id, day_of_week=1, start_time='08:00', end_time='12:00')
    db.add(window)
    db.commit()
    window_id = window.id

    delete_window(window_id=window_id, db=db, current_user=provider)
    delete_window(window_id=window_id, db=db, current_user=provider)

    assert db.query(AvailabilityWindow).count() == 0


def test_delete_window_rejects_other_provider(db, make_service, make_user) -> None:
    service = make_service()
    window = AvailabilityWindow(service_id=service.id, day_of_week=1, start_time='08:00', end_time='12:00')
    db.add(window)
    db.commit()

    with pytest.raises(HTTPException) as exception_info:
        delete_window(window_id=window.id, db=db, current_user=make_user(USER_TYPE_PROVIDER))

    assert exception_info.value.status_code == 403


def test_list_available_slots_is_empty_for_day_without_windows(db, database, make_service) -> None:
    service = make_service()

    assert list_available_slots(service_id=service.id, slot_date=date(2026, 1, 4), db=db, database=database) == []


def test_list_available_slots_returns_404_for_unknown_service(db, database, make_user) -> None:
    make_user(USER_TYPE_CLIENT)

    with pytest.raises(HTTPException) as exception_info:
        list_available_slots(service_id=404, slot_date=date(2026, 1, 5), db=db, database=database)

    assert exception_info.value.status_code == 404
