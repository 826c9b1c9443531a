import asyncio
import json
from types import SimpleNamespace

from backend.core.errors import Forbidden, InvalidTransition, NoAvailability
from backend.main import root, scheduling_error_handler


def _request(method: str = 'PATCH', path: str = '/appointments/1'):
    return SimpleNamespace(method=method, url=SimpleNamespace(path=path))


def test_root_reports_running() -> None:
    assert root() == {'status': 'Appointment Scheduling API Running'}


def test_error_handler_renders_status_code_and_body() -> None:
    response = asyncio.run(scheduling_error_handler(_request(), InvalidTransition('pending', 'cancelled')))

    assert response.status_code == 400
    assert json.loads(response.body) == {
        'error': 'Cannot change appointment status from pending to cancelled.',
        'code': 'InvalidTransition',
        'details': {'current': 'pending', 'requested': 'cancelled'},
    }


def test_error_handler_uses_class_status_codes() -> None:
    forbidden = asyncio.run(scheduling_error_handler(_request(), Forbidden()))
    no_availability = asyncio.run(
        scheduling_error_handler(_request('GET', '/appointments/next-available'), NoAvailability(30))
    )

    assert forbidden.status_code == 403
    assert json.loads(forbidden.body)['error'] == 'Forbidden'
    assert no_availability.status_code == 404
    assert json.loads(no_availability.body)['details'] == {'horizon_days': 30}
