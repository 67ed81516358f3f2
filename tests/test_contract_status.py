from datetime import date, timedelta

from conftest import make_contract, utc
from app.services.contract_status import (
    missing_contract_fields,
    resolve_contract_status,
    tracks_overdue,
)

NOW = utc(2024, 6, 1)
TODAY = NOW.date()


def _active_contract(**overrides):
    return make_contract(with_schedule=True, activated_at=utc(2024, 1, 6), **overrides)


def test_missing_terms_resolve_to_draft():
    contract = make_contract(total=None, duration=None)
    assert missing_contract_fields(contract) == ["total_contract_amount", "duration_periods"]
    assert resolve_contract_status(contract, contract.installments, NOW).value == "draft"


def test_complete_terms_without_activation_are_incomplete():
    contract = make_contract(with_schedule=True)
    assert resolve_contract_status(contract, contract.installments, NOW).value == "incomplete"


def test_complete_terms_without_schedule_are_incomplete():
    contract = make_contract(activated_at=utc(2024, 1, 6))
    assert resolve_contract_status(contract, [], NOW).value == "incomplete"


def test_activated_contract_is_active():
    contract = _active_contract()
    assert resolve_contract_status(contract, contract.installments, NOW).value == "active"


def test_end_date_within_threshold_is_expiring():
    contract = _active_contract(end_date=TODAY + timedelta(days=10))
    assert resolve_contract_status(contract, contract.installments, NOW).value == "expiring"


def test_end_date_yesterday_is_expired_regardless_of_stored_status():
    contract = _active_contract(end_date=TODAY - timedelta(days=1), status="active")
    assert resolve_contract_status(contract, contract.installments, NOW).value == "expired"


def test_end_date_today_is_still_expiring():
    contract = _active_contract(end_date=TODAY)
    assert resolve_contract_status(contract, contract.installments, NOW).value == "expiring"


def test_threshold_override():
    contract = _active_contract(end_date=TODAY + timedelta(days=10))
    status = resolve_contract_status(contract, contract.installments, NOW, expiring_threshold_days=5)
    assert status.value == "active"


def test_administrative_status_wins_over_derivation():
    archived = _active_contract(status="archived", end_date=TODAY - timedelta(days=1))
    cancelled = make_contract(total=None, status="cancelled")
    assert resolve_contract_status(archived, archived.installments, NOW).value == "archived"
    assert resolve_contract_status(cancelled, [], NOW).value == "cancelled"


def test_resolver_does_not_mutate_inputs():
    contract = _active_contract(status="incomplete", end_date=date(2024, 1, 1))
    statuses = [item.status for item in contract.installments]
    resolve_contract_status(contract, contract.installments, NOW)
    assert contract.status == "incomplete"
    assert [item.status for item in contract.installments] == statuses


def test_tracks_overdue_only_for_activated_open_contracts():
    assert tracks_overdue(_active_contract()) is True
    assert tracks_overdue(make_contract(with_schedule=True)) is False
    assert tracks_overdue(_active_contract(status="cancelled")) is False
