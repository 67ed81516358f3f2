from datetime import date
from uuid import uuid4

from conftest import FakeResult, entity_handler, make_actor, make_contract, utc
from app.api import deps
from app.main import app
from app.models.audit_log import AuditLog
from app.models.contract import Contract


def _serve(fake_db, contract):
    fake_db.on_execute(entity_handler(Contract, FakeResult(scalar=contract)))
    return contract


def _active_contract(**overrides):
    overrides.setdefault("status", "active")
    return make_contract(with_schedule=True, activated_at=utc(2024, 1, 6), **overrides)


def test_create_contract_with_partial_terms_is_draft(client, fake_db):
    resp = client.post(
        "/api/v1/contracts",
        json={"asset_id": str(uuid4()), "total_contract_amount": "50000.00"},
    )
    assert resp.status_code == 201
    data = resp.json()["data"]
    assert data["status"] == "draft"
    assert data["installments"] == []
    assert data["missing_fields"] == ["investor_id", "duration_periods", "start_date"]
    assert data["currency"] == "SAR"
    assert data["installment_frequency"] == "monthly"


def test_create_contract_rejects_non_positive_total(client):
    resp = client.post("/api/v1/contracts", json={"total_contract_amount": "0"})
    assert resp.status_code == 422
    assert resp.json()["code"] == "validation_error"


def test_get_contract_reports_overdue_without_writing(client, fake_db):
    contract = _serve(fake_db, _active_contract())
    resp = client.get(f"/api/v1/contracts/{contract.id}")
    assert resp.status_code == 200
    data = resp.json()["data"]
    # Fixed clock is 2024-02-05; the first installment falls due 2024-02-06.
    assert data["installments"][0]["status"] == "pending"
    assert data["outstanding_amount"] == "120000.00"
    assert fake_db.committed is False


def test_activate_contract(client, fake_db):
    contract = _serve(fake_db, make_contract(with_schedule=True))
    resp = client.post(f"/api/v1/contracts/{contract.id}/activate", json={"expected_version": 1})
    assert resp.status_code == 200
    data = resp.json()["data"]
    assert data["status"] == "active"
    assert data["version"] == 2
    assert [entry.action for entry in fake_db.added_of(AuditLog)] == ["contract.activated"]


def test_activate_with_stale_version(client, fake_db):
    contract = _serve(fake_db, make_contract(with_schedule=True, version=2))
    resp = client.post(f"/api/v1/contracts/{contract.id}/activate", json={"expected_version": 1})
    assert resp.status_code == 409
    assert resp.json()["code"] == "concurrent_modification"


def test_record_payment(client, fake_db):
    contract = _serve(fake_db, _active_contract())
    resp = client.post(
        f"/api/v1/contracts/{contract.id}/record-payment",
        json={"installment_seq": 1, "paid_at": "2024-02-04T09:00:00Z"},
    )
    assert resp.status_code == 200
    data = resp.json()["data"]
    assert data["installments"][0]["status"] == "paid"
    assert data["paid_amount"] == "10000.00"


def test_record_payment_twice_returns_already_paid(client, fake_db):
    contract = _serve(fake_db, _active_contract())
    first = client.post(f"/api/v1/contracts/{contract.id}/record-payment", json={"installment_seq": 1})
    assert first.status_code == 200
    second = client.post(f"/api/v1/contracts/{contract.id}/record-payment", json={"installment_seq": 1})
    assert second.status_code == 409
    assert second.json()["code"] == "already_paid"


def test_record_payment_unknown_installment(client, fake_db):
    contract = _serve(fake_db, _active_contract())
    resp = client.post(f"/api/v1/contracts/{contract.id}/record-payment", json={"installment_seq": 99})
    assert resp.status_code == 404
    assert resp.json()["code"] == "not_found"


def test_amend_below_paid_returns_conflict(client, fake_db):
    contract = _active_contract()
    contract.installments[0].status = "paid"
    contract.installments[0].paid_at = utc(2024, 2, 1)
    _serve(fake_db, contract)
    resp = client.patch(f"/api/v1/contracts/{contract.id}", json={"total_contract_amount": "1000.00"})
    assert resp.status_code == 409
    assert resp.json()["code"] == "amendment_conflict"


def test_amend_start_date_before_activation_regenerates_schedule(client, fake_db):
    contract = _serve(fake_db, make_contract(with_schedule=True))
    resp = client.patch(f"/api/v1/contracts/{contract.id}", json={"start_date": "2024-03-01"})
    assert resp.status_code == 200
    data = resp.json()["data"]
    assert data["installments"][0]["due_date"] == "2024-04-01"
    assert data["end_date"] == "2025-03-01"


def test_cancel_requires_justification(client, fake_db):
    contract = _serve(fake_db, _active_contract())
    resp = client.post(f"/api/v1/contracts/{contract.id}/cancel", json={"reason": "investor_default"})
    assert resp.status_code == 422
    assert resp.json()["code"] == "missing_reason"


def test_cancel_contract(client, fake_db):
    contract = _serve(fake_db, _active_contract())
    resp = client.post(
        f"/api/v1/contracts/{contract.id}/cancel",
        json={"reason": "asset_issues", "justification": "Zoning permit revoked"},
    )
    assert resp.status_code == 200
    data = resp.json()["data"]
    assert data["status"] == "cancelled"
    assert data["cancellation_reason"] == "asset_issues"


def test_archive_incomplete_contract_rejected(client, fake_db):
    contract = _serve(fake_db, make_contract(with_schedule=True))
    resp = client.post(f"/api/v1/contracts/{contract.id}/archive")
    assert resp.status_code == 409
    assert resp.json()["code"] == "invalid_transition"


def test_generate_schedule_for_draft_with_missing_terms(client, fake_db):
    contract = _serve(fake_db, make_contract(start_date=None))
    resp = client.post(f"/api/v1/contracts/{contract.id}/schedule")
    assert resp.status_code == 422
    body = resp.json()
    assert body["code"] == "validation_error"
    assert body["details"]["missing_fields"] == ["start_date"]


def test_recompute_single_contract(client, fake_db):
    contract = _serve(fake_db, _active_contract(end_date=date(2024, 2, 1)))
    resp = client.post(f"/api/v1/contracts/{contract.id}/recompute")
    assert resp.status_code == 200
    assert resp.json()["data"]["status"] == "expired"
    assert contract.status == "expired"


def test_audit_failure_returns_500_and_rolls_back(client, fake_db, monkeypatch):
    from sqlalchemy.exc import SQLAlchemyError

    from app.services import contract_lifecycle

    def _broken_audit(*args, **kwargs):
        raise SQLAlchemyError("audit table unavailable")

    monkeypatch.setattr(contract_lifecycle, "record_audit_log", _broken_audit)
    contract = _serve(fake_db, make_contract(with_schedule=True))
    resp = client.post(f"/api/v1/contracts/{contract.id}/activate")
    assert resp.status_code == 500
    assert resp.json()["code"] == "audit_write_failure"
    assert fake_db.rolled_back is True
    assert fake_db.committed is False


def test_finance_role_cannot_cancel(client):
    async def _get_actor():
        return make_actor(roles=["finance"])

    app.dependency_overrides[deps.get_current_actor] = _get_actor
    resp = client.post(
        f"/api/v1/contracts/{uuid4()}/cancel",
        json={"reason": "other", "justification": "n/a"},
    )
    assert resp.status_code == 403


def test_investor_sees_only_own_contracts(client, fake_db):
    contract = _serve(fake_db, _active_contract())

    def _as_investor(investor_id):
        actor = make_actor(roles=["investor"], investor_id=investor_id)

        async def _get_actor():
            return actor

        app.dependency_overrides[deps.get_current_actor] = _get_actor

    _as_investor(uuid4())
    resp = client.get(f"/api/v1/contracts/{contract.id}")
    assert resp.status_code == 404
    assert resp.json()["code"] == "not_found"

    _as_investor(contract.investor_id)
    resp = client.get(f"/api/v1/contracts/{contract.id}")
    assert resp.status_code == 200
    assert resp.json()["data"]["id"] == str(contract.id)
