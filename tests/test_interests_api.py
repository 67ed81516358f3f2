from uuid import uuid4

from conftest import FakeResult, entity_handler, make_actor, make_interest
from app.api import deps
from app.main import app
from app.models.audit_log import AuditLog
from app.models.contract import Contract
from app.models.investor_interest import InvestorInterest


def _submit_payload(**overrides):
    payload = {
        "asset_id": str(uuid4()),
        "investment_purpose": "commercial_development",
        "investment_amount_range": "5m_10m",
        "expected_timeline": "mid_term",
        "proposed_use_description": "Office tower",
    }
    payload.update(overrides)
    return payload


def test_submit_interest_returns_created_envelope(client, fake_db, test_actor):
    investor_id = str(uuid4())
    resp = client.post("/api/v1/interests", json=_submit_payload(investor_id=investor_id))
    assert resp.status_code == 201
    body = resp.json()
    assert body["code"] == "created"
    data = body["data"]
    assert data["status"] == "new"
    assert data["investor_id"] == investor_id
    assert data["version"] == 1
    assert data["reference_number"].startswith("INT-2024-")
    audits = fake_db.added_of(AuditLog)
    assert len(audits) == 1
    assert audits[0].actor_id == test_actor.id


def test_submit_uses_actor_investor_when_body_omits_it(client, fake_db):
    investor_id = uuid4()
    actor = make_actor(roles=["investor"], investor_id=investor_id)

    async def _get_actor():
        return actor

    app.dependency_overrides[deps.get_current_actor] = _get_actor
    resp = client.post("/api/v1/interests", json=_submit_payload())
    assert resp.status_code == 201
    assert resp.json()["data"]["investor_id"] == str(investor_id)


def test_submit_rejects_unknown_purpose(client):
    resp = client.post("/api/v1/interests", json=_submit_payload(investment_purpose="casino"))
    assert resp.status_code == 422
    assert resp.json()["code"] == "validation_error"


def test_get_interest_not_found(client):
    resp = client.get(f"/api/v1/interests/{uuid4()}")
    assert resp.status_code == 404
    body = resp.json()
    assert body["code"] == "not_found"
    assert body["data"] is None


def test_review_reject_without_reason(client, fake_db):
    interest = make_interest(status="under_review")
    fake_db.on_execute(entity_handler(InvestorInterest, FakeResult(scalar=interest)))
    resp = client.post(f"/api/v1/interests/{interest.id}/review", json={"action": "reject"})
    assert resp.status_code == 422
    assert resp.json()["code"] == "missing_reason"


def test_review_with_stale_version_conflicts(client, fake_db):
    interest = make_interest(status="under_review", version=4)
    fake_db.on_execute(entity_handler(InvestorInterest, FakeResult(scalar=interest)))
    resp = client.post(
        f"/api/v1/interests/{interest.id}/review",
        json={"action": "approve", "expected_version": 3},
    )
    assert resp.status_code == 409
    body = resp.json()
    assert body["code"] == "concurrent_modification"
    assert body["details"]["current_version"] == 4


def test_start_review_without_body(client, fake_db, test_actor):
    interest = make_interest()
    fake_db.on_execute(entity_handler(InvestorInterest, FakeResult(scalar=interest)))
    resp = client.post(f"/api/v1/interests/{interest.id}/start-review")
    assert resp.status_code == 200
    data = resp.json()["data"]
    assert data["status"] == "under_review"
    assert data["assigned_to_id"] == str(test_actor.id)


def test_convert_returns_conversion_result(client, fake_db):
    interest = make_interest(status="approved")
    fake_db.on_execute(entity_handler(InvestorInterest, FakeResult(scalar=interest)))
    resp = client.post(
        f"/api/v1/interests/{interest.id}/convert",
        json={
            "total_contract_amount": "120000.00",
            "duration_periods": 12,
            "start_date": "2024-01-06",
            "expected_version": 1,
        },
    )
    assert resp.status_code == 201
    data = resp.json()["data"]
    assert data["interest_id"] == str(interest.id)
    assert data["contract_status"] == "incomplete"
    assert data["installment_count"] == 12
    assert data["contract_code"].startswith("CNT-2024-")
    assert len(fake_db.added_of(Contract)) == 1


def test_convert_twice_returns_already_converted(client, fake_db):
    interest = make_interest(status="converted", converted_contract_id=uuid4())
    fake_db.on_execute(entity_handler(InvestorInterest, FakeResult(scalar=interest)))
    resp = client.post(f"/api/v1/interests/{interest.id}/convert", json={})
    assert resp.status_code == 409
    assert resp.json()["code"] == "already_converted"


def test_investor_cannot_review(client, fake_db):
    async def _get_actor():
        return make_actor(roles=["investor"])

    app.dependency_overrides[deps.get_current_actor] = _get_actor
    resp = client.post(f"/api/v1/interests/{uuid4()}/review", json={"action": "approve"})
    assert resp.status_code == 403
    assert resp.json()["code"] == "forbidden"


def _act_as_investor(investor_id):
    actor = make_actor(roles=["investor"], investor_id=investor_id)

    async def _get_actor():
        return actor

    app.dependency_overrides[deps.get_current_actor] = _get_actor
    return actor


def test_investor_cannot_submit_for_another_investor(client, fake_db):
    _act_as_investor(uuid4())
    resp = client.post("/api/v1/interests", json=_submit_payload(investor_id=str(uuid4())))
    assert resp.status_code == 422
    assert resp.json()["code"] == "validation_error"
    assert fake_db.added_of(InvestorInterest) == []


def test_investor_sees_only_own_interests(client, fake_db):
    interest = make_interest()
    fake_db.on_execute(entity_handler(InvestorInterest, FakeResult(scalar=interest)))

    _act_as_investor(uuid4())
    resp = client.get(f"/api/v1/interests/{interest.id}")
    assert resp.status_code == 404
    assert resp.json()["code"] == "not_found"

    _act_as_investor(interest.investor_id)
    resp = client.get(f"/api/v1/interests/{interest.id}")
    assert resp.status_code == 200
    assert resp.json()["data"]["id"] == str(interest.id)


def test_investor_token_without_investor_link_is_forbidden(client, fake_db):
    _act_as_investor(None)
    resp = client.get(f"/api/v1/interests/{uuid4()}")
    assert resp.status_code == 403
    assert resp.json()["code"] == "forbidden"


def test_staff_reads_any_investors_interest(client, fake_db):
    interest = make_interest()
    fake_db.on_execute(entity_handler(InvestorInterest, FakeResult(scalar=interest)))
    resp = client.get(f"/api/v1/interests/{interest.id}")
    assert resp.status_code == 200
