from uuid import uuid4

import pytest

from conftest import make_interest, utc
from app.services import interest_review
from app.services.lifecycle_errors import AlreadyConverted, InvalidTransition, MissingReason

NOW = utc(2024, 1, 5)


def test_begin_review_moves_new_to_under_review():
    interest = make_interest()
    reviewer = uuid4()
    interest_review.begin_review(interest, reviewer_id=reviewer, now=NOW)
    assert interest.status == "under_review"
    assert interest.assigned_to_id == reviewer


def test_begin_review_requires_new():
    interest = make_interest(status="approved")
    with pytest.raises(InvalidTransition):
        interest_review.begin_review(interest, reviewer_id=uuid4(), now=NOW)


def test_approve_from_new_passes_through_review():
    interest = make_interest()
    reviewer = uuid4()
    interest_review.apply_review(interest, action="approve", reviewer_id=reviewer, now=NOW, review_notes="ok")
    assert interest.status == "approved"
    assert interest.reviewed_by == reviewer
    assert interest.reviewed_at == NOW
    assert interest.review_notes == "ok"
    assert interest.assigned_to_id == reviewer


def test_reject_requires_reason():
    interest = make_interest(status="under_review")
    with pytest.raises(MissingReason):
        interest_review.apply_review(interest, action="reject", reviewer_id=uuid4(), now=NOW, rejection_reason="  ")
    assert interest.status == "under_review"


def test_reject_records_reason():
    interest = make_interest(status="under_review")
    interest_review.apply_review(
        interest, action="reject", reviewer_id=uuid4(), now=NOW, rejection_reason="Budget mismatch"
    )
    assert interest.status == "rejected"
    assert interest.rejection_reason == "Budget mismatch"
    assert interest_review.is_terminal(interest)


@pytest.mark.parametrize("status", ["approved", "rejected", "converted"])
def test_review_outside_reviewable_states_rejected(status):
    interest = make_interest(status=status)
    with pytest.raises(InvalidTransition):
        interest_review.apply_review(interest, action="approve", reviewer_id=uuid4(), now=NOW)


def test_conversion_requires_approval():
    with pytest.raises(InvalidTransition) as exc_info:
        interest_review.ensure_convertible(make_interest(status="under_review"))
    assert not isinstance(exc_info.value, AlreadyConverted)


def test_mark_converted_links_contract_once():
    interest = make_interest(status="approved")
    contract_id = uuid4()
    interest_review.mark_converted(interest, contract_id, now=NOW)
    assert interest.status == "converted"
    assert interest.converted_contract_id == contract_id
    with pytest.raises(AlreadyConverted):
        interest_review.mark_converted(interest, uuid4(), now=NOW)


def test_generate_reference_format():
    reference = interest_review.generate_reference("INT", NOW)
    prefix, year, suffix = reference.split("-")
    assert prefix == "INT"
    assert year == "2024"
    assert len(suffix) == 8
    assert suffix == suffix.upper()
