"""
Disbursement allocator: availability gating, status changes and delete rules.
"""

from decimal import Decimal

import pytest

from conftest import payer_payload
from zakat.models import Beneficiary, Disbursement, MasterZakatRate
from zakat.services import distribution_service, ledger_service
from zakat.validation import ConflictError, NotFoundError, ValidationError


@pytest.fixture
def beneficiary(db_session, rt):
    b = Beneficiary(name="Mbah Sarni", category="fakir", subdivision_id=rt.id)
    db_session.add(b)
    db_session.commit()
    return b


@pytest.fixture
def collected_money(db_session, rt):
    """500000 of money zakat collected."""
    rate = MasterZakatRate(name="Uang 50rb", unit_price=Decimal("50000"), unit_weight_kg=Decimal("0"))
    db_session.add(rate)
    db_session.commit()
    ledger_service.create_payer(payer_payload(rt.id, 10, 500000, rate_id=rate.id))
    return rate


def _create(beneficiary_id, amount, kind="uang"):
    return distribution_service.create_disbursement(
        {"beneficiary_id": beneficiary_id, "zakat_kind": kind, "amount": amount}
    )


def test_request_above_available_is_rejected(db_session, beneficiary, collected_money):
    _create(beneficiary.id, 300000)
    assert distribution_service.available("uang") == Decimal("200000")

    with pytest.raises(ValidationError, match="Insufficient"):
        _create(beneficiary.id, 250000)
    assert db_session.query(Disbursement).count() == 1

    created = _create(beneficiary.id, 150000)
    assert created.status == "pending"
    assert distribution_service.available("uang") == Decimal("50000")


def test_cancel_restores_availability(db_session, beneficiary, collected_money):
    before = distribution_service.available("uang")
    d = _create(beneficiary.id, 100000)
    assert distribution_service.available("uang") == before - Decimal("100000")

    distribution_service.update_status(d.id, "batal")
    assert distribution_service.available("uang") == before


def test_reactivating_requires_availability(db_session, beneficiary, collected_money):
    first = _create(beneficiary.id, 400000)
    distribution_service.update_status(first.id, "batal")
    _create(beneficiary.id, 300000)

    with pytest.raises(ValidationError):
        distribution_service.update_status(first.id, "pending")
    assert db_session.get(Disbursement, first.id).status == "batal"


def test_rice_is_tracked_separately(db_session, beneficiary, rt, rice_rate):
    ledger_service.create_payer(payer_payload(rt.id, 4, 180000, rate_id=rice_rate.id))

    assert distribution_service.collected("beras") == Decimal("10")
    _create(beneficiary.id, "7.5", kind="beras")
    assert distribution_service.available("beras") == Decimal("2.5")
    with pytest.raises(ValidationError):
        _create(beneficiary.id, 1, kind="uang")


def test_invalid_input(db_session, beneficiary, collected_money):
    with pytest.raises(ValidationError):
        _create(beneficiary.id, 0)
    with pytest.raises(ValidationError):
        _create(beneficiary.id, -5)
    with pytest.raises(ValidationError):
        _create(beneficiary.id, "0.004")
    with pytest.raises(ValidationError):
        _create(9999, 1000)
    with pytest.raises(ValidationError):
        _create(beneficiary.id, 1000, kind="emas")


def test_any_status_may_follow_any_other_by_default(db_session, beneficiary, collected_money):
    d = _create(beneficiary.id, 1000)
    for status in ("diterima", "pending", "disalurkan", "batal", "diterima"):
        updated, _ = distribution_service.update_status(d.id, status)
        assert updated.status == status

    with pytest.raises(ValidationError):
        distribution_service.update_status(d.id, "selesai")
    with pytest.raises(NotFoundError):
        distribution_service.update_status(9999, "pending")


def test_strict_transitions(app, db_session, beneficiary, collected_money, monkeypatch):
    monkeypatch.setitem(app.config, "DISTRIBUTION_STRICT_TRANSITIONS", True)
    d = _create(beneficiary.id, 1000)

    with pytest.raises(ConflictError):
        distribution_service.update_status(d.id, "diterima")

    distribution_service.update_status(d.id, "disalurkan")
    distribution_service.update_status(d.id, "diterima")
    with pytest.raises(ConflictError):
        distribution_service.update_status(d.id, "pending")

    other = _create(beneficiary.id, 1000)
    distribution_service.update_status(other.id, "batal")
    with pytest.raises(ConflictError):
        distribution_service.update_status(other.id, "pending")


def test_delete_only_pending_or_cancelled(db_session, beneficiary, collected_money):
    pending = _create(beneficiary.id, 1000)
    cancelled = _create(beneficiary.id, 1000)
    acted = _create(beneficiary.id, 1000)
    distribution_service.update_status(cancelled.id, "batal")
    distribution_service.update_status(acted.id, "disalurkan")

    distribution_service.delete_disbursement(pending.id)
    distribution_service.delete_disbursement(cancelled.id)
    with pytest.raises(ConflictError):
        distribution_service.delete_disbursement(acted.id)

    distribution_service.update_status(acted.id, "diterima")
    with pytest.raises(ConflictError):
        distribution_service.delete_disbursement(acted.id)
    assert db_session.query(Disbursement).count() == 1


def test_reports_exclude_cancelled(db_session, beneficiary, collected_money):
    _create(beneficiary.id, 1000)
    d = _create(beneficiary.id, 5000)
    distribution_service.update_status(d.id, "batal")

    by_category = {row["category"]: row for row in distribution_service.report_by_category()}
    assert by_category["fakir"]["total_disbursements"] == 1
    assert by_category["fakir"]["total_money"] == 1000

    by_rt = distribution_service.report_by_subdivision()
    assert by_rt[0]["rt_number"] == "01"
    assert by_rt[0]["total_money"] == 1000

    stats = distribution_service.disbursement_stats()
    assert stats["by_status"]["batal"] == 1
    assert stats["distributed_money"] == 1000
