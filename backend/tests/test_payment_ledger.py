"""
Payment ledger: payer writes and the change-linked infak row.
"""

from decimal import Decimal

import pytest
from sqlalchemy.exc import SQLAlchemyError

from conftest import payer_payload
from zakat.models import Donation, Payer, PayerName
from zakat.models.zakat import (
    DONATION_SOURCE_CHANGE,
    DONATION_SOURCE_CHANGE_DONATED,
    DONATION_SOURCE_MANUAL,
)
from zakat.services import ledger_service
from zakat.validation import NotFoundError, PersistenceError, ValidationError


def _donations(db_session, payer_id):
    return db_session.query(Donation).filter_by(payer_id=payer_id).order_by(Donation.id).all()


def test_money_payment_creates_change_donation(db_session, rt, money_rate, admin_user):
    payer = ledger_service.create_payer(
        payer_payload(rt.id, 4, 200000, rate_id=money_rate.id),
        recorded_by=admin_user.id,
    )

    assert payer.zakat_kind == "uang"
    assert payer.money_amount == Decimal("180000")
    assert payer.rice_kg is None
    assert payer.change_amount == Decimal("20000")
    assert payer.recorded_by == admin_user.id

    rows = _donations(db_session, payer.id)
    assert len(rows) == 1
    assert rows[0].source == DONATION_SOURCE_CHANGE
    assert rows[0].amount == Decimal("20000")
    assert rows[0].note == "Kembalian dari zakat fitrah"


def test_rice_payment_without_change(db_session, rt, rice_rate):
    payer = ledger_service.create_payer(payer_payload(rt.id, 3, 100000, rate_id=rice_rate.id))

    assert payer.zakat_kind == "beras"
    assert payer.rice_kg == Decimal("7.5")
    assert payer.money_amount is None
    assert payer.obligation_value == Decimal("135000")
    assert payer.change_amount == 0
    assert _donations(db_session, payer.id) == []


def test_update_converges_change_donation(db_session, rt, money_rate):
    payer = ledger_service.create_payer(payer_payload(rt.id, 4, 200000, rate_id=money_rate.id))

    ledger_service.update_payer(payer.id, payer_payload(rt.id, 4, 180000, rate_id=money_rate.id))
    assert _donations(db_session, payer.id) == []

    ledger_service.update_payer(payer.id, payer_payload(rt.id, 4, 250000, rate_id=money_rate.id))
    rows = _donations(db_session, payer.id)
    assert [(r.source, r.amount) for r in rows] == [(DONATION_SOURCE_CHANGE, Decimal("70000"))]

    ledger_service.update_payer(payer.id, payer_payload(rt.id, 4, 190000, rate_id=money_rate.id))
    rows = _donations(db_session, payer.id)
    assert [(r.source, r.amount) for r in rows] == [(DONATION_SOURCE_CHANGE, Decimal("10000"))]


def test_update_replaces_names(db_session, rt, money_rate):
    payer = ledger_service.create_payer(payer_payload(
        rt.id, 2, 90000, rate_id=money_rate.id,
        names=[{'full_name': 'Ahmad'}, {'full_name': 'Fatimah', 'patronymic': 'binti', 'parent_name': 'Ali'}],
    ))
    assert db_session.query(PayerName).filter_by(payer_id=payer.id).count() == 2

    payer = ledger_service.update_payer(payer.id, payer_payload(
        rt.id, 1, 45000, rate_id=money_rate.id, names=[{'full_name': 'Hasan'}],
    ))
    names = db_session.query(PayerName).filter_by(payer_id=payer.id).all()
    assert [n.full_name for n in names] == ['Hasan']
    assert payer.headcount == 1


def test_create_requires_a_name(db_session, rt, money_rate):
    with pytest.raises(ValidationError):
        ledger_service.create_payer(payer_payload(rt.id, 1, 45000, rate_id=money_rate.id, names=[{'full_name': '  '}]))
    assert db_session.query(Payer).count() == 0


def test_sub_cent_payment_is_rejected(db_session, rt, money_rate):
    with pytest.raises(ValidationError, match="amount_paid"):
        ledger_service.create_payer(payer_payload(rt.id, 1, "0.004", rate_id=money_rate.id))
    assert db_session.query(Payer).count() == 0


def test_create_rejects_unknown_rate_and_rt(db_session, rt):
    with pytest.raises(ValidationError, match="rate"):
        ledger_service.create_payer(payer_payload(rt.id, 1, 45000, rate_id=9999))
    with pytest.raises(ValidationError, match="RT"):
        ledger_service.create_payer(payer_payload(9999, 1, 45000, zakat_kind="uang"))


def test_legacy_kind_without_rate(db_session, rt):
    payer = ledger_service.create_payer(payer_payload(rt.id, 2, 100000, zakat_kind="uang"))
    assert payer.rate_id is None
    assert payer.payment_unit == "rp"
    assert payer.money_amount == Decimal("90000")
    assert payer.change_amount == Decimal("10000")


def test_failed_write_leaves_nothing_behind(db_session, rt, money_rate, monkeypatch):
    def broken_sync(*args, **kwargs):
        raise SQLAlchemyError("disk full")

    monkeypatch.setattr(ledger_service, "_sync_change_donation", broken_sync)

    with pytest.raises(PersistenceError):
        ledger_service.create_payer(payer_payload(rt.id, 4, 200000, rate_id=money_rate.id))

    assert db_session.query(Payer).count() == 0
    assert db_session.query(PayerName).count() == 0
    assert db_session.query(Donation).count() == 0


def test_delete_removes_names_and_donations(db_session, rt, money_rate):
    payer = ledger_service.create_payer(payer_payload(rt.id, 4, 200000, rate_id=money_rate.id))
    db_session.add(Donation(payer_id=payer.id, source=DONATION_SOURCE_MANUAL, amount=Decimal("5000")))
    db_session.commit()
    payer_id = payer.id

    summary = ledger_service.delete_payer(payer_id)

    assert summary["donations_deleted"] == 2
    assert db_session.get(Payer, payer_id) is None
    assert db_session.query(PayerName).filter_by(payer_id=payer_id).count() == 0
    assert db_session.query(Donation).filter_by(payer_id=payer_id).count() == 0


def test_delete_unknown_payer(db_session):
    with pytest.raises(NotFoundError):
        ledger_service.delete_payer(12345)


def test_donate_change_consumes_change(db_session, rt, money_rate):
    payer = ledger_service.create_payer(payer_payload(rt.id, 4, 200000, rate_id=money_rate.id))

    donation = ledger_service.donate_change(payer.id)

    assert donation.source == DONATION_SOURCE_CHANGE_DONATED
    assert donation.amount == Decimal("20000")
    assert db_session.get(Payer, payer.id).change_amount == 0
    rows = _donations(db_session, payer.id)
    assert [r.source for r in rows] == [DONATION_SOURCE_CHANGE_DONATED]

    with pytest.raises(ValidationError):
        ledger_service.donate_change(payer.id)


def test_update_after_donation_keeps_change_consumed(db_session, rt, money_rate):
    payer = ledger_service.create_payer(payer_payload(rt.id, 4, 200000, rate_id=money_rate.id))
    ledger_service.donate_change(payer.id)

    payer = ledger_service.update_payer(payer.id, payer_payload(rt.id, 4, 210000, rate_id=money_rate.id))

    assert payer.change_amount == 0
    rows = _donations(db_session, payer.id)
    assert [(r.source, r.amount) for r in rows] == [(DONATION_SOURCE_CHANGE_DONATED, Decimal("30000"))]


def test_batch_donate_change_collects_skips(db_session, rt, other_rt, money_rate):
    first = ledger_service.create_payer(payer_payload(rt.id, 1, 50000, rate_id=money_rate.id))
    second = ledger_service.create_payer(payer_payload(rt.id, 1, 60000, rate_id=money_rate.id))
    exact = ledger_service.create_payer(payer_payload(rt.id, 1, 45000, rate_id=money_rate.id))
    elsewhere = ledger_service.create_payer(payer_payload(other_rt.id, 1, 50000, rate_id=money_rate.id))

    result = ledger_service.batch_donate_change(
        rt.id, [first.id, second.id, exact.id, elsewhere.id, 9999, "abc"],
    )

    assert sorted(item["payer_id"] for item in result["processed"]) == sorted([first.id, second.id])
    assert result["total_amount"] == 20000
    assert len(result["errors"]) == 4
    assert db_session.get(Payer, elsewhere.id).change_amount == Decimal("5000")

    again = ledger_service.batch_donate_change(rt.id, [first.id])
    assert again["processed"] == []
    assert len(again["errors"]) == 1


def test_batch_requires_ids(db_session, rt):
    with pytest.raises(ValidationError):
        ledger_service.batch_donate_change(rt.id, [])
    with pytest.raises(NotFoundError):
        ledger_service.batch_donate_change(9999, [1])
