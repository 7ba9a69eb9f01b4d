# Overview: Service-layer operations for the payment ledger; encapsulates business logic and database work.

from __future__ import annotations

from decimal import Decimal

from flask import current_app, has_app_context
from sqlalchemy.orm import joinedload, selectinload

from ..extensions import db
from ..models import Donation, MasterZakatRate, Payer, PayerName, Subdivision
from ..models.zakat import (
    CHANGE_DONATION_NOTE,
    DONATION_SOURCE_CHANGE,
    DONATION_SOURCE_CHANGE_DONATED,
    VALID_KINDS,
)
from ..numbers import as_number, to_decimal
from .concurrency import lock_for_update, run_with_retry
from .zakat_calculator import Obligation, RateSpec, calculate_obligation, legacy_rate_for
from ..validation import (
    NotFoundError,
    ValidationError,
    clean_str,
    optional_text,
    parse_choice,
    parse_int,
    parse_optional_id,
    parse_positive_decimal,
)
"""
Payment Ledger Invariants

- A payer, its names and its change-linked donation are written in one transaction.
- At most one change-linked donation per payer: source=change mirrors
  payer.change_amount, source=change_donated records change that was
  handed over as infak (after which payer.change_amount stays 0).
- Deleting a payer deletes every donation that references it.
"""

PATRONYMICS = {"bin", "binti"}


def _setting(key: str, default):
    if has_app_context():
        return current_app.config.get(key, default)
    return default


# =============================================================================
# INPUT CLEANING
# =============================================================================

def _clean_names(raw) -> list[dict]:
    if raw is None:
        raw = []
    if not isinstance(raw, list):
        raise ValidationError("names must be a list")

    names = []
    for entry in raw:
        if isinstance(entry, str):
            entry = {"full_name": entry}
        if not isinstance(entry, dict):
            raise ValidationError("Each name must be an object with full_name")
        full_name = clean_str(entry.get("full_name"))
        if not full_name:
            continue
        if len(full_name) > 100:
            raise ValidationError("full_name exceeds max length 100")
        patronymic = optional_text(entry.get("patronymic"))
        if patronymic is not None:
            patronymic = parse_choice(patronymic, "patronymic", PATRONYMICS)
        names.append({
            "full_name": full_name,
            "patronymic": patronymic,
            "parent_name": optional_text(entry.get("parent_name"), max_length=100, field="parent_name"),
        })

    if not names:
        raise ValidationError("At least one muzakki name is required")
    return names


def _resolve_rate(data: dict):
    """Master rate when rate_id is given, otherwise the legacy per-head constant for zakat_kind."""
    rate_id = parse_optional_id(data.get("rate_id"), "rate_id")
    if rate_id is not None:
        rate = db.session.get(MasterZakatRate, rate_id)
        if not rate:
            raise ValidationError("Zakat rate not found")
        return RateSpec.from_model(rate)

    kind = parse_choice(data.get("zakat_kind"), "zakat_kind", VALID_KINDS)
    return legacy_rate_for(
        kind,
        rice_kg_per_head=_setting("LEGACY_RICE_KG_PER_HEAD", Decimal("2.5")),
        money_per_head=_setting("LEGACY_MONEY_PER_HEAD", Decimal("45000")),
    )


def _clean_payer_input(data: dict) -> tuple[int, int, Obligation, list[dict], str | None]:
    if not isinstance(data, dict):
        raise ValidationError("Invalid JSON payload")

    subdivision_id = parse_int(data.get("subdivision_id"), "subdivision_id")
    if not db.session.get(Subdivision, subdivision_id):
        raise ValidationError("RT not found")

    names = _clean_names(data.get("names"))
    headcount = parse_int(data.get("headcount"), "headcount")
    amount_paid = parse_positive_decimal(data.get("amount_paid"), "amount_paid")

    obligation = calculate_obligation(
        headcount,
        amount_paid,
        _resolve_rate(data),
        rice_price_per_kg=to_decimal(_setting("RICE_PRICE_PER_KG", Decimal("12000"))),
    )
    note = optional_text(data.get("note"))
    return subdivision_id, headcount, obligation, names, note


def _apply_obligation(payer: Payer, obligation: Obligation) -> None:
    payer.zakat_kind = obligation.zakat_kind
    payer.rate_id = obligation.rate_id
    payer.rice_kg = obligation.rice_kg
    payer.money_amount = obligation.money_amount
    payer.obligation_amount = obligation.obligation_amount
    payer.obligation_value = obligation.obligation_value
    payer.amount_paid = obligation.amount_paid
    payer.change_amount = obligation.change_amount
    payer.payment_unit = obligation.payment_unit


# =============================================================================
# CHANGE-LINKED DONATION
# =============================================================================

def _change_linked_donation(payer_id: int) -> Donation | None:
    return db.session.query(Donation).filter(
        Donation.payer_id == payer_id,
        Donation.source.in_((DONATION_SOURCE_CHANGE, DONATION_SOURCE_CHANGE_DONATED)),
    ).order_by(Donation.id.asc()).first()


def _sync_change_donation(payer: Payer, recorded_by: int | None) -> Donation | None:
    """
    Converge the payer's change-linked donation to its change amount.

    A change_donated row keeps the donated amount in step with the
    recomputed change and the payer's change stays consumed.
    """
    row = _change_linked_donation(payer.id)
    change = to_decimal(payer.change_amount)

    if row is not None and row.source == DONATION_SOURCE_CHANGE_DONATED:
        if change > 0:
            row.amount = change
            payer.change_amount = Decimal("0")
            return row
        db.session.delete(row)
        return None

    if change > 0:
        if row is not None:
            row.amount = change
            return row
        row = Donation(
            payer_id=payer.id,
            source=DONATION_SOURCE_CHANGE,
            amount=change,
            note=CHANGE_DONATION_NOTE,
            recorded_by=recorded_by,
        )
        db.session.add(row)
        return row

    if row is not None:
        db.session.delete(row)
    return None


# =============================================================================
# PAYER CRUD
# =============================================================================

def list_payers(subdivision_id: int | None = None, zakat_kind: str | None = None, search: str | None = None) -> list[Payer]:
    query = db.session.query(Payer).options(
        joinedload(Payer.subdivision),
        joinedload(Payer.recorder),
        joinedload(Payer.rate),
        selectinload(Payer.names),
    )
    if subdivision_id is not None:
        query = query.filter(Payer.subdivision_id == subdivision_id)
    if zakat_kind:
        query = query.filter(Payer.zakat_kind == parse_choice(zakat_kind, "zakat_kind", VALID_KINDS))
    if search:
        pattern = f"%{search.strip()}%"
        query = query.filter(Payer.names.any(PayerName.full_name.ilike(pattern)))
    return query.order_by(Payer.created_at.desc(), Payer.id.desc()).all()


def get_payer(payer_id: int) -> Payer:
    payer = db.session.get(Payer, payer_id)
    if not payer:
        raise NotFoundError("Muzakki not found")
    return payer


def create_payer(data: dict, *, recorded_by: int | None = None) -> Payer:
    """
    Insert a payer, its names and (when change > 0) its change donation.

    Raises:
        ValidationError: bad input, unknown RT or rate, no names
        PersistenceError: database failure; nothing is written
    """
    subdivision_id, headcount, obligation, names, note = _clean_payer_input(data)

    def _op():
        payer = Payer(
            subdivision_id=subdivision_id,
            headcount=headcount,
            note=note,
            recorded_by=recorded_by,
        )
        _apply_obligation(payer, obligation)
        payer.names = [PayerName(**n) for n in names]
        db.session.add(payer)
        db.session.flush()

        _sync_change_donation(payer, recorded_by)
        db.session.commit()
        return payer

    return run_with_retry(_op)


def update_payer(payer_id: int, data: dict, *, recorded_by: int | None = None) -> Payer:
    """Recompute obligation/change, replace the name set and reconcile the change donation."""
    get_payer(payer_id)
    subdivision_id, headcount, obligation, names, note = _clean_payer_input(data)

    def _op():
        payer = lock_for_update(db.session.query(Payer).filter(Payer.id == payer_id)).first()
        if not payer:
            raise NotFoundError("Muzakki not found")

        payer.subdivision_id = subdivision_id
        payer.headcount = headcount
        payer.note = note
        _apply_obligation(payer, obligation)

        payer.names.clear()
        db.session.flush()
        payer.names.extend(PayerName(**n) for n in names)

        _sync_change_donation(payer, recorded_by)
        db.session.commit()
        return payer

    return run_with_retry(_op)


def delete_payer(payer_id: int) -> dict:
    """
    Delete a payer with its names and every donation that references it.

    Returns a summary of what was removed.
    """
    def _op():
        payer = lock_for_update(db.session.query(Payer).filter(Payer.id == payer_id)).first()
        if not payer:
            raise NotFoundError("Muzakki not found")

        summary = {
            "id": payer.id,
            "names": payer.display_name,
            "names_deleted": len(payer.names),
        }
        donations = db.session.query(Donation).filter(Donation.payer_id == payer.id).all()
        for donation in donations:
            db.session.delete(donation)
        db.session.flush()
        summary["donations_deleted"] = len(donations)

        db.session.delete(payer)
        db.session.commit()
        return summary

    return run_with_retry(_op)


# =============================================================================
# SEDEKAHKAN KEMBALIAN
# =============================================================================

def _donate_change_locked(payer: Payer, recorded_by: int | None) -> Donation:
    change = to_decimal(payer.change_amount)
    if change <= 0:
        raise ValidationError("There is no change to donate")

    existing = _change_linked_donation(payer.id)
    if existing is not None:
        db.session.delete(existing)

    donation = Donation(
        payer_id=payer.id,
        source=DONATION_SOURCE_CHANGE_DONATED,
        amount=change,
        note=CHANGE_DONATION_NOTE,
        recorded_by=recorded_by,
    )
    db.session.add(donation)
    payer.change_amount = Decimal("0")
    return donation


def donate_change(payer_id: int, *, recorded_by: int | None = None) -> Donation:
    """
    Hand the payer's change over as infak and reset change to 0.

    Raises:
        NotFoundError: unknown payer
        ValidationError: change is already 0
    """
    def _op():
        payer = lock_for_update(db.session.query(Payer).filter(Payer.id == payer_id)).first()
        if not payer:
            raise NotFoundError("Muzakki not found")
        donation = _donate_change_locked(payer, recorded_by)
        db.session.commit()
        return donation

    return run_with_retry(_op)


def batch_donate_change(subdivision_id: int, payer_ids, *, recorded_by: int | None = None) -> dict:
    """
    donate_change for several payers of one RT.

    Ids that are unknown, outside the RT, without change or already donated
    are skipped and reported in "errors"; the rest commit together.
    """
    rt = db.session.get(Subdivision, subdivision_id)
    if not rt:
        raise NotFoundError("RT not found")
    if not isinstance(payer_ids, list) or not payer_ids:
        raise ValidationError("Select at least one muzakki")

    def _op():
        processed = []
        errors = []
        total = Decimal("0")

        for raw_id in payer_ids:
            try:
                pid = parse_int(raw_id, "payer_id")
            except ValidationError:
                errors.append({"payer_id": raw_id, "message": "Invalid muzakki id"})
                continue

            payer = lock_for_update(db.session.query(Payer).filter(Payer.id == pid)).first()
            if not payer or payer.subdivision_id != rt.id:
                errors.append({"payer_id": pid, "message": "Muzakki not found in this RT"})
                continue
            if to_decimal(payer.change_amount) <= 0:
                errors.append({"payer_id": pid, "message": "There is no change to donate"})
                continue
            already = db.session.query(Donation.id).filter(
                Donation.payer_id == pid,
                Donation.source == DONATION_SOURCE_CHANGE_DONATED,
            ).first()
            if already:
                errors.append({"payer_id": pid, "message": "Change was already donated"})
                continue

            donation = _donate_change_locked(payer, recorded_by)
            total += to_decimal(donation.amount)
            processed.append({"payer_id": pid, "names": payer.display_name, "amount": as_number(donation.amount)})

        db.session.commit()
        return {
            "rt_number": rt.number,
            "processed": processed,
            "errors": errors,
            "total_amount": as_number(total),
        }

    return run_with_retry(_op)
