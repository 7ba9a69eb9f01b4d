# Overview: Service-layer operations for zakat distribution; encapsulates business logic and database work.

from __future__ import annotations

from decimal import Decimal

from flask import current_app, has_app_context
from sqlalchemy import case, func
from sqlalchemy.orm import joinedload

from ..extensions import db
from ..models import AllocationLock, Beneficiary, Disbursement, Payer, Subdivision
from ..models.distribution import (
    DELETABLE_STATUSES,
    STATUS_CANCELLED,
    STATUS_DISBURSED,
    STATUS_PENDING,
    STATUS_RECEIVED,
    VALID_STATUSES,
)
from ..models.zakat import KIND_MONEY, KIND_RICE, VALID_KINDS
from ..numbers import as_number, to_decimal
from . import upload_service
from .concurrency import lock_for_update, run_with_retry
from ..validation import (
    ConflictError,
    NotFoundError,
    UploadError,
    ValidationError,
    parse_choice,
    parse_int,
    parse_positive_decimal,
)
"""
Disbursement Allocator Invariants

- Available(kind) = collected(kind) - SUM(amount of non-cancelled disbursements of kind).
- Every write that consumes availability (create, reactivating a cancelled
  row) locks the kind's allocation_locks row first, so the check and the
  insert/update are serialized per kind on databases with row locks.
- Deleting is allowed only while pending or cancelled.
"""

# Used only when DISTRIBUTION_STRICT_TRANSITIONS is on
STRICT_TRANSITIONS = {
    STATUS_PENDING: {STATUS_DISBURSED, STATUS_CANCELLED},
    STATUS_DISBURSED: {STATUS_RECEIVED, STATUS_CANCELLED},
    STATUS_RECEIVED: set(),
    STATUS_CANCELLED: set(),
}


def _strict_transitions() -> bool:
    if has_app_context():
        return bool(current_app.config.get("DISTRIBUTION_STRICT_TRANSITIONS", False))
    return False


# =============================================================================
# AVAILABILITY
# =============================================================================

def collected(kind: str) -> Decimal:
    """Total collected: kg of rice for beras, Rupiah for uang."""
    column = Payer.rice_kg if kind == KIND_RICE else Payer.money_amount
    total = db.session.query(func.coalesce(func.sum(column), 0)).filter(Payer.zakat_kind == kind).scalar()
    return to_decimal(total)


def distributed(kind: str) -> Decimal:
    total = db.session.query(func.coalesce(func.sum(Disbursement.amount), 0)).filter(
        Disbursement.zakat_kind == kind,
        Disbursement.status != STATUS_CANCELLED,
    ).scalar()
    return to_decimal(total)


def available(kind: str) -> Decimal:
    return collected(kind) - distributed(kind)


def availability_summary() -> dict:
    summary = {}
    for kind in (KIND_RICE, KIND_MONEY):
        c = collected(kind)
        d = distributed(kind)
        summary[kind] = {
            "collected": as_number(c),
            "distributed": as_number(d),
            "available": as_number(c - d),
        }
    return summary


def ensure_allocation_locks() -> None:
    """Seed one lock row per zakat kind."""
    existing = {row.zakat_kind for row in db.session.query(AllocationLock).all()}
    for kind in sorted(VALID_KINDS - existing):
        db.session.add(AllocationLock(zakat_kind=kind, version=0))
    db.session.flush()


def _lock_kind(kind: str) -> AllocationLock:
    lock = lock_for_update(db.session.query(AllocationLock).filter_by(zakat_kind=kind)).first()
    if lock is None:
        lock = AllocationLock(zakat_kind=kind, version=0)
        db.session.add(lock)
        db.session.flush()
    lock.version = (lock.version or 0) + 1
    return lock


def _require_available(kind: str, amount: Decimal) -> None:
    """Raise ValidationError when amount exceeds what is left. Caller holds the kind lock."""
    left = available(kind)
    if amount > left:
        unit = "kg" if kind == KIND_RICE else "Rupiah"
        raise ValidationError(
            f"Insufficient {kind} zakat: requested {as_number(amount)} {unit}, available {as_number(left)} {unit}"
        )


# =============================================================================
# DISBURSEMENTS
# =============================================================================

def list_disbursements(status: str | None = None, zakat_kind: str | None = None) -> list[Disbursement]:
    query = db.session.query(Disbursement).options(
        joinedload(Disbursement.beneficiary).joinedload(Beneficiary.subdivision),
        joinedload(Disbursement.recorder),
    )
    if status:
        query = query.filter(Disbursement.status == parse_choice(status, "status", VALID_STATUSES))
    if zakat_kind:
        query = query.filter(Disbursement.zakat_kind == parse_choice(zakat_kind, "zakat_kind", VALID_KINDS))
    return query.order_by(Disbursement.created_at.desc(), Disbursement.id.desc()).all()


def get_disbursement(disbursement_id: int) -> Disbursement:
    disbursement = db.session.get(Disbursement, disbursement_id)
    if not disbursement:
        raise NotFoundError("Disbursement not found")
    return disbursement


def disbursement_stats() -> dict:
    rows = db.session.query(
        Disbursement.status,
        func.count(Disbursement.id),
    ).group_by(Disbursement.status).all()
    counts = {status: 0 for status in VALID_STATUSES}
    for status, count in rows:
        counts[status] = int(count or 0)

    return {
        "total": sum(counts.values()),
        "by_status": counts,
        "distributed_rice_kg": as_number(distributed(KIND_RICE)),
        "distributed_money": as_number(distributed(KIND_MONEY)),
    }


def _commit_with_photo(op, staged):
    """Run op in a retried transaction, then finalize or discard the staged photo."""
    try:
        result = run_with_retry(op)
    except Exception:
        upload_service.discard_photo(staged)
        raise
    if staged is not None:
        try:
            upload_service.finalize_photo(staged)
        except UploadError:
            upload_service.discard_photo(staged)
            _clear_photo(result.id, staged.filename)
            raise
    return result


def _clear_photo(disbursement_id: int, filename: str) -> None:
    db.session.query(Disbursement).filter(
        Disbursement.id == disbursement_id,
        Disbursement.proof_photo == filename,
    ).update({Disbursement.proof_photo: None}, synchronize_session="fetch")
    db.session.commit()


def create_disbursement(data: dict, *, recorded_by: int | None = None, photo=None) -> Disbursement:
    """
    Allocate collected zakat to a mustahik. The new row starts pending.

    Raises:
        ValidationError: bad input, unknown mustahik, amount above availability
        UploadError: proof photo rejected or not storable
    """
    if not isinstance(data, dict):
        raise ValidationError("Invalid JSON payload")

    beneficiary_id = parse_int(data.get("beneficiary_id"), "beneficiary_id")
    if not db.session.get(Beneficiary, beneficiary_id):
        raise ValidationError("Mustahik not found")
    kind = parse_choice(data.get("zakat_kind"), "zakat_kind", VALID_KINDS)
    amount = parse_positive_decimal(data.get("amount"), "amount")

    staged = upload_service.stage_proof_photo(photo)

    def _op():
        _lock_kind(kind)
        _require_available(kind, amount)
        disbursement = Disbursement(
            beneficiary_id=beneficiary_id,
            zakat_kind=kind,
            amount=amount,
            status=STATUS_PENDING,
            proof_photo=staged.filename if staged else None,
            recorded_by=recorded_by,
        )
        db.session.add(disbursement)
        db.session.commit()
        return disbursement

    return _commit_with_photo(_op, staged)


def update_status(disbursement_id: int, status) -> tuple[Disbursement, str]:
    """
    Move a disbursement to another status. Returns (disbursement, previous_status).

    Leaving cancelled consumes availability again and is checked under the
    kind lock.
    """
    new_status = parse_choice(status, "status", VALID_STATUSES)
    strict = _strict_transitions()

    def _op():
        disbursement = lock_for_update(
            db.session.query(Disbursement).filter(Disbursement.id == disbursement_id)
        ).first()
        if not disbursement:
            raise NotFoundError("Disbursement not found")

        previous = disbursement.status
        if previous == new_status:
            return disbursement, previous

        if strict and new_status not in STRICT_TRANSITIONS.get(previous, set()):
            raise ConflictError(f"Status cannot change from {previous} to {new_status}")

        if previous == STATUS_CANCELLED:
            _lock_kind(disbursement.zakat_kind)
            _require_available(disbursement.zakat_kind, to_decimal(disbursement.amount))

        disbursement.status = new_status
        db.session.commit()
        return disbursement, previous

    return run_with_retry(_op)


def attach_proof_photo(disbursement_id: int, photo) -> Disbursement:
    """Store or replace the proof photo; the replaced file is removed after commit."""
    get_disbursement(disbursement_id)
    staged = upload_service.stage_proof_photo(photo)
    if staged is None:
        raise UploadError("bukti_foto is required")

    replaced = {}

    def _op():
        disbursement = lock_for_update(
            db.session.query(Disbursement).filter(Disbursement.id == disbursement_id)
        ).first()
        if not disbursement:
            raise NotFoundError("Disbursement not found")
        replaced["filename"] = disbursement.proof_photo
        disbursement.proof_photo = staged.filename
        db.session.commit()
        return disbursement

    disbursement = _commit_with_photo(_op, staged)
    upload_service.remove_photo(replaced.get("filename"))
    return disbursement


def delete_disbursement(disbursement_id: int) -> None:
    def _op():
        disbursement = lock_for_update(
            db.session.query(Disbursement).filter(Disbursement.id == disbursement_id)
        ).first()
        if not disbursement:
            raise NotFoundError("Disbursement not found")
        if disbursement.status not in DELETABLE_STATUSES:
            raise ConflictError("Cannot delete a disbursement that has already been acted upon")

        photo = disbursement.proof_photo
        db.session.delete(disbursement)
        db.session.commit()
        return photo

    upload_service.remove_photo(run_with_retry(_op))


# =============================================================================
# REPORTS
# =============================================================================

def _kind_sums():
    rice = func.coalesce(func.sum(case((Disbursement.zakat_kind == KIND_RICE, Disbursement.amount), else_=0)), 0)
    money = func.coalesce(func.sum(case((Disbursement.zakat_kind == KIND_MONEY, Disbursement.amount), else_=0)), 0)
    return rice, money


def report_by_category() -> list[dict]:
    rice, money = _kind_sums()
    received = func.coalesce(func.sum(case((Disbursement.status == STATUS_RECEIVED, 1), else_=0)), 0)
    pending = func.coalesce(func.sum(case((Disbursement.status == STATUS_PENDING, 1), else_=0)), 0)

    rows = db.session.query(
        Beneficiary.category,
        func.count(Disbursement.id),
        rice,
        money,
        received,
        pending,
    ).outerjoin(
        Disbursement,
        (Disbursement.beneficiary_id == Beneficiary.id) & (Disbursement.status != STATUS_CANCELLED),
    ).group_by(Beneficiary.category).order_by(Beneficiary.category.asc()).all()

    return [
        {
            "category": category,
            "total_disbursements": int(count or 0),
            "total_rice_kg": as_number(rice_total),
            "total_money": as_number(money_total),
            "received": int(received_count or 0),
            "pending": int(pending_count or 0),
        }
        for category, count, rice_total, money_total, received_count, pending_count in rows
    ]


def report_by_subdivision() -> list[dict]:
    rice, money = _kind_sums()
    rows = db.session.query(
        Subdivision.id,
        Subdivision.number,
        func.count(Disbursement.id),
        rice,
        money,
    ).select_from(Beneficiary).outerjoin(
        Subdivision, Subdivision.id == Beneficiary.subdivision_id
    ).outerjoin(
        Disbursement,
        (Disbursement.beneficiary_id == Beneficiary.id) & (Disbursement.status != STATUS_CANCELLED),
    ).group_by(Subdivision.id, Subdivision.number).order_by(Subdivision.number.asc()).all()

    return [
        {
            "subdivision_id": rt_id,
            "rt_number": number or "No RT",
            "total_disbursements": int(count or 0),
            "total_rice_kg": as_number(rice_total),
            "total_money": as_number(money_total),
        }
        for rt_id, number, count, rice_total, money_total in rows
    ]
