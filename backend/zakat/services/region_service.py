# Overview: Service-layer operations for RT/RW; encapsulates business logic and database work.

from __future__ import annotations

from sqlalchemy import case, func

from ..extensions import db
from ..models import Beneficiary, Group, Payer, Subdivision
from ..models.zakat import UNIT_KG, UNIT_RUPIAH
from ..numbers import as_number, to_decimal
from .concurrency import commit_or_raise
from ..validation import (
    ConflictError,
    NotFoundError,
    ValidationError,
    optional_text,
    parse_optional_id,
    require_text,
)


def _paid_in_full_case():
    return case((Payer.amount_paid >= Payer.obligation_amount, 1), else_=0)


# =============================================================================
# RT (SUBDIVISION)
# =============================================================================

def get_subdivision(subdivision_id: int) -> Subdivision:
    rt = db.session.get(Subdivision, subdivision_id)
    if not rt:
        raise NotFoundError("RT not found")
    return rt


def _clean_subdivision_fields(data: dict, *, exclude_id: int | None = None) -> dict:
    number = require_text(data.get("number"), "RT number", max_length=10)
    leader = require_text(data.get("leader"), "RT leader", max_length=100)
    note = optional_text(data.get("note"), max_length=100, field="note")
    group_id = parse_optional_id(data.get("group_id"), "group_id")

    if group_id is not None and not db.session.get(Group, group_id):
        raise ValidationError("RW not found")

    duplicate = db.session.query(Subdivision.id).filter(Subdivision.number == number)
    if exclude_id is not None:
        duplicate = duplicate.filter(Subdivision.id != exclude_id)
    if duplicate.first():
        raise ConflictError(f"RT {number} is already registered")

    return {"number": number, "leader": leader, "note": note, "group_id": group_id}


def create_subdivision(data: dict) -> Subdivision:
    fields = _clean_subdivision_fields(data)
    rt = Subdivision(**fields)
    db.session.add(rt)
    commit_or_raise("create RT")
    return rt


def update_subdivision(subdivision_id: int, data: dict) -> Subdivision:
    rt = get_subdivision(subdivision_id)
    fields = _clean_subdivision_fields(data, exclude_id=rt.id)
    for key, value in fields.items():
        setattr(rt, key, value)
    commit_or_raise("update RT")
    return rt


def delete_subdivision(subdivision_id: int) -> str:
    """
    Delete an RT that has no payers and no beneficiaries.

    Returns the deleted RT number.
    """
    rt = get_subdivision(subdivision_id)

    payer_count = db.session.query(func.count(Payer.id)).filter(Payer.subdivision_id == rt.id).scalar()
    if payer_count:
        raise ConflictError("RT cannot be deleted while it still has muzakki records")

    beneficiary_count = db.session.query(func.count(Beneficiary.id)).filter(
        Beneficiary.subdivision_id == rt.id
    ).scalar()
    if beneficiary_count:
        raise ConflictError("RT cannot be deleted while it still has mustahik records")

    number = rt.number
    db.session.delete(rt)
    commit_or_raise("delete RT")
    return number


def subdivision_stats(group_id: int | None = None, limit: int | None = None) -> list[dict]:
    """Per-RT payer count, valued zakat, and paid/unpaid counts."""
    paid = _paid_in_full_case()
    query = db.session.query(
        Subdivision,
        func.count(Payer.id).label("total_payers"),
        func.coalesce(func.sum(Payer.obligation_value), 0).label("total_zakat"),
        func.coalesce(func.sum(paid), 0).label("paid_in_full"),
    ).outerjoin(Payer, Payer.subdivision_id == Subdivision.id)

    if group_id is not None:
        query = query.filter(Subdivision.group_id == group_id)

    query = query.group_by(Subdivision.id).order_by(Subdivision.number.asc())
    if limit:
        query = query.limit(limit)

    rows = []
    for rt, total_payers, total_zakat, paid_in_full in query.all():
        data = rt.to_dict()
        data.update({
            "total_payers": int(total_payers or 0),
            "total_zakat": as_number(total_zakat),
            "paid_in_full": int(paid_in_full or 0),
            "not_paid_in_full": int(total_payers or 0) - int(paid_in_full or 0),
        })
        rows.append(data)
    return rows


def subdivision_detail(subdivision_id: int) -> dict:
    """RT with its payers and aggregate statistics."""
    rt = get_subdivision(subdivision_id)
    payers = (
        db.session.query(Payer)
        .filter(Payer.subdivision_id == rt.id)
        .order_by(Payer.created_at.asc(), Payer.id.asc())
        .all()
    )

    payer_rows = [p.to_dict() for p in payers]
    paid_in_full = sum(1 for p in payers if p.is_paid_in_full)

    def total(attr: str, unit: str):
        return as_number(sum((to_decimal(getattr(p, attr)) for p in payers if p.payment_unit == unit), to_decimal(0)))

    stats = {
        "total_payers": len(payers),
        "total_zakat": as_number(sum((to_decimal(p.obligation_value) for p in payers), to_decimal(0))),
        "total_paid": total("amount_paid", UNIT_RUPIAH),
        "total_change": total("change_amount", UNIT_RUPIAH),
        "total_paid_kg": total("amount_paid", UNIT_KG),
        "total_change_kg": total("change_amount", UNIT_KG),
        "paid_in_full": paid_in_full,
        "not_paid_in_full": len(payers) - paid_in_full,
    }
    return {"rt": rt.to_dict(), "payers": payer_rows, "stats": stats}


# =============================================================================
# RW (GROUP)
# =============================================================================

def get_group(group_id: int) -> Group:
    rw = db.session.get(Group, group_id)
    if not rw:
        raise NotFoundError("RW not found")
    return rw


def _clean_group_fields(data: dict, *, exclude_id: int | None = None) -> dict:
    number = require_text(data.get("number"), "RW number", max_length=10)
    leader = require_text(data.get("leader"), "RW leader", max_length=100)
    note = optional_text(data.get("note"), max_length=100, field="note")

    duplicate = db.session.query(Group.id).filter(Group.number == number)
    if exclude_id is not None:
        duplicate = duplicate.filter(Group.id != exclude_id)
    if duplicate.first():
        raise ConflictError(f"RW {number} is already registered")

    return {"number": number, "leader": leader, "note": note}


def create_group(data: dict) -> Group:
    rw = Group(**_clean_group_fields(data))
    db.session.add(rw)
    commit_or_raise("create RW")
    return rw


def update_group(group_id: int, data: dict) -> Group:
    rw = get_group(group_id)
    for key, value in _clean_group_fields(data, exclude_id=rw.id).items():
        setattr(rw, key, value)
    commit_or_raise("update RW")
    return rw


def delete_group(group_id: int) -> str:
    rw = get_group(group_id)
    rt_count = db.session.query(func.count(Subdivision.id)).filter(Subdivision.group_id == rw.id).scalar()
    if rt_count:
        raise ConflictError("RW cannot be deleted while it still has RT records")

    number = rw.number
    db.session.delete(rw)
    commit_or_raise("delete RW")
    return number


def group_stats() -> list[dict]:
    query = db.session.query(
        Group,
        func.count(func.distinct(Subdivision.id)).label("total_rt"),
        func.count(func.distinct(Payer.id)).label("total_payers"),
    ).outerjoin(
        Subdivision, Subdivision.group_id == Group.id
    ).outerjoin(
        Payer, Payer.subdivision_id == Subdivision.id
    ).group_by(Group.id).order_by(Group.number.asc())

    rows = []
    for rw, total_rt, total_payers in query.all():
        data = rw.to_dict()
        data["total_rt"] = int(total_rt or 0)
        data["total_payers"] = int(total_payers or 0)
        rows.append(data)
    return rows


def group_detail(group_id: int) -> dict:
    rw = get_group(group_id)
    rt_rows = subdivision_stats(group_id=rw.id)
    stats = {
        "total_rt": len(rt_rows),
        "total_payers": sum(r["total_payers"] for r in rt_rows),
        "total_zakat": as_number(sum((to_decimal(r["total_zakat"]) for r in rt_rows), to_decimal(0))),
        "paid_in_full": sum(r["paid_in_full"] for r in rt_rows),
    }
    return {"rw": rw.to_dict(), "rts": rt_rows, "stats": stats}
