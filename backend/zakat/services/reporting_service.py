# Overview: Service-layer operations for reports; encapsulates business logic and database work.

from __future__ import annotations

from sqlalchemy import case, func
from sqlalchemy.orm import joinedload, selectinload

from ..extensions import db
from ..models import Payer, Subdivision
from ..models.zakat import KIND_MONEY, KIND_RICE, UNIT_KG, UNIT_RUPIAH
from ..numbers import as_number
from . import donation_service, region_service


def dashboard_summary() -> dict:
    """Headline numbers for the dashboard."""
    total_payers, total_zakat, unpaid = db.session.query(
        func.count(Payer.id),
        func.coalesce(func.sum(Payer.obligation_value), 0),
        func.coalesce(func.sum(case((Payer.amount_paid < Payer.obligation_amount, 1), else_=0)), 0),
    ).one()

    recent = (
        db.session.query(Payer)
        .options(joinedload(Payer.subdivision), selectinload(Payer.names))
        .order_by(Payer.created_at.desc(), Payer.id.desc())
        .limit(5)
        .all()
    )

    return {
        "total_payers": int(total_payers or 0),
        "total_zakat": as_number(total_zakat),
        "not_paid_in_full": int(unpaid or 0),
        "total_infak": as_number(donation_service.total_donations()),
        "recent_payers": [p.to_dict() for p in recent],
        "rt_stats": region_service.subdivision_stats(limit=10),
    }


def _sum_in_unit(column, unit: str):
    return func.coalesce(func.sum(case((Payer.payment_unit == unit, column), else_=0)), 0)


def report_per_subdivision() -> dict:
    """
    Laporan per RT: rice kg, money obligation, amount collected and change per RT.

    Collected and change are totalled per payment unit: Rupiah, and kg for
    legacy rice payments.
    """
    rice = func.coalesce(func.sum(case((Payer.zakat_kind == KIND_RICE, Payer.rice_kg), else_=0)), 0)
    money = func.coalesce(func.sum(case((Payer.zakat_kind == KIND_MONEY, Payer.money_amount), else_=0)), 0)

    rows = db.session.query(
        Subdivision.id,
        Subdivision.number,
        Subdivision.leader,
        func.count(Payer.id),
        rice,
        money,
        _sum_in_unit(Payer.amount_paid, UNIT_RUPIAH),
        _sum_in_unit(Payer.change_amount, UNIT_RUPIAH),
        _sum_in_unit(Payer.amount_paid, UNIT_KG),
        _sum_in_unit(Payer.change_amount, UNIT_KG),
    ).outerjoin(
        Payer, Payer.subdivision_id == Subdivision.id
    ).group_by(
        Subdivision.id, Subdivision.number, Subdivision.leader
    ).order_by(Subdivision.number.asc()).all()

    per_rt = [
        {
            "subdivision_id": rt_id,
            "rt_number": number,
            "leader": leader,
            "total_payers": int(count or 0),
            "total_rice_kg": as_number(rice_kg),
            "total_money_obligation": as_number(money_total),
            "total_collected": as_number(paid),
            "total_change": as_number(change),
            "total_collected_kg": as_number(paid_kg),
            "total_change_kg": as_number(change_kg),
        }
        for rt_id, number, leader, count, rice_kg, money_total, paid, change, paid_kg, change_kg in rows
    ]
    return {
        "per_rt": per_rt,
        "total_infak": as_number(donation_service.total_donations()),
    }
