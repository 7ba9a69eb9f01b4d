# Overview: Service-layer operations for master zakat rates; encapsulates business logic and database work.

from __future__ import annotations

from ..extensions import db
from ..models import MasterZakatRate, Payer
from .concurrency import commit_or_raise
from ..validation import ModelValidationPolicy, NotFoundError, validate_payload


RATE_POLICY = ModelValidationPolicy(
    writable_fields={"name", "unit_price", "unit_weight_kg"},
    required_on_create={"name"},
    non_negative_fields={"unit_price", "unit_weight_kg"},
)


def list_rates() -> list[MasterZakatRate]:
    return db.session.query(MasterZakatRate).order_by(MasterZakatRate.name.asc()).all()


def get_rate(rate_id: int) -> MasterZakatRate:
    rate = db.session.get(MasterZakatRate, rate_id)
    if not rate:
        raise NotFoundError("Zakat rate not found")
    return rate


def create_rate(payload: dict, *, user_id: int | None = None) -> MasterZakatRate:
    patch = validate_payload(model=MasterZakatRate, payload=payload, policy=RATE_POLICY, partial=False)
    rate = MasterZakatRate(
        name=patch["name"],
        unit_price=patch.get("unit_price") or 0,
        unit_weight_kg=patch.get("unit_weight_kg") or 0,
        created_by=user_id,
        updated_by=user_id,
    )
    db.session.add(rate)
    commit_or_raise("create zakat rate")
    return rate


def update_rate(rate_id: int, payload: dict, *, user_id: int | None = None) -> MasterZakatRate:
    rate = get_rate(rate_id)
    patch = validate_payload(model=MasterZakatRate, payload=payload, policy=RATE_POLICY, partial=True)
    for key, value in patch.items():
        setattr(rate, key, value)
    rate.updated_by = user_id
    commit_or_raise("update zakat rate")
    return rate


def delete_rate(rate_id: int) -> None:
    """Payers keep their stored amounts; only the back-reference is cleared."""
    rate = get_rate(rate_id)
    db.session.query(Payer).filter(Payer.rate_id == rate.id).update(
        {Payer.rate_id: None}, synchronize_session=False
    )
    db.session.delete(rate)
    commit_or_raise("delete zakat rate")
