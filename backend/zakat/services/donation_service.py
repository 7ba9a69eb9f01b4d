# Overview: Service-layer operations for infak; encapsulates business logic and database work.

from __future__ import annotations

from sqlalchemy import func
from sqlalchemy.orm import joinedload

from ..extensions import db
from ..models import Donation, Payer
from ..models.zakat import DONATION_SOURCE_MANUAL, VALID_DONATION_SOURCES
from ..numbers import to_decimal
from .concurrency import commit_or_raise
from ..validation import (
    ConflictError,
    NotFoundError,
    ValidationError,
    optional_text,
    parse_choice,
    parse_optional_id,
    parse_positive_decimal,
)


def list_donations(source: str | None = None) -> list[Donation]:
    query = db.session.query(Donation).options(
        joinedload(Donation.payer).joinedload(Payer.subdivision),
    )
    if source:
        query = query.filter(Donation.source == parse_choice(source, "source", VALID_DONATION_SOURCES))
    return query.order_by(Donation.created_at.desc(), Donation.id.desc()).all()


def total_donations():
    return to_decimal(db.session.query(func.coalesce(func.sum(Donation.amount), 0)).scalar())


def create_manual_donation(data: dict, *, recorded_by: int | None = None) -> Donation:
    if not isinstance(data, dict):
        raise ValidationError("Invalid JSON payload")

    amount = parse_positive_decimal(data.get("amount"), "amount")
    note = optional_text(data.get("note"), max_length=255, field="note")
    payer_id = parse_optional_id(data.get("payer_id"), "payer_id")
    if payer_id is not None and not db.session.get(Payer, payer_id):
        raise ValidationError("Muzakki not found")

    donation = Donation(
        payer_id=payer_id,
        source=DONATION_SOURCE_MANUAL,
        amount=amount,
        note=note,
        recorded_by=recorded_by,
    )
    db.session.add(donation)
    commit_or_raise("record infak")
    return donation


def delete_donation(donation_id: int) -> None:
    """Only manual rows; change-linked rows follow their payer."""
    donation = db.session.get(Donation, donation_id)
    if not donation:
        raise NotFoundError("Infak not found")
    if donation.source != DONATION_SOURCE_MANUAL:
        raise ConflictError("Infak from change is managed through its muzakki record")

    db.session.delete(donation)
    commit_or_raise("delete infak")
