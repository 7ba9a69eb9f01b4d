# Overview: Service-layer operations for mustahik; encapsulates business logic and database work.

from __future__ import annotations

from sqlalchemy import func
from sqlalchemy.orm import joinedload

from ..extensions import db
from ..models import Beneficiary, Disbursement, Subdivision
from ..models.distribution import BENEFICIARY_CATEGORIES
from .concurrency import commit_or_raise
from ..validation import (
    ConflictError,
    NotFoundError,
    ValidationError,
    parse_choice,
    parse_optional_id,
    require_text,
)


def list_beneficiaries(category: str | None = None, subdivision_id: int | None = None) -> list[Beneficiary]:
    query = db.session.query(Beneficiary).options(joinedload(Beneficiary.subdivision))
    if category:
        query = query.filter(Beneficiary.category == parse_choice(category, "category", BENEFICIARY_CATEGORIES))
    if subdivision_id is not None:
        query = query.filter(Beneficiary.subdivision_id == subdivision_id)
    return query.order_by(Beneficiary.name.asc()).all()


def get_beneficiary(beneficiary_id: int) -> Beneficiary:
    beneficiary = db.session.get(Beneficiary, beneficiary_id)
    if not beneficiary:
        raise NotFoundError("Mustahik not found")
    return beneficiary


def beneficiary_detail(beneficiary_id: int) -> dict:
    beneficiary = get_beneficiary(beneficiary_id)
    history = (
        db.session.query(Disbursement)
        .filter(Disbursement.beneficiary_id == beneficiary.id)
        .order_by(Disbursement.created_at.desc(), Disbursement.id.desc())
        .all()
    )
    data = beneficiary.to_dict()
    data["disbursements"] = [d.to_dict() for d in history]
    return data


def _clean_fields(data: dict) -> dict:
    if not isinstance(data, dict):
        raise ValidationError("Invalid JSON payload")
    name = require_text(data.get("name"), "name", max_length=100)
    category = parse_choice(data.get("category"), "category", BENEFICIARY_CATEGORIES)
    subdivision_id = parse_optional_id(data.get("subdivision_id"), "subdivision_id")
    if subdivision_id is not None and not db.session.get(Subdivision, subdivision_id):
        raise ValidationError("RT not found")
    return {"name": name, "category": category, "subdivision_id": subdivision_id}


def create_beneficiary(data: dict) -> Beneficiary:
    beneficiary = Beneficiary(**_clean_fields(data))
    db.session.add(beneficiary)
    commit_or_raise("create mustahik")
    return beneficiary


def update_beneficiary(beneficiary_id: int, data: dict) -> Beneficiary:
    beneficiary = get_beneficiary(beneficiary_id)
    for key, value in _clean_fields(data).items():
        setattr(beneficiary, key, value)
    commit_or_raise("update mustahik")
    return beneficiary


def delete_beneficiary(beneficiary_id: int) -> str:
    beneficiary = get_beneficiary(beneficiary_id)
    used = db.session.query(func.count(Disbursement.id)).filter(
        Disbursement.beneficiary_id == beneficiary.id
    ).scalar()
    if used:
        raise ConflictError("Mustahik cannot be deleted because it has disbursement records")

    name = beneficiary.name
    db.session.delete(beneficiary)
    commit_or_raise("delete mustahik")
    return name
