# Overview: Pure kewajiban/kembalian computation; no database or request access.

"""
Obligation Calculator

Given a household headcount, the amount handed over and a selected rate,
compute the obligation (kewajiban) and the change (kembalian).

Two rate shapes are accepted:
- RateSpec: a master zakat rate (unit_price per head, unit_weight_kg per head).
  The obligation is always headcount x unit_price; for rice rates the rice
  weight headcount x unit_weight_kg is recorded alongside.
- LegacyRate: the fixed per-head constants (2.5 kg of rice or Rp 45.000).
  The obligation is expressed in the same unit as the payment, so legacy
  rice is paid and changed in kg.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal

from ..models.zakat import KIND_MONEY, KIND_RICE, UNIT_KG, UNIT_RUPIAH, VALID_KINDS
from ..numbers import quantize, to_decimal
from ..validation import ValidationError

ZERO = Decimal("0")


@dataclass(frozen=True)
class RateSpec:
    unit_price: Decimal
    unit_weight_kg: Decimal
    rate_id: int | None = None
    name: str | None = None

    @property
    def kind(self) -> str:
        return KIND_RICE if self.unit_weight_kg > 0 else KIND_MONEY

    @classmethod
    def from_model(cls, rate) -> "RateSpec":
        return cls(
            unit_price=to_decimal(rate.unit_price),
            unit_weight_kg=to_decimal(rate.unit_weight_kg),
            rate_id=rate.id,
            name=rate.name,
        )


@dataclass(frozen=True)
class LegacyRate:
    kind: str
    per_head: Decimal


@dataclass(frozen=True)
class Obligation:
    zakat_kind: str
    rate_id: int | None
    rice_kg: Decimal | None
    money_amount: Decimal | None
    obligation_amount: Decimal
    obligation_value: Decimal
    amount_paid: Decimal
    change_amount: Decimal
    payment_unit: str = UNIT_RUPIAH


def legacy_rate_for(kind: str, *, rice_kg_per_head: Decimal, money_per_head: Decimal) -> LegacyRate:
    if kind not in VALID_KINDS:
        raise ValidationError(f"zakat_kind must be one of: {', '.join(sorted(VALID_KINDS))}")
    if kind == KIND_RICE:
        return LegacyRate(kind=KIND_RICE, per_head=to_decimal(rice_kg_per_head))
    return LegacyRate(kind=KIND_MONEY, per_head=to_decimal(money_per_head))


def compute_change(amount_paid: Decimal, obligation: Decimal) -> Decimal:
    """max(0, paid - obligation)."""
    return max(ZERO, amount_paid - obligation)


def calculate_obligation(
    headcount: int,
    amount_paid: Decimal,
    rate: RateSpec | LegacyRate | None,
    *,
    rice_price_per_kg: Decimal = Decimal("12000"),
) -> Obligation:
    """
    Compute rice/money amounts, obligation and change for one payment.

    Raises:
        ValidationError: headcount <= 0, amount_paid <= 0, or no rate
    """
    if isinstance(headcount, bool) or not isinstance(headcount, int) or headcount <= 0:
        raise ValidationError("headcount must be greater than 0")
    amount_paid = quantize(to_decimal(amount_paid))
    if amount_paid <= 0:
        raise ValidationError("amount_paid must be greater than 0")
    if rate is None:
        raise ValidationError("Zakat rate not found")

    heads = Decimal(headcount)
    rice_kg = None
    money_amount = None
    unit = UNIT_RUPIAH

    if isinstance(rate, LegacyRate):
        kind = rate.kind
        rate_id = None
        if kind == KIND_RICE:
            rice_kg = quantize(heads * rate.per_head)
            obligation = rice_kg
            value = quantize(rice_kg * to_decimal(rice_price_per_kg))
            unit = UNIT_KG
        else:
            money_amount = quantize(heads * rate.per_head)
            obligation = money_amount
            value = money_amount
    else:
        kind = rate.kind
        rate_id = rate.rate_id
        obligation = quantize(heads * rate.unit_price)
        value = obligation
        if kind == KIND_RICE:
            rice_kg = quantize(heads * rate.unit_weight_kg)
        else:
            money_amount = obligation

    return Obligation(
        zakat_kind=kind,
        rate_id=rate_id,
        rice_kg=rice_kg,
        money_amount=money_amount,
        obligation_amount=obligation,
        obligation_value=value,
        amount_paid=amount_paid,
        change_amount=quantize(compute_change(amount_paid, obligation)),
        payment_unit=unit,
    )
