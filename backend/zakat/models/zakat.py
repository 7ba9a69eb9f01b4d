from __future__ import annotations

from ..extensions import db
from zakat.numbers import as_number
from zakat.time_utils import to_utc_z

KIND_RICE = "beras"
KIND_MONEY = "uang"
VALID_KINDS = {KIND_RICE, KIND_MONEY}

# Unit of amount_paid / change_amount
UNIT_RUPIAH = "rp"
UNIT_KG = "kg"

DONATION_SOURCE_MANUAL = "manual"
DONATION_SOURCE_CHANGE = "change"
DONATION_SOURCE_CHANGE_DONATED = "change_donated"
VALID_DONATION_SOURCES = {DONATION_SOURCE_MANUAL, DONATION_SOURCE_CHANGE, DONATION_SOURCE_CHANGE_DONATED}

CHANGE_DONATION_NOTE = "Kembalian dari zakat fitrah"


class MasterZakatRate(db.Model):
    """
    Selectable obligation rate (e.g. "Beras Standar": 45000 / 2.5 kg).

    unit_weight_kg > 0 means the rate is rice-denominated, otherwise money.
    """
    __tablename__ = "master_zakat"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(100), nullable=False, index=True)
    unit_price = db.Column(db.Numeric(15, 2), nullable=False, default=0)
    unit_weight_kg = db.Column(db.Numeric(10, 2), nullable=False, default=0)

    created_by = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    updated_by = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=True, onupdate=db.func.now())

    @property
    def kind(self) -> str:
        return KIND_RICE if (self.unit_weight_kg or 0) > 0 else KIND_MONEY

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "unit_price": as_number(self.unit_price),
            "unit_weight_kg": as_number(self.unit_weight_kg),
            "kind": self.kind,
            "created_by": self.created_by,
            "updated_by": self.updated_by,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class Payer(db.Model):
    """
    Muzakki: one household payment recorded under an RT.

    Exactly one of rice_kg / money_amount is set, matching zakat_kind.
    obligation_amount is the kewajiban in the unit the payment was made in
    (payment_unit: kg for legacy rice payments, Rupiah otherwise);
    obligation_value is the same obligation valued in Rupiah for reports.
    """
    __tablename__ = "muzakki"
    __table_args__ = (
        db.CheckConstraint(
            "(rice_kg IS NULL) <> (money_amount IS NULL)",
            name="ck_muzakki_one_amount",
        ),
        db.Index("ix_muzakki_rt_created", "subdivision_id", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    subdivision_id = db.Column(db.Integer, db.ForeignKey("rt.id"), nullable=False, index=True)
    headcount = db.Column(db.Integer, nullable=False)
    zakat_kind = db.Column(db.String(8), nullable=False)
    rate_id = db.Column(db.Integer, db.ForeignKey("master_zakat.id", ondelete="SET NULL"), nullable=True, index=True)

    rice_kg = db.Column(db.Numeric(10, 2), nullable=True)
    money_amount = db.Column(db.Numeric(15, 2), nullable=True)
    obligation_amount = db.Column(db.Numeric(15, 2), nullable=False)
    obligation_value = db.Column(db.Numeric(15, 2), nullable=False)
    amount_paid = db.Column(db.Numeric(15, 2), nullable=False)
    change_amount = db.Column(db.Numeric(15, 2), nullable=False, default=0)
    payment_unit = db.Column(db.String(4), nullable=False, default=UNIT_RUPIAH, server_default=UNIT_RUPIAH)

    note = db.Column(db.Text, nullable=True)
    recorded_by = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=True, onupdate=db.func.now())

    subdivision = db.relationship("Subdivision", backref=db.backref("payers", lazy=True))
    rate = db.relationship("MasterZakatRate", backref=db.backref("payers", lazy=True, passive_deletes=True))
    recorder = db.relationship("User")
    names = db.relationship(
        "PayerName",
        back_populates="payer",
        cascade="all, delete-orphan",
        order_by="PayerName.id",
        lazy=True,
    )

    @property
    def is_paid_in_full(self) -> bool:
        return self.amount_paid >= self.obligation_amount

    @property
    def display_name(self) -> str:
        return ", ".join(n.full_name for n in self.names)

    def to_dict(self, *, include_names: bool = True) -> dict:
        data = {
            "id": self.id,
            "subdivision_id": self.subdivision_id,
            "rt_number": self.subdivision.number if self.subdivision else None,
            "headcount": self.headcount,
            "zakat_kind": self.zakat_kind,
            "rate_id": self.rate_id,
            "rate_name": self.rate.name if self.rate else None,
            "rice_kg": as_number(self.rice_kg),
            "money_amount": as_number(self.money_amount),
            "obligation_amount": as_number(self.obligation_amount),
            "obligation_value": as_number(self.obligation_value),
            "amount_paid": as_number(self.amount_paid),
            "change_amount": as_number(self.change_amount),
            "payment_unit": self.payment_unit,
            "status": "lunas" if self.is_paid_in_full else "belum_lunas",
            "note": self.note,
            "recorded_by": self.recorded_by,
            "recorder_name": self.recorder.name if self.recorder else None,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
        if include_names:
            data["names"] = [n.to_dict() for n in self.names]
        return data


class PayerName(db.Model):
    """Individual person covered by a household payment. Owned by Payer."""
    __tablename__ = "muzakki_details"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    payer_id = db.Column(db.Integer, db.ForeignKey("muzakki.id", ondelete="CASCADE"), nullable=False, index=True)
    full_name = db.Column(db.String(100), nullable=False)
    patronymic = db.Column(db.String(10), nullable=True)  # bin / binti
    parent_name = db.Column(db.String(100), nullable=True)

    payer = db.relationship("Payer", back_populates="names")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "full_name": self.full_name,
            "patronymic": self.patronymic,
            "parent_name": self.parent_name,
        }


class Donation(db.Model):
    """
    Infak ledger row.

    source tells how the row came to be:
    - change: mirror of payer.change_amount, maintained by the payment ledger
    - change_donated: change consumed by the "sedekahkan kembalian" action
    - manual: entered directly
    """
    __tablename__ = "infak"
    __table_args__ = (
        db.Index("ix_infak_payer_source", "payer_id", "source"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    payer_id = db.Column(db.Integer, db.ForeignKey("muzakki.id"), nullable=True)
    source = db.Column(db.String(16), nullable=False, default=DONATION_SOURCE_MANUAL)
    amount = db.Column(db.Numeric(15, 2), nullable=False)
    note = db.Column(db.String(255), nullable=True)

    recorded_by = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=True, onupdate=db.func.now())

    payer = db.relationship("Payer", backref=db.backref("donations", lazy=True))

    def to_dict(self) -> dict:
        payer = self.payer
        return {
            "id": self.id,
            "payer_id": self.payer_id,
            "source": self.source,
            "amount": as_number(self.amount),
            "note": self.note,
            "payer_names": payer.display_name if payer else None,
            "rt_number": payer.subdivision.number if payer and payer.subdivision else None,
            "headcount": payer.headcount if payer else None,
            "created_at": to_utc_z(self.created_at),
        }
