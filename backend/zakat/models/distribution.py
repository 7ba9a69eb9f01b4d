from __future__ import annotations

from ..extensions import db
from zakat.numbers import as_number
from zakat.time_utils import to_utc_z

# Eight asnaf eligible to receive zakat
BENEFICIARY_CATEGORIES = {
    "fakir",
    "miskin",
    "amil",
    "mualaf",
    "riqab",
    "gharim",
    "fisabilillah",
    "ibnu_sabil",
}

STATUS_PENDING = "pending"
STATUS_DISBURSED = "disalurkan"
STATUS_RECEIVED = "diterima"
STATUS_CANCELLED = "batal"
VALID_STATUSES = {STATUS_PENDING, STATUS_DISBURSED, STATUS_RECEIVED, STATUS_CANCELLED}
DELETABLE_STATUSES = {STATUS_PENDING, STATUS_CANCELLED}


class Beneficiary(db.Model):
    """Mustahik. Cannot be deleted once any disbursement references it."""
    __tablename__ = "mustahik"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    subdivision_id = db.Column(db.Integer, db.ForeignKey("rt.id"), nullable=True, index=True)
    name = db.Column(db.String(100), nullable=False)
    category = db.Column(db.String(20), nullable=False, index=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=True, onupdate=db.func.now())

    subdivision = db.relationship("Subdivision", backref=db.backref("beneficiaries", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "subdivision_id": self.subdivision_id,
            "rt_number": self.subdivision.number if self.subdivision else None,
            "name": self.name,
            "category": self.category,
            "created_at": to_utc_z(self.created_at),
        }


class Disbursement(db.Model):
    """
    Distribusi zakat: an allocation of collected rice or money to a mustahik.

    Created pending. Rows that are not cancelled count against the
    available balance of their kind.
    """
    __tablename__ = "distribusi_zakat"
    __table_args__ = (
        db.Index("ix_distribusi_kind_status", "zakat_kind", "status"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    beneficiary_id = db.Column(db.Integer, db.ForeignKey("mustahik.id"), nullable=False, index=True)
    zakat_kind = db.Column(db.String(8), nullable=False)
    amount = db.Column(db.Numeric(15, 2), nullable=False)
    status = db.Column(db.String(16), nullable=False, default=STATUS_PENDING, index=True)
    proof_photo = db.Column(db.String(255), nullable=True)
    recorded_by = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=True, onupdate=db.func.now())

    beneficiary = db.relationship("Beneficiary", backref=db.backref("disbursements", lazy=True))
    recorder = db.relationship("User")

    def to_dict(self) -> dict:
        beneficiary = self.beneficiary
        return {
            "id": self.id,
            "beneficiary_id": self.beneficiary_id,
            "beneficiary_name": beneficiary.name if beneficiary else None,
            "beneficiary_category": beneficiary.category if beneficiary else None,
            "rt_number": beneficiary.subdivision.number if beneficiary and beneficiary.subdivision else None,
            "zakat_kind": self.zakat_kind,
            "amount": as_number(self.amount),
            "status": self.status,
            "proof_photo": self.proof_photo,
            "recorded_by": self.recorded_by,
            "recorder_name": self.recorder.name if self.recorder else None,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class AllocationLock(db.Model):
    """
    One row per zakat kind, locked FOR UPDATE while availability is checked
    so concurrent disbursements of the same kind serialize.
    """
    __tablename__ = "allocation_locks"

    zakat_kind = db.Column(db.String(8), primary_key=True)
    version = db.Column(db.Integer, nullable=False, default=0)
