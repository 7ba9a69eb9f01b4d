from __future__ import annotations

from ..extensions import db
from zakat.time_utils import to_utc_z


class Group(db.Model):
    """RW: a block grouping several RTs. Used for grouping and reporting only."""
    __tablename__ = "rw"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    number = db.Column(db.String(10), nullable=False, unique=True)
    leader = db.Column(db.String(100), nullable=False)
    note = db.Column(db.String(100), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=True, onupdate=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "number": self.number,
            "leader": self.leader,
            "note": self.note,
            "created_at": to_utc_z(self.created_at),
        }


class Subdivision(db.Model):
    """
    RT: the neighborhood unit every payer is recorded under.

    Optionally nested under one RW. Deleting is refused while payers or
    beneficiaries still reference it (no cascading delete).
    """
    __tablename__ = "rt"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    number = db.Column(db.String(10), nullable=False, unique=True)
    leader = db.Column(db.String(100), nullable=False)
    note = db.Column(db.String(100), nullable=True)
    group_id = db.Column(db.Integer, db.ForeignKey("rw.id"), nullable=True, index=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=True, onupdate=db.func.now())

    group = db.relationship("Group", backref=db.backref("subdivisions", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "number": self.number,
            "leader": self.leader,
            "note": self.note,
            "group_id": self.group_id,
            "group_number": self.group.number if self.group else None,
            "created_at": to_utc_z(self.created_at),
        }
