# Overview: Excel export of payers, one worksheet per RT.

from __future__ import annotations

import io
import re

from openpyxl import Workbook
from openpyxl.styles import Font
from sqlalchemy.orm import selectinload

from ..extensions import db
from ..models import Payer, Subdivision
from ..models.zakat import UNIT_KG, UNIT_RUPIAH
from ..numbers import as_number, to_decimal

XLSX_MIMETYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"

HEADERS = [
    "No",
    "Nama",
    "Jumlah Jiwa",
    "Jenis Zakat",
    "Beras (kg)",
    "Uang (Rp)",
    "Jumlah Bayar",
    "Kembalian",
    "Satuan Bayar",
    "Status",
    "Keterangan",
]

UNIT_LABELS = {UNIT_RUPIAH: "Rp", UNIT_KG: "kg"}

# Excel forbids these in sheet titles
_INVALID_TITLE_CHARS = re.compile(r"[\[\]\*\?/\\:]")


def sheet_title(number: str, used: set[str]) -> str:
    base = _INVALID_TITLE_CHARS.sub("-", f"RT {number}")[:31] or "RT"
    title = base
    suffix = 2
    while title in used:
        tail = f" ({suffix})"
        title = base[: 31 - len(tail)] + tail
        suffix += 1
    used.add(title)
    return title


def _payer_row(index: int, payer: Payer) -> list:
    return [
        index,
        payer.display_name,
        payer.headcount,
        payer.zakat_kind,
        as_number(payer.rice_kg),
        as_number(payer.money_amount),
        as_number(payer.amount_paid),
        as_number(payer.change_amount),
        UNIT_LABELS[payer.payment_unit],
        "Lunas" if payer.is_paid_in_full else "Belum Lunas",
        payer.note or "",
    ]


def build_payers_workbook() -> io.BytesIO:
    """
    Workbook bytes: header row, payer rows and totals per RT.

    Paid and change amounts are totalled per payment unit. The TOTAL row
    carries the Rupiah totals; a "TOTAL (kg)" row follows when the RT has
    legacy rice payments made in kg.
    """
    wb = Workbook()
    wb.remove(wb.active)
    bold = Font(bold=True)
    used_titles: set[str] = set()

    subdivisions = db.session.query(Subdivision).order_by(Subdivision.number.asc()).all()
    for rt in subdivisions:
        ws = wb.create_sheet(title=sheet_title(rt.number, used_titles))
        ws.append(HEADERS)
        for cell in ws[1]:
            cell.font = bold

        payers = (
            db.session.query(Payer)
            .options(selectinload(Payer.names))
            .filter(Payer.subdivision_id == rt.id)
            .order_by(Payer.created_at.asc(), Payer.id.asc())
            .all()
        )
        headcount = 0
        rice = to_decimal(0)
        money = to_decimal(0)
        paid = {UNIT_RUPIAH: to_decimal(0), UNIT_KG: to_decimal(0)}
        change = {UNIT_RUPIAH: to_decimal(0), UNIT_KG: to_decimal(0)}
        for index, payer in enumerate(payers, start=1):
            ws.append(_payer_row(index, payer))
            headcount += payer.headcount
            rice += to_decimal(payer.rice_kg)
            money += to_decimal(payer.money_amount)
            paid[payer.payment_unit] += to_decimal(payer.amount_paid)
            change[payer.payment_unit] += to_decimal(payer.change_amount)

        ws.append([
            "",
            "TOTAL",
            headcount,
            "",
            as_number(rice),
            as_number(money),
            as_number(paid[UNIT_RUPIAH]),
            as_number(change[UNIT_RUPIAH]),
            UNIT_LABELS[UNIT_RUPIAH],
            "",
            "",
        ])
        for cell in ws[ws.max_row]:
            cell.font = bold

        if any(p.payment_unit == UNIT_KG for p in payers):
            ws.append([
                "", "TOTAL (kg)", "", "", "", "",
                as_number(paid[UNIT_KG]),
                as_number(change[UNIT_KG]),
                UNIT_LABELS[UNIT_KG],
                "",
                "",
            ])
            for cell in ws[ws.max_row]:
                cell.font = bold

        ws.column_dimensions["B"].width = 40
        ws.column_dimensions["K"].width = 30

    if not subdivisions:
        ws = wb.create_sheet(title="Muzakki")
        ws.append(HEADERS)

    out = io.BytesIO()
    wb.save(out)
    out.seek(0)
    return out
