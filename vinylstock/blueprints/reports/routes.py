from datetime import datetime
from io import BytesIO

from flask import current_app, flash, redirect, render_template, request, send_file, url_for

from reportlab.lib.pagesizes import A4
from reportlab.pdfgen import canvas
from reportlab.lib.units import mm

from openpyxl import Workbook

from vinylstock import repository
from vinylstock.errors import DataAccessError
from vinylstock.inventory import (
    aggregate_by_material,
    default_range,
    format_feet,
    inches_to_feet,
    parse_date,
)
from vinylstock.permissions import session_required

from . import reports_bp

XLSX_MIMETYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


# =========================
# Helpers
# =========================
def _date_range():
    def_from, def_to = default_range(current_app.config.get("REPORT_DEFAULT_DAYS", 30))
    date_from = parse_date(request.args.get("from")) or def_from
    date_to = parse_date(request.args.get("to")) or def_to
    return date_from, date_to


def _usage_report():
    date_from, date_to = _date_range()
    usages = repository.usages_between(date_from, date_to)
    rows = aggregate_by_material(usages, date_from, date_to)
    return date_from, date_to, rows, len(usages)


def _wb_to_bytes(wb: Workbook) -> BytesIO:
    bio = BytesIO()
    wb.save(bio)
    bio.seek(0)
    return bio


def _pdf_table(title: str, subtitle: str, headers: list[str], rows: list[list[str]], filename: str):
    bio = BytesIO()
    c = canvas.Canvas(bio, pagesize=A4)
    w, h = A4

    x = 15 * mm
    y = h - 20 * mm

    c.setFont("Helvetica-Bold", 14)
    c.drawString(x, y, title)
    y -= 10 * mm

    c.setFont("Helvetica", 9)
    c.drawString(x, y, f"{subtitle} · Generated {datetime.now().strftime('%Y-%m-%d %H:%M')}")
    y -= 8 * mm

    # header
    c.setFont("Helvetica-Bold", 9)
    colw = (w - 30 * mm) / max(1, len(headers))
    for i, head in enumerate(headers):
        c.drawString(x + i * colw, y, head[:28])
    y -= 6 * mm

    c.setFont("Helvetica", 9)
    for row in rows:
        if y < 20 * mm:
            c.showPage()
            y = h - 20 * mm
            c.setFont("Helvetica-Bold", 9)
            for i, head in enumerate(headers):
                c.drawString(x + i * colw, y, head[:28])
            y -= 6 * mm
            c.setFont("Helvetica", 9)

        for i, cell in enumerate(row):
            c.drawString(x + i * colw, y, str(cell)[:28])
        y -= 5 * mm

    c.showPage()
    c.save()
    bio.seek(0)

    return send_file(
        bio,
        as_attachment=True,
        download_name=filename,
        mimetype="application/pdf",
    )


# =========================
# Usage by material
# =========================
@reports_bp.get("/reports/usage")
@session_required
def usage_report():
    try:
        date_from, date_to, rows, cuts = _usage_report()
    except DataAccessError as e:
        flash(str(e), "danger")
        date_from, date_to = _date_range()
        rows, cuts = [], 0

    return render_template(
        "reports/usage.html",
        rows=rows,
        cuts=cuts,
        date_from=date_from.isoformat(),
        date_to=date_to.isoformat(),
    )


@reports_bp.get("/reports/usage.xlsx")
@session_required
def usage_report_xlsx():
    try:
        date_from, date_to, rows, _ = _usage_report()
    except DataAccessError as e:
        flash(str(e), "danger")
        return redirect(url_for("reports.usage_report", **request.args.to_dict()))

    wb = Workbook()
    ws = wb.active
    ws.title = "Usage"
    ws.append(["Brand", "Film code", "Color", "Width (in)", "Used (ft)", "Waste (ft)", "Waste %", "Cuts"])

    for m in rows:
        ws.append([
            m.brand,
            m.film_code,
            m.color_name,
            m.width_in,
            round(inches_to_feet(m.used_in), 1),
            round(inches_to_feet(m.waste_in), 1),
            round(m.waste_percent, 1),
            m.cuts,
        ])

    bio = _wb_to_bytes(wb)
    return send_file(
        bio,
        as_attachment=True,
        download_name=f"usage_{date_from.isoformat()}_{date_to.isoformat()}.xlsx",
        mimetype=XLSX_MIMETYPE,
    )


@reports_bp.get("/reports/usage.pdf")
@session_required
def usage_report_pdf():
    try:
        date_from, date_to, rows, cuts = _usage_report()
    except DataAccessError as e:
        flash(str(e), "danger")
        return redirect(url_for("reports.usage_report", **request.args.to_dict()))

    headers = ["Material", "Color", "Width", "Used (ft)", "Waste (ft)", "Waste %"]
    table = [
        [
            f"{m.brand} {m.film_code}",
            m.color_name,
            f'{m.width_in}"',
            format_feet(m.used_in),
            format_feet(m.waste_in),
            f"{m.waste_percent:.1f}%",
        ]
        for m in rows
    ]

    return _pdf_table(
        "Vinyl Usage by Material",
        f"{date_from.isoformat()} to {date_to.isoformat()} ({cuts} cuts)",
        headers,
        table,
        f"usage_{date_from.isoformat()}_{date_to.isoformat()}.pdf",
    )


# =========================
# History
# =========================
@reports_bp.get("/history")
@session_required
def history():
    tab = request.args.get("tab", "archived")
    if tab not in ("archived", "reports"):
        tab = "archived"
    date_from, date_to = _date_range()

    archived, rows = [], []
    try:
        if tab == "archived":
            archived = repository.consumed_rolls_with_usages(date_from, date_to)
        else:
            _, _, rows, _ = _usage_report()
    except DataAccessError as e:
        flash(str(e), "danger")

    return render_template(
        "reports/history.html",
        tab=tab,
        archived=archived,
        rows=rows,
        date_from=date_from.isoformat(),
        date_to=date_to.isoformat(),
    )
