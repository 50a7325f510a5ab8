"""Delivery advice PDF rendering."""

from io import BytesIO
from datetime import date
from typing import Optional

from reportlab.lib import colors
from reportlab.lib.colors import HexColor
from reportlab.lib.pagesizes import A4
from reportlab.lib.units import mm
from reportlab.lib.utils import ImageReader, simpleSplit
from reportlab.pdfgen import canvas
from reportlab.platypus import Table, TableStyle

from freshdock.models.delivery_advice import DeliveryAdviceSnapshot
from freshdock.utils.qr import generate_qr_png
from freshdock.utils.weights import compute_totals, line_total_weight


GREEN = HexColor("#22573c")
LIGHT_GREEN = HexColor("#f0f8f3")
DARK_TEXT = HexColor("#1e2d23")
MUTED_TEXT = HexColor("#647369")
RULE = HexColor("#c8d2c8")
BOX_BORDER = HexColor("#c8dcc8")
TOTAL_BACKGROUND = HexColor("#dce6e1")

FONT = "Helvetica"
FONT_BOLD = "Helvetica-Bold"
FONT_ITALIC = "Helvetica-Oblique"

MARGIN = 15 * mm
BOTTOM_MARGIN = 22 * mm
FOOTER_Y = 10 * mm

DASH = "-"
NO_CON_NOTE = "To be completed by carrier"

TABLE_HEADER = [
    "#", "Product", "Variety", "Grade/Size", "Pack Type",
    "Qty (Ctns)", "Wt/Unit (kg)", "Total Wt (kg)",
]
# Fills the 180 mm content width of an A4 page
TABLE_COLUMN_WIDTHS = [w * mm for w in (8, 40, 25, 20, 22, 18, 22, 25)]

DECLARATION = (
    "This produce is dispatched in good order and condition as described above. "
    "The carrier's con note is the freight contract for this consignment."
)
SIGNATURE_BLOCKS = ["GROWER SIGN-OFF", "CARRIER RECEIPT", "RECEIVER RECEIPT"]


def format_long_date(value: Optional[date]) -> str:
    """e.g. 'Monday 19 October 2026'; '-' when unknown."""
    if not value:
        return DASH
    return f"{value:%A} {value.day} {value:%B %Y}"


def format_number(value: Optional[float]) -> str:
    if value is None:
        return DASH
    if float(value).is_integer():
        return f"{int(value):,}"
    return f"{value:,.2f}".rstrip("0").rstrip(".")


def or_dash(value) -> str:
    if value is None:
        return DASH
    text = str(value).strip()
    return text or DASH


def detail_pairs(snapshot: DeliveryAdviceSnapshot):
    totals = compute_totals(snapshot.items)

    window = DASH
    if snapshot.window_start and snapshot.window_end:
        window = f"{snapshot.window_start} - {snapshot.window_end}"

    zone = snapshot.temperature_zone.capitalize() if snapshot.temperature_zone else DASH
    commodity = snapshot.commodity_class.replace("_", " ") if snapshot.commodity_class else DASH

    return [
        ("Delivery Advice No", snapshot.number),
        ("Dispatch Date", format_long_date(snapshot.dispatch_date)),
        ("Expected Arrival", format_long_date(snapshot.expected_arrival)),
        ("Arrival Window", window),
        ("Temperature Zone", zone),
        ("Commodity Class", commodity),
        ("Total Pallets", str(snapshot.total_pallets or 0)),
        ("Total Cartons", format_number(totals.quantity)),
        ("Total Weight", f"{format_number(totals.weight)} kg"),
    ]


def line_item_rows(snapshot: DeliveryAdviceSnapshot):
    """Header, one row per item, then the TOTAL row."""
    rows = [list(TABLE_HEADER)]
    for position, item in enumerate(snapshot.items, start=1):
        total = line_total_weight(item.quantity, item.unit_weight, item.weight)
        per_unit = item.unit_weight if item.unit_weight and item.unit_weight > 0 else None
        rows.append([
            str(position),
            or_dash(item.product),
            or_dash(item.variety),
            or_dash(item.size),
            or_dash(item.tray_type),
            format_number(max(item.quantity or 0, 0)),
            format_number(per_unit),
            format_number(total),
        ])

    totals = compute_totals(snapshot.items)
    rows.append([
        "TOTAL", "", "", "", "",
        format_number(totals.quantity), "", format_number(totals.weight),
    ])
    return rows


def _line_items_table(rows) -> Table:
    last = len(rows) - 1
    style = [
        ("BACKGROUND", (0, 0), (-1, 0), GREEN),
        ("TEXTCOLOR", (0, 0), (-1, 0), colors.white),
        ("FONTNAME", (0, 0), (-1, 0), FONT_BOLD),
        ("FONTSIZE", (0, 0), (-1, 0), 7),
        ("FONTNAME", (0, 1), (-1, -1), FONT),
        ("FONTSIZE", (0, 1), (-1, -1), 8),
        ("TEXTCOLOR", (0, 1), (-1, -1), DARK_TEXT),
        ("ALIGN", (5, 0), (-1, -1), "RIGHT"),
        ("VALIGN", (0, 0), (-1, -1), "MIDDLE"),
        ("TOPPADDING", (0, 0), (-1, -1), 2),
        ("BOTTOMPADDING", (0, 0), (-1, -1), 3),
        # Totals row
        ("SPAN", (0, last), (4, last)),
        ("FONTNAME", (0, last), (-1, last), FONT_BOLD),
        ("BACKGROUND", (0, last), (-1, last), TOTAL_BACKGROUND),
    ]
    # Shade every second item row
    for row in range(2, last, 2):
        style.append(("BACKGROUND", (0, row), (-1, row), LIGHT_GREEN))

    table = Table(rows, colWidths=TABLE_COLUMN_WIDTHS, repeatRows=1)
    table.setStyle(TableStyle(style))
    return table


def render_delivery_advice(snapshot: DeliveryAdviceSnapshot) -> bytes:
    """Draws the A4 delivery advice and returns the PDF bytes."""
    buffer = BytesIO()
    c = canvas.Canvas(buffer, pagesize=A4)
    c.setTitle(f"Delivery Advice {snapshot.number}")
    c.setAuthor("FreshDock")
    width, height = A4
    content_width = width - 2 * MARGIN
    con_note = (snapshot.con_note_number or "").strip() or NO_CON_NOTE

    def text(value, x, y, size=10, bold=False, color=DARK_TEXT, font=None):
        c.setFont(font or (FONT_BOLD if bold else FONT), size)
        c.setFillColor(color)
        c.drawString(x, y, value)

    def rule(y, color=RULE, line_width=0.3 * mm):
        c.setStrokeColor(color)
        c.setLineWidth(line_width)
        c.line(MARGIN, y, width - MARGIN, y)

    def draw_footer():
        rule(FOOTER_Y + 5 * mm, color=GREEN)
        generated = snapshot.generated_at.strftime("%d/%m/%Y %I:%M%p")
        text(
            f"Generated by FreshDock · {generated} · Scan QR for live status",
            MARGIN, FOOTER_Y, size=7, color=MUTED_TEXT,
        )
        c.drawRightString(width - MARGIN, FOOTER_Y, snapshot.number)

    def new_page():
        draw_footer()
        c.showPage()
        return height - MARGIN

    # -- Header ---------------------------------------------------------------
    y = height - MARGIN
    text("FreshDock", MARGIN, y - 6 * mm, size=22, bold=True, color=GREEN)
    text("DELIVERY ADVICE", MARGIN, y - 14 * mm, size=12, bold=True, color=GREEN)
    text(snapshot.number, MARGIN, y - 22 * mm, size=14, bold=True)

    qr_size = 38 * mm
    qr_x = width - MARGIN - qr_size
    c.setFillColor(LIGHT_GREEN)
    c.setStrokeColor(GREEN)
    c.setLineWidth(0.3 * mm)
    c.roundRect(qr_x - 3 * mm, y - qr_size - 8 * mm, qr_size + 6 * mm, qr_size + 10 * mm,
                2 * mm, stroke=1, fill=1)
    qr_image = ImageReader(BytesIO(generate_qr_png(snapshot.status_url)))
    c.drawImage(qr_image, qr_x, y - qr_size, qr_size, qr_size, mask="auto")
    c.setFont(FONT_BOLD, 6)
    c.setFillColor(GREEN)
    c.drawCentredString(qr_x + qr_size / 2, y - qr_size - 5 * mm, "SCAN FOR LIVE STATUS")

    y -= 50 * mm
    rule(y, color=GREEN, line_width=0.5 * mm)
    y -= 8 * mm

    # -- Parties --------------------------------------------------------------
    grower = snapshot.grower
    receiver = snapshot.receiver
    columns = [
        ("FROM (GROWER)", grower.name, [
            f"Code: {grower.code}" if grower.code else None,
            grower.address, grower.phone, grower.email,
        ]),
        ("TO (RECEIVER)", receiver.name if receiver else "Not specified", [
            receiver.city if receiver else None,
            receiver.phone if receiver else None,
        ]),
        ("TRANSPORT", snapshot.carrier or "Not specified", [
            f"Rego: {snapshot.truck_number}" if snapshot.truck_number else None,
            f"Con Note #: {con_note}",
        ]),
    ]
    column_width = content_width / 3
    deepest = y
    for index, (title, name, lines) in enumerate(columns):
        x = MARGIN + index * column_width
        text(title, x, y, size=8, bold=True, color=GREEN)
        name_lines = simpleSplit(name, FONT_BOLD, 10, column_width - 3 * mm)[:2]
        line_y = y - 5 * mm
        for part in name_lines:
            text(part, x, line_y, size=10, bold=True)
            line_y -= 4.5 * mm
        for line in lines:
            if line:
                text(line, x, line_y, size=8, color=MUTED_TEXT)
                line_y -= 4 * mm
        deepest = min(deepest, line_y)

    y = deepest - 2 * mm
    rule(y)
    y -= 8 * mm

    # -- Delivery details + con note box ---------------------------------------
    text("DELIVERY DETAILS", MARGIN, y, size=8, bold=True, color=GREEN)
    y -= 6 * mm
    details_top = y
    for label, value in detail_pairs(snapshot):
        text(f"{label}:", MARGIN, y, size=8, color=MUTED_TEXT)
        text(value, MARGIN + 45 * mm, y, size=8, bold=True)
        y -= 5 * mm

    box_x = MARGIN + content_width / 2 + 5 * mm
    box_w = content_width / 2 - 5 * mm
    box_h = 35 * mm
    box_top = details_top + 3 * mm
    c.setFillColor(LIGHT_GREEN)
    c.setStrokeColor(BOX_BORDER)
    c.roundRect(box_x, box_top - box_h, box_w, box_h, 2 * mm, stroke=1, fill=1)
    text("CARRIER'S CON NOTE", box_x + 3 * mm, box_top - 6 * mm, size=8, bold=True, color=GREEN)
    text(f"Con Note #: {con_note}", box_x + 3 * mm, box_top - 14 * mm, size=9)
    text("Carrier to complete. Photo can be", box_x + 3 * mm, box_top - 24 * mm,
         size=7, color=MUTED_TEXT)
    text("attached in FreshDock app.", box_x + 3 * mm, box_top - 28 * mm,
         size=7, color=MUTED_TEXT)

    y -= 4 * mm
    rule(y)
    y -= 6 * mm

    # -- Line items -----------------------------------------------------------
    text("LINE ITEMS", MARGIN, y, size=8, bold=True, color=GREEN)
    y -= 4 * mm

    pending = [_line_items_table(line_item_rows(snapshot))]
    while pending:
        part = pending.pop(0)
        available = y - BOTTOM_MARGIN
        _, part_height = part.wrap(content_width, available)
        if part_height <= available:
            part.drawOn(c, MARGIN, y - part_height)
            y -= part_height
            continue

        pieces = part.split(content_width, available)
        if len(pieces) > 1:
            pending = pieces + pending
        elif y < height - MARGIN:
            y = new_page()
            pending.insert(0, part)
        else:
            # A single row taller than a page; draw it and move on
            part.drawOn(c, MARGIN, y - part_height)
            y -= part_height

    y -= 12 * mm

    # -- Declaration and signatures -------------------------------------------
    declaration_lines = simpleSplit(DECLARATION, FONT_ITALIC, 8, content_width)
    needed = (len(declaration_lines) * 4 + 40) * mm
    if y - needed < BOTTOM_MARGIN:
        y = new_page()

    rule(y)
    y -= 6 * mm
    text("DECLARATION", MARGIN, y, size=8, bold=True, color=GREEN)
    y -= 5 * mm
    for line in declaration_lines:
        text(line, MARGIN, y, size=8, color=MUTED_TEXT, font=FONT_ITALIC)
        y -= 4 * mm
    y -= 6 * mm

    signature_width = content_width / 3
    for index, title in enumerate(SIGNATURE_BLOCKS):
        x = MARGIN + index * signature_width
        text(title, x, y, size=7, bold=True, color=GREEN)
        text("Signed: _____________", x, y - 6 * mm, size=7, color=MUTED_TEXT)
        text("Name:   _____________", x, y - 11 * mm, size=7, color=MUTED_TEXT)
        text("Date:   _____________", x, y - 16 * mm, size=7, color=MUTED_TEXT)

    draw_footer()
    c.save()
    return buffer.getvalue()
