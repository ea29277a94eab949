from __future__ import annotations

import base64
import binascii
import html
import logging
from dataclasses import dataclass
from datetime import datetime
from io import BytesIO
from typing import List, Optional, Tuple, Union

from reportlab.lib import colors
from reportlab.lib.pagesizes import A4
from reportlab.pdfgen import canvas
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from clubhub.core.clock import as_utc
from clubhub.core.config import settings
from clubhub.models.event import Event, Registration
from clubhub.models.payment import PaymentReceipt
from clubhub.models.user import User
from clubhub.services.errors import NotFoundError, ValidationError

logger = logging.getLogger(__name__)

RECEIPT_FORMATS = ("pdf", "html")


@dataclass
class ReceiptView:
    receipt_number: str
    payment_date: Optional[datetime]
    payer_name: str
    payer_email: str
    matric_number: Optional[str]
    event_title: str
    event_date: Optional[datetime]
    payment_method: str
    transaction_id: Optional[str]
    payment_status: str
    amount: float
    currency: str


@dataclass
class RenderedReceipt:
    content: Union[bytes, str]
    media_type: str
    filename: str
    fallback: bool = False


def _fmt_date(dt: Optional[datetime]) -> str:
    if not dt:
        return "N/A"
    return as_utc(dt).strftime("%B %d, %Y")


def _money(amount: float, currency: str) -> str:
    return f"{currency} {float(amount or 0):,.2f}"


def build_receipt_view(event: Event, registration: Registration, user: Optional[User]) -> ReceiptView:
    pr = registration.payment_receipt
    if pr is None:
        raise NotFoundError("Receipt not found for this registration")

    payer_name = registration.registration_name or (user.name if user else None) or (user.email if user else "")
    payer_email = registration.registration_email or (user.email if user else "")

    return ReceiptView(
        receipt_number=pr.receipt_number,
        payment_date=pr.generated_at,
        payer_name=payer_name or "",
        payer_email=payer_email or "",
        matric_number=registration.matric_number,
        event_title=event.title,
        event_date=event.date,
        payment_method=pr.payment_method or "Online Banking",
        transaction_id=pr.transaction_id,
        payment_status=pr.payment_status,
        amount=float(pr.amount or 0),
        currency=pr.currency or settings.DEFAULT_CURRENCY,
    )


# -------------------------
# HTML
# -------------------------
_BADGE_COLORS = {
    "Verified": ("#d1fae5", "#059669"),
    "Pending": ("#fef3c7", "#b45309"),
    "Rejected": ("#fee2e2", "#b91c1c"),
}


def render_receipt_html(view: ReceiptView) -> str:
    e = html.escape
    badge_bg, badge_fg = _BADGE_COLORS.get(view.payment_status, ("#e5e7eb", "#374151"))

    rows = [
        ("Paid By", view.payer_name),
        ("Matric Number", view.matric_number or "N/A"),
        ("Email", view.payer_email),
        ("Event", view.event_title),
        ("Event Date", _fmt_date(view.event_date)),
        ("Payment Method", view.payment_method),
        ("Transaction ID", view.transaction_id or "N/A"),
    ]
    rows_html = "\n".join(
        f'<tr><td style="padding:10px 0;color:#6b7280;font-size:12px;text-transform:uppercase;">{e(label)}</td>'
        f'<td style="padding:10px 0;text-align:right;color:#111827;font-weight:500;">{e(str(value))}</td></tr>'
        for label, value in rows
    )

    return f"""<!DOCTYPE html>
<html>
<head>
<meta charset="utf-8">
<title>Receipt {e(view.receipt_number)}</title>
</head>
<body style="margin:0;padding:40px 20px;background:#f3f4f6;font-family:Arial,Helvetica,sans-serif;">
<div style="max-width:560px;margin:0 auto;background:#ffffff;border-radius:12px;overflow:hidden;">
  <div style="background:#1a5490;padding:28px 36px;text-align:center;">
    <h1 style="color:#ffffff;margin:0;font-size:24px;">{e(settings.CLUB_NAME)}</h1>
    <p style="color:#dbeafe;margin:6px 0 0 0;font-size:14px;">{e(settings.CLUB_TAGLINE)}</p>
  </div>
  <div style="padding:32px 36px;">
    <h2 style="text-align:center;margin:0 0 8px 0;font-size:20px;color:#111827;">OFFICIAL RECEIPT</h2>
    <p style="text-align:center;margin:0;font-family:'Courier New',monospace;font-size:18px;">{e(view.receipt_number)}</p>
    <p style="text-align:center;margin:6px 0 0 0;color:#6b7280;font-size:13px;">Payment date: {e(_fmt_date(view.payment_date))}</p>
    <p style="text-align:center;margin:16px 0;">
      <span style="background:{badge_bg};color:{badge_fg};padding:4px 14px;border-radius:20px;font-size:12px;font-weight:bold;">{e(view.payment_status.upper())}</span>
    </p>
    <table role="presentation" width="100%" cellspacing="0" cellpadding="0" style="border-top:1px solid #e5e7eb;">
{rows_html}
    </table>
    <div style="margin-top:24px;border:2px solid #1a5490;border-radius:8px;padding:16px;text-align:center;">
      <p style="margin:0;color:#1a5490;font-size:13px;text-transform:uppercase;">Total Amount</p>
      <p style="margin:6px 0 0 0;color:#1a5490;font-size:28px;font-weight:bold;">{e(_money(view.amount, view.currency))}</p>
    </div>
    <p style="margin-top:28px;text-align:center;color:#9ca3af;font-size:12px;">
      Thank you for your payment! For inquiries contact {e(settings.CLUB_CONTACT_EMAIL)}
    </p>
  </div>
</div>
</body>
</html>
"""


# -------------------------
# PDF
# -------------------------
def render_receipt_pdf(view: ReceiptView) -> bytes:
    buf = BytesIO()
    c = canvas.Canvas(buf, pagesize=A4)
    width, height = A4
    left = 50
    brand = colors.HexColor("#1a5490")

    c.setTitle(f"Receipt {view.receipt_number}")

    # letterhead
    c.setFillColor(brand)
    c.setFont("Helvetica-Bold", 24)
    c.drawCentredString(width / 2, height - 60, settings.CLUB_NAME)
    c.setFillColor(colors.HexColor("#666666"))
    c.setFont("Helvetica", 12)
    c.drawCentredString(width / 2, height - 80, settings.CLUB_TAGLINE)

    c.setFillColor(colors.black)
    c.setFont("Helvetica-Bold", 18)
    c.drawCentredString(width / 2, height - 120, "OFFICIAL RECEIPT")

    c.setFont("Helvetica", 11)
    c.drawString(left, height - 160, f"Receipt No: {view.receipt_number}")
    c.drawString(left, height - 178, f"Payment Date: {_fmt_date(view.payment_date)}")

    c.setStrokeColor(colors.HexColor("#cccccc"))
    c.setLineWidth(1)
    c.line(left, height - 195, width - left, height - 195)

    # details
    details = [
        ("Paid By:", view.payer_name),
        ("Matric No:", view.matric_number or "N/A"),
        ("Email:", view.payer_email),
        ("Event:", view.event_title),
        ("Event Date:", _fmt_date(view.event_date)),
        ("Payment Method:", view.payment_method),
        ("Transaction ID:", view.transaction_id or "N/A"),
    ]
    y = height - 225
    c.setFont("Helvetica-Bold", 12)
    c.drawString(left, y, "Payment Details")
    y -= 24
    for label, value in details:
        c.setFont("Helvetica", 10)
        c.setFillColor(colors.HexColor("#666666"))
        c.drawString(left + 10, y, label)
        c.setFillColor(colors.black)
        c.drawString(left + 110, y, str(value)[:60])
        y -= 20

    # verification badge
    badge_fill = colors.HexColor("#059669") if view.payment_status == "Verified" else colors.HexColor("#b45309")
    c.setFillColor(badge_fill)
    c.roundRect(width - left - 140, height - 180, 140, 26, 8, stroke=0, fill=1)
    c.setFillColor(colors.white)
    c.setFont("Helvetica-Bold", 11)
    c.drawCentredString(width - left - 70, height - 171, view.payment_status.upper())

    # amount box
    box_y = y - 90
    c.setStrokeColor(brand)
    c.setLineWidth(2)
    c.rect(width - left - 200, box_y, 200, 70, stroke=1, fill=0)
    c.setFillColor(brand)
    c.setFont("Helvetica-Bold", 12)
    c.drawString(width - left - 190, box_y + 48, "Total Amount")
    c.setFont("Helvetica-Bold", 18)
    c.drawString(width - left - 190, box_y + 18, _money(view.amount, view.currency))

    # footer
    c.setFillColor(colors.HexColor("#999999"))
    c.setFont("Helvetica", 9)
    c.drawCentredString(width / 2, 90, "Thank you for your payment!")
    c.drawCentredString(width / 2, 76, f"This is an official receipt issued by {settings.CLUB_NAME}")
    c.drawCentredString(width / 2, 62, f"For inquiries, please contact us at {settings.CLUB_CONTACT_EMAIL}")

    c.showPage()
    c.save()
    return buf.getvalue()


# -------------------------
# Lookups
# -------------------------
async def _get_event(db: AsyncSession, event_id: int) -> Event:
    res = await db.execute(select(Event).where(Event.id == event_id))
    event = res.scalar_one_or_none()
    if event is None:
        raise NotFoundError("Event not found")
    return event


async def load_registration_receipt(
    db: AsyncSession, event_id: int, user_id: int
) -> Tuple[Event, Registration, User]:
    event = await _get_event(db, event_id)

    registration = next((r for r in event.registrations if r.user_id == user_id), None)
    if registration is None or registration.payment_receipt is None:
        raise NotFoundError("Receipt not found for this registration")

    res = await db.execute(select(User).where(User.id == user_id))
    user = res.scalar_one_or_none()
    if user is None:
        raise NotFoundError("User not found")

    return event, registration, user


async def render_receipt(db: AsyncSession, event_id: int, user_id: int, fmt: str = "pdf") -> RenderedReceipt:
    if fmt not in RECEIPT_FORMATS:
        raise ValidationError("format must be 'pdf' or 'html'")

    event, registration, user = await load_registration_receipt(db, event_id, user_id)
    view = build_receipt_view(event, registration, user)

    if fmt == "html":
        return RenderedReceipt(
            content=render_receipt_html(view),
            media_type="text/html",
            filename=f"receipt-{view.receipt_number}.html",
        )

    if view.payment_status != "Verified":
        raise ValidationError(
            f"Receipt not available: payment status is {view.payment_status}. "
            "Official receipts are issued only for verified payments."
        )

    try:
        pdf_bytes = render_receipt_pdf(view)
        return RenderedReceipt(
            content=pdf_bytes,
            media_type="application/pdf",
            filename=f"receipt-{view.receipt_number}.pdf",
        )
    except Exception:
        logger.exception("[receipts] PDF rendering failed for %s; falling back to HTML", view.receipt_number)
        return RenderedReceipt(
            content=render_receipt_html(view),
            media_type="text/html",
            filename=f"receipt-{view.receipt_number}.html",
            fallback=True,
        )


# -------------------------
# Sharing
# -------------------------
# NOTE: the token is a plain base64 of "eventId:userId:receiptNumber", not a signature.
# Anyone holding the three identifiers can build a valid link.
def encode_share_token(event_id: int, user_id: int, receipt_number: str) -> str:
    raw = f"{event_id}:{user_id}:{receipt_number}".encode("utf-8")
    return base64.b64encode(raw).decode("ascii")


def decode_share_token(token: str) -> Tuple[int, int, str]:
    try:
        padded = token + "=" * (-len(token) % 4)
        decoded = base64.b64decode(padded.replace("-", "+").replace("_", "/"), validate=True).decode("utf-8")
        event_part, user_part, receipt_number = decoded.split(":", 2)
        return int(event_part), int(user_part), receipt_number
    except (binascii.Error, UnicodeDecodeError, ValueError):
        raise NotFoundError("Receipt not found")


async def share_receipt(db: AsyncSession, event_id: int, user_id: int) -> dict:
    _, registration, _ = await load_registration_receipt(db, event_id, user_id)
    token = encode_share_token(event_id, user_id, registration.payment_receipt.receipt_number)
    return {
        "share_url": f"{settings.CLIENT_BASE_URL.rstrip('/')}/receipt/{token}",
        "share_token": token,
        "message": "Receipt shareable link generated",
    }


async def view_shared_receipt(db: AsyncSession, token: str) -> str:
    event_id, user_id, receipt_number = decode_share_token(token)
    try:
        event, registration, user = await load_registration_receipt(db, event_id, user_id)
    except NotFoundError:
        raise NotFoundError("Receipt not found")
    if registration.payment_receipt.receipt_number != receipt_number:
        raise NotFoundError("Receipt not found")
    return render_receipt_html(build_receipt_view(event, registration, user))


# -------------------------
# JSON views
# -------------------------
def receipt_payload(event: Event, registration: Registration, user: Optional[User]) -> dict:
    pr: PaymentReceipt = registration.payment_receipt
    return {
        "id": pr.id,
        "receipt_number": pr.receipt_number,
        "receipt_url": pr.receipt_url,
        "generated_at": pr.generated_at,
        "amount": float(pr.amount or 0),
        "currency": pr.currency,
        "payment_method": pr.payment_method,
        "payment_status": pr.payment_status,
        "transaction_id": pr.transaction_id,
        "verified_at": pr.verified_at,
        "rejection_reason": pr.rejection_reason,
        "event_id": event.id,
        "event_title": event.title,
        "event_date": event.date,
        "user_name": (user.name if user else None) or registration.registration_name,
        "user_email": (user.email if user else None) or registration.registration_email,
    }


async def get_receipt(db: AsyncSession, event_id: int, user_id: int) -> dict:
    event, registration, user = await load_registration_receipt(db, event_id, user_id)
    return receipt_payload(event, registration, user)


async def list_user_receipts(db: AsyncSession, user_id: int) -> List[dict]:
    res = await db.execute(
        select(Event)
        .join(Registration, Registration.event_id == Event.id)
        .join(PaymentReceipt, PaymentReceipt.registration_id == Registration.id)
        .where(Registration.user_id == user_id)
        .order_by(Event.date.desc())
    )
    items: List[dict] = []
    for event in res.scalars().unique().all():
        registration = next((r for r in event.registrations if r.user_id == user_id), None)
        if registration is None or registration.payment_receipt is None:
            continue
        items.append(
            {
                "event_id": event.id,
                "event_title": event.title,
                "event_date": event.date,
                "registered_at": registration.registered_at,
                "receipt": receipt_payload(event, registration, None),
            }
        )
    return items
