from __future__ import annotations

import os
from typing import Any, Dict

from reportlab.lib.pagesizes import A4
from reportlab.pdfgen import canvas

from storefront.config import settings
from storefront.utils.formatters import money
from storefront.utils.dates import parse_timestamp


def generate_receipt_pdf(order: Dict[str, Any]) -> str:
    os.makedirs(settings.export_dir, exist_ok=True)

    filename = f"receipt_{order['id']}.pdf"
    path = os.path.join(settings.export_dir, filename)
    currency = order.get("currency")
    created = parse_timestamp(order.get("created_at"))

    c = canvas.Canvas(path, pagesize=A4)
    w, h = A4

    y = h - 50
    c.setFont("Helvetica-Bold", 14)
    c.drawString(40, y, f"RECEIPT #{order.get('order_number') or order['id']}")
    y -= 20

    c.setFont("Helvetica", 11)
    c.drawString(40, y, f"Customer: {order.get('customer_name', '')} <{order.get('customer_email', '')}>")
    y -= 16
    c.drawString(40, y, f"Date: {created.strftime('%Y-%m-%d %H:%M') if created else ''}")
    y -= 16
    c.drawString(40, y, f"Status: {order.get('status', '')} / payment {order.get('payment_status', '')}")
    y -= 24

    c.setFont("Helvetica-Bold", 10)
    c.drawString(40, y, "Item")
    c.drawString(310, y, "Qty")
    c.drawString(360, y, "Price")
    c.drawString(440, y, "Total")
    y -= 10
    c.line(40, y, 550, y)
    y -= 16

    c.setFont("Helvetica", 10)
    for it in order.get("items") or []:
        name = it["title"] + (f" ({it['size']})" if it.get("size") else "")
        qty = int(it["quantity"])
        price = float(it["price"])
        c.drawString(40, y, name[:45])
        c.drawRightString(340, y, str(qty))
        c.drawRightString(420, y, f"{price:.2f}")
        c.drawRightString(550, y, f"{price * qty:.2f}")
        y -= 14
        if y < 120:
            c.showPage()
            y = h - 50
            c.setFont("Helvetica", 10)

    y -= 10
    c.line(40, y, 550, y)
    y -= 16
    for label, key in (("Subtotal", "subtotal"), ("Discount", "discount"), ("Tax", "tax"), ("Shipping", "shipping")):
        amount = float(order.get(key) or 0)
        if key == "discount" and not amount:
            continue
        sign = "-" if key == "discount" else ""
        c.drawRightString(550, y, f"{label}: {sign}{money(amount, currency)}")
        y -= 14

    y -= 4
    c.setFont("Helvetica-Bold", 12)
    c.drawRightString(550, y, f"TOTAL: {money(float(order['total']), currency)}")

    c.save()
    return path
