# app/email_templates.py
from __future__ import annotations

from html import escape
from typing import Iterable


def money(minor_units: int) -> str:
    """Minor units -> "123.45". Display only."""
    sign = "-" if minor_units < 0 else ""
    v = abs(int(minor_units))
    return f"{sign}{v // 100}.{v % 100:02d}"


# =========================================================
# ORDER CONFIRMATION
# =========================================================
def render_order_confirmation_html(
    *,
    order_id: int,
    customer_name: str,
    total_amount: int,
    lines: Iterable[tuple[str, int, int]],
) -> str:
    """lines: (title, quantity, unit_price)"""
    rows = "\n".join(
        f"""        <div style="display:flex;justify-content:space-between;font-size:14px;margin-bottom:6px;">
          <span style="color:#666;">{escape(title)} x{qty}</span>
          <strong>{money(price * qty)}</strong>
        </div>"""
        for title, qty, price in lines
    )

    return f"""\
<!doctype html>
<html lang="en">
<head>
  <meta charset="utf-8">
  <meta name="viewport" content="width=device-width, initial-scale=1">
  <title>Marketplace: order confirmation</title>
</head>
<body style="margin:0;padding:0;background:#f6f7fb;font-family:Arial,Helvetica,sans-serif;color:#111;">
  <div style="max-width:640px;margin:0 auto;padding:24px;">
    <div style="background:#ffffff;border-radius:14px;padding:22px;border:1px solid #eceef3;">

      <h1 style="font-size:18px;margin:0 0 8px 0;">Order placed ✅</h1>

      <p style="margin:0 0 16px 0;color:#444;font-size:14px;">
        Hello {escape(customer_name)}, thank you for your order.
      </p>

      <div style="background:#f9fafc;border:1px solid #eceef3;border-radius:12px;padding:14px;">
        <div style="display:flex;justify-content:space-between;font-size:14px;margin-bottom:10px;">
          <span style="color:#666;">Order</span>
          <strong>#{order_id}</strong>
        </div>
{rows}
        <hr style="border:none;border-top:1px solid #eceef3;margin:10px 0;">
        <div style="display:flex;justify-content:space-between;font-size:15px;">
          <span>Total</span>
          <strong>{money(total_amount)}</strong>
        </div>
      </div>

      <p style="margin:14px 0 0 0;color:#666;font-size:12px;">
        Need help? Simply reply to this email.
      </p>
    </div>
  </div>
</body>
</html>
"""
