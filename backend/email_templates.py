import html as html_lib
from typing import Tuple

EVENT_NAME = "Kumaraguru MUN 2025"
SIGNATURE_TEXT = (
    "Regards,\n"
    "Delegate Affairs\n"
    "Kumaraguru MUN 2025\n"
)
SIGNATURE_HTML = "Regards,<br><strong>Delegate Affairs</strong><br>Kumaraguru MUN 2025"


def _wrap_html(heading: str, body_html: str) -> str:
    return f"""
    <html>
      <body style="font-family: Arial, sans-serif; line-height: 1.6; color: #1b1f24;">
        <div style="max-width: 560px; margin: 0 auto; padding: 24px; border: 1px solid #e6e6e6; border-radius: 12px;">
          <h2 style="margin-top: 0; color: #172d9d;">{heading}</h2>
          {body_html}
          <hr style="border: none; border-top: 1px solid #e6e6e6; margin: 24px 0;" />
          <p style="margin-bottom: 0;">{SIGNATURE_HTML}</p>
        </div>
      </body>
    </html>
    """


def build_payment_receipt_email(
    name: str,
    user_code: str,
    amount: float,
    currency: str,
    razorpay_payment_id: str,
) -> Tuple[str, str, str]:
    subject = f"Payment received - {EVENT_NAME}"
    amount_label = f"{currency} {amount:,.2f}"
    text = (
        f"Hello {name},\n\n"
        f"We have received your registration payment of {amount_label}.\n"
        f"Delegate ID: {user_code}\n"
        f"Payment reference: {razorpay_payment_id}\n\n"
        "Your registration is now confirmed. Committee and portfolio allocations will be shared soon.\n\n"
        f"{SIGNATURE_TEXT}"
    )
    body_html = f"""
          <p>Hello {html_lib.escape(name)},</p>
          <p>We have received your registration payment of <strong>{html_lib.escape(amount_label)}</strong>.</p>
          <table style="border-collapse: collapse; margin: 16px 0;">
            <tr><td style="padding: 4px 12px 4px 0;">Delegate ID</td><td><strong>{html_lib.escape(user_code)}</strong></td></tr>
            <tr><td style="padding: 4px 12px 4px 0;">Payment reference</td><td>{html_lib.escape(razorpay_payment_id)}</td></tr>
          </table>
          <p>Your registration is now confirmed. Committee and portfolio allocations will be shared soon.</p>
    """
    return subject, _wrap_html("Payment received", body_html), text


def build_mailer_email(subject: str, message_text: str) -> Tuple[str, str, str]:
    paragraphs = [p.strip() for p in message_text.split("\n\n") if p.strip()]
    body_html = "".join(
        f"<p>{html_lib.escape(p).replace(chr(10), '<br>')}</p>" for p in paragraphs
    )
    text = f"{message_text.strip()}\n\n{SIGNATURE_TEXT}"
    return subject, _wrap_html(html_lib.escape(subject), body_html), text
