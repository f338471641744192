"""
BiaBook Branded HTML Email Base Layout

Table-based, inline-CSS HTML email wrapper shared by every booking notification.
Compatible with: Outlook, Gmail, Yahoo, Apple Mail.

Usage:
    from biabook.services.email_html_base import render_branded_email

    html = render_branded_email(
        title="Booking Confirmation",
        body_content="<p>Your booking has been confirmed.</p>",
        preheader="Your booking with Acme Salon is confirmed",
    )
"""

from __future__ import annotations

from datetime import datetime, timezone

# ── Brand tokens ──────────────────────────────────────────────
COLOR_PRIMARY = "#7c3aed"
COLOR_BG = "#f9fafb"
COLOR_WHITE = "#ffffff"
COLOR_BORDER = "#e5e7eb"
COLOR_TEXT = "#333333"
COLOR_MUTED = "#6b7280"
COLOR_WARNING = "#f59e0b"

FONT_STACK = "'Segoe UI', Tahoma, Geneva, Verdana, sans-serif"

DEFAULT_FOOTER = "This email was sent to you because you made a booking on BiaBook."


def render_branded_email(
    *,
    title: str,
    body_content: str,
    preheader: str = "",
    footer_text: str = DEFAULT_FOOTER,
) -> str:
    """Render body_content inside the BiaBook HTML email layout.

    Args:
        title: Email title (used in <title>).
        body_content: Inner HTML content for the specific template. Must already be escaped.
        preheader: Hidden preview text shown by email clients.
        footer_text: Footer tagline text.

    Returns:
        Complete HTML string ready for email sending.
    """
    year = datetime.now(timezone.utc).year

    # Preheader trick: hidden text that shows in email client preview
    preheader_html = ""
    if preheader:
        preheader_html = (
            f'<div style="display:none;font-size:1px;color:{COLOR_BG};line-height:1px;'
            f'max-height:0;max-width:0;opacity:0;overflow:hidden;">'
            f"{preheader}"
            f"</div>"
        )

    return f"""\
<!DOCTYPE html>
<html lang="en" xmlns="http://www.w3.org/1999/xhtml">
<head>
  <meta charset="UTF-8" />
  <meta name="viewport" content="width=device-width, initial-scale=1.0" />
  <title>{title}</title>
</head>
<body style="margin:0;padding:0;background-color:{COLOR_BG};font-family:{FONT_STACK};line-height:1.6;color:{COLOR_TEXT};">
{preheader_html}

<table role="presentation" cellspacing="0" cellpadding="0" border="0" width="100%" style="background-color:{COLOR_BG};">
  <tr>
    <td align="center" style="padding:20px;">

      <table role="presentation" cellspacing="0" cellpadding="0" border="0" width="600" style="max-width:600px;width:100%;background-color:{COLOR_WHITE};">

        <tr>
          <td align="center" style="padding:20px;background-color:{COLOR_PRIMARY};">
            <h1 style="color:{COLOR_WHITE};margin:0;font-size:24px;font-family:{FONT_STACK};">BiaBook</h1>
          </td>
        </tr>

        <tr>
          <td style="padding:20px;color:{COLOR_TEXT};font-family:{FONT_STACK};font-size:15px;line-height:1.6;">
{body_content}
          </td>
        </tr>

        <tr>
          <td style="padding:20px;background-color:{COLOR_BG};text-align:center;font-family:{FONT_STACK};font-size:12px;color:{COLOR_MUTED};">
            <p style="margin:0 0 4px 0;">&copy; {year} BiaBook. All rights reserved.</p>
            <p style="margin:0;">{footer_text}</p>
          </td>
        </tr>

      </table>

    </td>
  </tr>
</table>

</body>
</html>"""


def render_cta_button(*, url: str, label: str, color: str = COLOR_PRIMARY) -> str:
    return (
        f'<a href="{url}" target="_blank" '
        f'style="display:inline-block;background-color:{color};color:{COLOR_WHITE};'
        f'text-decoration:none;padding:10px 20px;border-radius:4px;margin-top:20px;">'
        f"{label}"
        f"</a>"
    )


def render_secondary_link(*, url: str, label: str) -> str:
    return (
        f'<a href="{url}" style="margin-left:10px;color:{COLOR_MUTED};text-decoration:underline;">'
        f"{label}"
        f"</a>"
    )


def render_details(rows: list[tuple[str, str]], *, extra_html: str = "") -> str:
    """Render a highlighted key/value block. Labels and values must already be escaped."""
    lines = "".join(f'<p style="margin:5px 0;"><strong>{label}:</strong> {value}</p>' for label, value in rows)
    return (
        f'<div style="background-color:{COLOR_BG};padding:15px;border-radius:4px;margin:20px 0;">'
        f"{lines}{extra_html}"
        f"</div>"
    )
