"""
Expiry reminder content.

Pure function of days remaining: 0 selects the "expired" family, anything
above selects "expires in N days". Channels only deliver what is built here.
"""

import html
from dataclasses import dataclass
from datetime import datetime
from typing import Optional, Dict, Any

from gymcore.clock import TimezoneLike, local_date
from gymcore.membership.services.member_service import member_display_name


@dataclass(frozen=True)
class ExpiryMessage:
    """Rendered reminder for every channel."""
    days_remaining: int
    subject: str
    heading: str
    sms_text: str
    whatsapp_text: str
    text: str
    html: str

    @property
    def expired(self) -> bool:
        return self.days_remaining == 0


def _days_phrase(days: int) -> str:
    return f"{days} day{'s' if days > 1 else ''}"


def format_expiry_date(expiry_date: datetime, tz: TimezoneLike) -> str:
    """DD/MM/YYYY in the organization's timezone."""
    return local_date(expiry_date, tz).strftime("%d/%m/%Y")


def build_expiry_message(
    member: Dict[str, Any],
    organization: Dict[str, Any],
    expiry_date: datetime,
    days_remaining: int,
    tz: TimezoneLike,
    renewal_link: Optional[str] = None,
) -> ExpiryMessage:
    """
    Render the expiry reminder for a member.

    Args:
        member: Member document
        organization: Organization document (name, phone, email used)
        expiry_date: currentPlan.endDate
        days_remaining: 0 when already expired
        tz: Organization timezone
        renewal_link: Optional URL included in WhatsApp/email bodies

    Returns:
        ExpiryMessage
    """
    name = member_display_name(member)
    plan_name = (member.get("currentPlan") or {}).get("planName") or "Membership"
    org_name = organization.get("name") or "Gym Management"
    date_str = format_expiry_date(expiry_date, tz)
    expired = days_remaining == 0

    if expired:
        subject = f"Your {plan_name} has Expired - {org_name}"
        heading = "Membership Expired"
        alert = "Your membership has expired!"
        sms_text = (
            f"Hi {name}, your {plan_name} has expired on {date_str}. "
            f"Please renew to continue. Contact us for renewal."
        )
        body = "Your membership has expired. To continue enjoying our services, please renew your membership."
    else:
        phrase = _days_phrase(days_remaining)
        subject = f"Your {plan_name} Expires in {phrase.title()}"
        heading = "Membership Expiry Reminder"
        alert = f"Your membership expires in {phrase}"
        sms_text = (
            f"Hi {name}, your {plan_name} expires in {phrase} ({date_str}). "
            f"Please renew to avoid interruption."
        )
        body = (
            "Your membership will expire soon. To avoid any interruption in service, "
            "please renew your membership before the expiry date."
        )

    whatsapp_lines = [f"Hi {name},", "", f"*{alert}*", f"Expiry Date: {date_str}", ""]
    if renewal_link:
        whatsapp_lines += [f"Renew now: {renewal_link}", ""]
    whatsapp_lines.append("Contact us to renew and continue your fitness journey!")

    contact_lines = []
    if organization.get("phone"):
        contact_lines.append(f"Call us: {organization['phone']}")
    if organization.get("email"):
        contact_lines.append(f"Email us: {organization['email']}")

    text = "\n".join([
        f"Dear {name},",
        "",
        alert,
        f"Plan: {plan_name}",
        f"Expiry Date: {date_str}",
        "",
        body,
        *([f"Renew now: {renewal_link}"] if renewal_link else []),
        *contact_lines,
        "",
        f"Best regards,\n{org_name}",
    ])

    accent = "#dc2626" if expired else "#f97316"
    contact_html = "".join(f"<p>{html.escape(line)}</p>" for line in contact_lines)
    link_html = (
        f'<p><a href="{html.escape(renewal_link)}" style="color:{accent}">Renew now</a></p>'
        if renewal_link else ""
    )
    html_body = (
        f'<div style="font-family:Arial,sans-serif;max-width:600px;margin:0 auto">'
        f'<h2 style="background:{accent};color:#fff;padding:20px;text-align:center">{heading}</h2>'
        f"<p>Dear {html.escape(name)},</p>"
        f'<div style="border-left:4px solid {accent};padding:15px">'
        f"<h3>{html.escape(alert)}</h3>"
        f"<p><strong>Plan:</strong> {html.escape(plan_name)}</p>"
        f"<p><strong>Expiry Date:</strong> {date_str}</p></div>"
        f"<p>{body}</p>{link_html}{contact_html}"
        f"<p>Best regards,<br>{html.escape(org_name)}</p></div>"
    )

    return ExpiryMessage(
        days_remaining=days_remaining,
        subject=subject,
        heading=heading,
        sms_text=sms_text,
        whatsapp_text="\n".join(whatsapp_lines),
        text=text,
        html=html_body,
    )
