"""HTML email templates for each notification event."""

from dataclasses import dataclass, field
from datetime import datetime
from html import escape
from typing import Any, List, Optional

from domain.lead import Lead, is_yes

NOT_PROVIDED = "Not provided"
GENERIC_STATUS_MESSAGE = "Your submission status has been updated."

STATUS_MESSAGES = {
    "reviewed": "Your submission has been carefully reviewed by our foreclosure assistance team.",
    "contacted": (
        "We have attempted to contact you regarding your foreclosure situation. "
        "Please check your phone for missed calls."
    ),
    "closed": (
        "Your case has been successfully resolved. Thank you for trusting us with "
        "your foreclosure assistance needs."
    ),
}

STATUS_COLORS = {
    "reviewed": "#f59e0b",
    "contacted": "#8b5cf6",
    "closed": "#10b981",
}

STATUS_NEXT_STEPS = {
    "reviewed": [
        "Our team will contact you within 24 hours",
        "We'll discuss your specific situation and options",
        "You'll receive a personalized action plan",
    ],
    "contacted": [
        "Please return our call at your earliest convenience",
        "We have time-sensitive options to discuss",
        "Our team is standing by to help",
    ],
    "closed": [
        "Your case file will remain available for reference",
        "Feel free to contact us for future assistance",
        "We appreciate your trust in our services",
    ],
}

URGENCY_BANNERS = {
    "high": ("IMMEDIATE ATTENTION REQUIRED", "NOD received, 3+ missed payments, or client overwhelmed"),
    "medium": ("FOLLOW UP WITHIN 24 HOURS", "1-2 missed payments detected"),
    "low": ("STANDARD FOLLOW-UP TIMELINE", "Anticipating trouble, proactive inquiry"),
}

FOLLOW_UP_ACTIONS = {
    1: "Initial contact within 24 hours",
    3: "Follow-up call if no response",
    7: "Send additional resources and options",
    14: "Final outreach before case review",
}


@dataclass
class RenderedEmail:
    subject: str
    html: str
    tags: List[str] = field(default_factory=list)


def _v(value: Any, default: str = NOT_PROVIDED) -> str:
    if value is None or value == "":
        return escape(default)
    return escape(str(value))


def _row(label: str, value: Any, default: str = NOT_PROVIDED) -> str:
    return f'<tr><td class="label">{escape(label)}</td><td class="value">{_v(value, default)}</td></tr>'


def _items(items: List[str]) -> str:
    return "".join(f"<li>{escape(item)}</li>" for item in items)


def _page(title: str, header: str, body: str, footer: str = "") -> str:
    return f"""<!DOCTYPE html>
<html>
<head>
  <meta charset="utf-8">
  <title>{escape(title)}</title>
  <style>
    body {{ font-family: 'Segoe UI', Tahoma, Geneva, Verdana, sans-serif; line-height: 1.6; color: #333; }}
    .container {{ max-width: 600px; margin: 0 auto; }}
    .header {{ background: #1f2937; color: white; padding: 30px 20px; text-align: center; }}
    .content {{ padding: 30px 20px; }}
    .section {{ margin: 25px 0; padding: 20px; background: #f8fafc; border-radius: 8px; }}
    .label {{ font-weight: 600; color: #374151; padding-right: 12px; }}
    .value {{ color: #6b7280; }}
    .footer {{ background: #f1f5f9; padding: 20px; text-align: center; font-size: 12px; color: #64748b; }}
  </style>
</head>
<body>
  <div class="container">
    <div class="header">{header}</div>
    <div class="content">{body}</div>
    <div class="footer">{footer}</div>
  </div>
</body>
</html>"""


def _admin_link(site_url: str, label: str) -> str:
    return f'<p><a href="{escape(site_url)}/admin" class="button">{escape(label)}</a></p>'


def new_submission(lead: Lead, urgency: str, site_url: str = "") -> RenderedEmail:
    name = lead.contact_name or "Unknown"
    if urgency == "high":
        subject = f"🚨 URGENT: New Foreclosure Submission - {name}"
    else:
        subject = f"📋 New Foreclosure Submission - {name}"

    headline, detail = URGENCY_BANNERS.get(urgency, URGENCY_BANNERS["low"])
    body = f"""
      <div class="urgency-{escape(urgency)}">
        <h2>Priority Level: {escape(urgency.upper())}</h2>
        <p><strong>{escape(headline)}</strong><br>{escape(detail)}</p>
      </div>
      <div class="section"><h3>Contact Information</h3><table>
        {_row("Full Name", lead.contact_name)}
        {_row("Email Address", lead.contact_email)}
        {_row("Phone Number", lead.contact_phone)}
      </table></div>
      <div class="section"><h3>Financial Overview</h3><table>
        {_row("Home Value", lead.home_value)}
        {_row("Mortgage Balance", lead.mortgage_balance)}
        {_row("Lender", lead.lender)}
        {_row("Missed Payments", lead.missed_payments)}
      </table></div>
      <div class="section"><h3>Property &amp; Situation Details</h3><table>
        {_row("Property Type", lead.property_type, "Not specified")}
        {_row("Notice of Default", "YES" if lead.nod_received else "No")}
        {_row("Time in Home", lead.situation_length)}
        {_row("Payment Issues Started", lead.payment_difficulty_date)}
      </table></div>
      <div class="section"><h3>Client's Main Challenge</h3><p>"{_v(lead.challenge)}"</p></div>
      <div class="section"><h3>Family Impact Statement</h3><p>"{_v(lead.impact)}"</p></div>
      {_admin_link(site_url, "View Full Details in Admin Dashboard")}"""

    footer = f"<p>Submitted: {_format_time(lead.created_at)}</p><p>ID: {escape(lead.id)}</p>"
    html = _page("New Foreclosure Submission", "<h1>New Foreclosure Submission</h1>", body, footer)
    return RenderedEmail(subject, html, ["admin_notification", f"priority_{urgency}"])


def status_message(status: Optional[str]) -> str:
    """Status-specific wording; anything unrecognized gets the generic message."""
    return STATUS_MESSAGES.get((status or "").lower(), GENERIC_STATUS_MESSAGE)


def status_update(lead: Lead) -> RenderedEmail:
    status = (lead.status or "").lower()
    subject = f"Update on Your Foreclosure Assistance Request - {status.upper()}"
    color = STATUS_COLORS.get(status, "#3b82f6")

    notes = ""
    if lead.notes:
        notes = f'<div class="section"><h3>Personal Message from Our Team</h3><p><em>"{escape(lead.notes)}"</em></p></div>'

    next_steps = STATUS_NEXT_STEPS.get(status)
    steps = ""
    if next_steps:
        steps = f'<div class="section"><h3>What Happens Next?</h3><ul>{_items(next_steps)}</ul></div>'

    body = f"""
      <p>Dear {_v(lead.contact_name, "Valued Client")},</p>
      <div class="status-update" style="border: 2px solid {color};">
        <h2 style="color: {color};">Status: {escape(status.upper())}</h2>
        <p>{escape(status_message(status))}</p>
      </div>
      {notes}
      {steps}
      <p>We're here to help you through this challenging time.<br><strong>The RepMotivatedSeller Team</strong></p>"""

    footer = "<p>This is an automated message regarding your foreclosure assistance request.</p>"
    html = _page("Status Update - RepMotivatedSeller", "<h1>Status Update</h1>", body, footer)
    return RenderedEmail(subject, html, ["status_update", f"status_{status or 'unknown'}"])


def urgent_case(lead: Lead, site_url: str = "") -> RenderedEmail:
    subject = f"🚨 URGENT: High Priority Foreclosure Case - {lead.contact_name or 'Unknown'}"

    indicators = []
    if lead.missed_payments >= 3:
        indicators.append("3+ missed payments detected")
    if lead.nod_received:
        indicators.append("Notice of Default received")
    if lead.is_overwhelmed:
        indicators.append("Client reports feeling overwhelmed")
    if is_yes(lead.lender_issue):
        indicators.append("Difficulty getting lender assistance")
    if is_yes(lead.options_narrowing):
        indicators.append("Client feels options are shrinking")

    body = f"""
      <div class="urgent-alert"><h2>HIGH PRIORITY CLIENT</h2><table>
        {_row("Client", lead.contact_name, "Name not provided")}
        {_row("Phone", lead.contact_phone)}
        {_row("Email", lead.contact_email)}
        {_row("Missed Payments", lead.missed_payments)}
      </table></div>
      <div class="section"><h3>Critical Urgency Indicators</h3><ul>{_items(indicators)}</ul></div>
      <div class="section"><h3>IMMEDIATE ACTION PLAN</h3><ol>
        <li>Contact client within <strong>2 HOURS</strong></li>
        <li>Schedule emergency consultation</li>
        <li>Review all available foreclosure prevention options</li>
        <li>Escalate to senior team member if needed</li>
        <li>Document all contact attempts and outcomes</li>
      </ol></div>
      <div class="section"><h3>Client's Situation Summary</h3><table>
        {_row("Main Challenge", lead.challenge)}
        {_row("Family Impact", lead.impact)}
        {_row("Property Type", lead.property_type, "Not specified")}
        {_row("Home Value", lead.home_value)}
        {_row("Mortgage Balance", lead.mortgage_balance)}
      </table></div>
      {_admin_link(site_url, "VIEW FULL CASE DETAILS IMMEDIATELY")}"""

    footer = f"<p>Submitted: {_format_time(lead.created_at)}</p><p>Case ID: {escape(lead.id)}</p>"
    html = _page("URGENT: High Priority Foreclosure Case", "<h1>URGENT FORECLOSURE CASE</h1>", body, footer)
    return RenderedEmail(subject, html, ["urgent_case", "immediate_action_required"])


def follow_up_reminder(lead: Lead, days_since: int, urgency: str, site_url: str = "") -> RenderedEmail:
    subject = f"Follow-up Reminder: {lead.contact_name or 'Unknown'} - Day {days_since}"

    actions = []
    if days_since in FOLLOW_UP_ACTIONS:
        actions.append(FOLLOW_UP_ACTIONS[days_since])
    actions += ["Update case status and notes", "Schedule next follow-up if needed"]

    body = f"""
      <div class="reminder">
        <h2>{days_since} Days Since Submission</h2>
        <p><strong>Client:</strong> {_v(lead.contact_name)}</p>
        <p><strong>Status:</strong> {escape((lead.status or "").upper())}</p>
        <p><strong>Priority:</strong> {escape(urgency.upper())}</p>
      </div>
      <div class="section"><h3>Recommended Actions:</h3><ul>{_items(actions)}</ul></div>
      <div class="section"><h3>Contact Information</h3><table>
        {_row("Email", lead.contact_email)}
        {_row("Phone", lead.contact_phone)}
      </table></div>
      {_admin_link(site_url, "View Full Case Details")}"""

    html = _page("Follow-up Reminder", "<h1>Follow-up Reminder</h1>", body)
    return RenderedEmail(subject, html, ["follow_up_reminder", f"day_{days_since}"])


def _format_time(value: datetime) -> str:
    return value.strftime("%Y-%m-%d %H:%M UTC")
