from __future__ import annotations

from html import escape

from gallery.domain.dto import ComposeNotificationCommand, EmailMessage
from gallery.domain.models import ChangeEventName, ImageStatus, RecordChange, RecordField

COMPONENT_ID_GATE = "domain.notification.status_changed"
COMPONENT_ID_COMPOSE = "domain.notification.compose"

PASS_BACKGROUND = "#e7f7e7"
REJECT_BACKGROUND = "#f7e7e7"


def changed_status(change: RecordChange) -> ImageStatus | None:
    """Return the new status when a modification actually changed it."""
    if change.event_name != ChangeEventName.MODIFY:
        return None
    new_status = change.new.get(RecordField.STATUS)
    old_status = change.old.get(RecordField.STATUS)
    if not isinstance(new_status, str) or new_status not in {item.value for item in ImageStatus}:
        return None
    if new_status == ImageStatus.UNSET or new_status == old_status:
        return None
    return ImageStatus(new_status)


def compose_notification(cmd: ComposeNotificationCommand) -> EmailMessage:
    """Build the status-outcome email for one reviewed photo."""
    record = cmd.record
    template = cmd.template
    photographer = record.photographer_name or template.greeting_fallback
    reason = record.reason or cmd.default_reason
    caption_suffix = f" ({record.caption})" if record.caption else ""
    passed = record.status == ImageStatus.PASS

    html_caption = f" ({escape(record.caption)})" if record.caption else ""
    html_review_date = (
        f"<p><strong>Review Date:</strong> {escape(record.review_date)}</p>" if record.review_date else ""
    )
    html_body = (
        "<html>\n"
        "  <body>\n"
        f"    <h2>{escape(template.subject_prefix)}</h2>\n"
        f"    <p>Hello {escape(photographer)},</p>\n"
        f"    <p>Your photo <strong>{escape(record.id)}</strong>{html_caption} has been reviewed.</p>\n"
        f'    <div style="padding: 10px; margin: 10px 0; '
        f'background-color: {PASS_BACKGROUND if passed else REJECT_BACKGROUND}; border-radius: 5px;">\n'
        f'      <h3>Status: <span style="color: {"green" if passed else "red"}">{escape(record.status)}</span></h3>\n'
        f"      <p><strong>Reason:</strong> {escape(reason)}</p>\n"
        f"      {html_review_date}\n"
        "    </div>\n"
        f"    <p>Thank you for using our {escape(template.service_name)} service.</p>\n"
        "  </body>\n"
        "</html>\n"
    )

    text_lines = [
        template.subject_prefix,
        "",
        f"Hello {photographer},",
        "",
        f"Your photo {record.id}{caption_suffix} has been reviewed.",
        "",
        f"Status: {record.status}",
        f"Reason: {reason}",
    ]
    if record.review_date:
        text_lines.append(f"Review Date: {record.review_date}")
    text_lines.extend(["", f"Thank you for using our {template.service_name} service."])

    return EmailMessage(
        recipient=cmd.recipient,
        subject=f"{template.subject_prefix}: {record.status}",
        html_body=html_body,
        text_body="\n".join(text_lines) + "\n",
        sender=cmd.sender,
    )
