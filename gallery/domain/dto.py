from __future__ import annotations

from dataclasses import dataclass

from gallery.domain.models import ImageRecord, InboundMessage
from gallery.domain.pipeline_profile import NotificationTemplate


@dataclass(frozen=True)
class EmailMessage:
    recipient: str
    subject: str
    html_body: str
    text_body: str
    sender: str


@dataclass(frozen=True)
class ComposeNotificationCommand:
    record: ImageRecord
    recipient: str
    sender: str
    template: NotificationTemplate
    default_reason: str


@dataclass(frozen=True)
class ExtractCleanupTargetsCommand:
    message: InboundMessage
    default_bucket: str | None
