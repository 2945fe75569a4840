"""Pydantic models that mirror the stored rows and the request bodies of the
notification functions.

These classes are framework-agnostic so they can be reused by workers, API
responses, and tests without pulling in FastAPI or database layers.
"""

from __future__ import annotations

from datetime import datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

MessageType = Literal["text", "voice", "video"]

TriggerType = Literal[
    "no_check_in",
    "regular_check_in",
    "group_confirmation",
    "panic_trigger",
    "inactivity_to_recurring",
    "inactivity_to_date",
    "scheduled",
]

DeliveryOption = Literal["immediately", "scheduled", "recurring", "once"]

DeliveryStatus = Literal["armed", "triggered", "delivered", "viewed", "cancelled", "expired"]

ReminderType = Literal["reminder", "final_delivery"]

# Condition types whose deadline is last_checked + threshold
CHECK_IN_TYPES = ("no_check_in", "regular_check_in", "inactivity_to_date", "inactivity_to_recurring")


class _Row(BaseModel):
    model_config = ConfigDict(from_attributes=True, populate_by_name=True)


# ──────────────────────────────
# Rows
# ──────────────────────────────


class Attachment(BaseModel):
    """Reference to a stored object; the bytes live in object storage."""

    path: str
    name: str
    size: int = 0
    type: str = "application/octet-stream"


class FileAttachment(BaseModel):
    """Transient upload wrapper; never persisted as its own row."""

    name: str
    size: int
    type: str
    progress: float = 0.0
    path: Optional[str] = None
    is_uploaded: bool = False

    def to_attachment(self) -> Attachment:
        if not self.path:
            raise ValueError(f"attachment '{self.name}' has not been uploaded")
        return Attachment(path=self.path, name=self.name, size=self.size, type=self.type)


class Recipient(_Row):
    id: str
    name: str
    email: str
    phone: Optional[str] = None
    user_id: Optional[str] = None

    @field_validator("email")
    def _normalise_email(cls, v: str):  # noqa: N805
        v = v.strip()
        if "@" not in v:
            raise ValueError("email must contain '@'")
        return v


class Message(_Row):
    id: str
    user_id: str
    title: str
    content: Optional[str] = None
    message_type: MessageType = "text"
    attachments: Optional[List[Attachment]] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    expires_at: Optional[datetime] = None
    sender_name: Optional[str] = None
    share_location: bool = False
    location_latitude: Optional[float] = None
    location_longitude: Optional[float] = None
    location_name: Optional[str] = None


class PanicTriggerConfig(BaseModel):
    enabled: bool = True
    methods: List[str] = Field(default_factory=lambda: ["app"])
    cancel_window_seconds: int = 5
    bypass_logging: bool = False
    keep_armed: bool = True
    trigger_keyword: Optional[str] = None

    @field_validator("methods")
    def _lowercase(cls, v: list[str]):  # noqa: N805
        return [m.lower() for m in v]

    @property
    def keyword(self) -> str:
        return (self.trigger_keyword or "SOS").strip()


class RecurringPattern(BaseModel):
    type: Literal["daily", "weekly", "monthly", "yearly"]
    interval: int = 1
    day: Optional[int] = None
    month: Optional[int] = None


class MessageCondition(_Row):
    id: str
    message_id: str
    condition_type: TriggerType
    hours_threshold: int = 0
    minutes_threshold: int = 0
    last_checked: Optional[datetime] = None
    next_check: Optional[datetime] = None
    recipients: List[Recipient] = Field(default_factory=list)
    active: bool = True
    trigger_date: Optional[datetime] = None
    recurring_pattern: Optional[RecurringPattern] = None
    panic_config: Optional[PanicTriggerConfig] = None
    pin_code: Optional[str] = None
    unlock_delay_hours: int = 0
    expiry_hours: int = 0
    reminder_hours: Optional[List[float]] = None
    check_in_code: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @property
    def has_pin(self) -> bool:
        return bool(self.pin_code and self.pin_code.strip())

    @property
    def keep_armed(self) -> bool:
        # A panic condition without config stays armed
        return self.panic_config.keep_armed if self.panic_config else True


class AdminMessage(BaseModel):
    id: str
    title: str
    message_type: MessageType
    created_at: Optional[datetime] = None
    user_id: str
    user_email: Optional[str] = None
    condition_type: Optional[TriggerType] = None
    active: Optional[bool] = None


# ──────────────────────────────
# Function request bodies
# ──────────────────────────────


class NotificationRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    message_id: Optional[str] = Field(default=None, alias="messageId")
    debug: bool = False
    force_send: bool = Field(default=False, alias="forceSend")
    source: str = "manual"
    is_emergency: bool = Field(default=False, alias="isEmergency")
    keep_armed: Optional[bool] = Field(default=None, alias="keepArmed")


class ReminderRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    message_id: Optional[str] = Field(default=None, alias="messageId")
    debug: bool = False
    force_send: bool = Field(default=False, alias="forceSend")
    source: str = "manual"
    action: Literal["process", "reset_stuck"] = "process"


class TestEmailRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    recipient_name: Optional[str] = Field(default=None, alias="recipientName")
    recipient_email: Optional[str] = Field(default=None, alias="recipientEmail")
    sender_name: Optional[str] = Field(default=None, alias="senderName")
    message_title: Optional[str] = Field(default=None, alias="messageTitle")
    app_name: Optional[str] = Field(default=None, alias="appName")
    is_welcome_email: bool = Field(default=False, alias="isWelcomeEmail")


class AppConfigRequest(BaseModel):
    key: str


class EnhanceRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    text: str
    enhancement_type: Optional[str] = Field(default=None, alias="enhancementType")

    @field_validator("text")
    def _non_empty(cls, v: str):  # noqa: N805
        if not v.strip():
            raise ValueError("Text is required")
        return v


class TranscribeRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    video_base64: Optional[str] = Field(default=None, alias="videoBase64")


class VerifyPinRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    pin: Optional[str] = None
    message_id: Optional[str] = Field(default=None, alias="messageId")
    delivery_id: Optional[str] = Field(default=None, alias="deliveryId")
    recipient_email: Optional[str] = Field(default=None, alias="recipientEmail")


class RecordViewRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    message_id: Optional[str] = Field(default=None, alias="messageId")
    delivery_id: Optional[str] = Field(default=None, alias="deliveryId")
    recipient_email: Optional[str] = Field(default=None, alias="recipientEmail")


class AttachmentAccessRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    message_id: str = Field(alias="messageId")
    delivery_id: str = Field(alias="deliveryId")
    recipient_email: str = Field(alias="recipientEmail")
    attachment_path: str = Field(alias="attachmentPath")
    attachment_name: Optional[str] = Field(default=None, alias="attachmentName")
    download: bool = False


# ──────────────────────────────
# User API bodies
# ──────────────────────────────


class MessageDraft(BaseModel):
    title: str
    content: Optional[str] = None
    message_type: MessageType = "text"
    attachments: List[Attachment] = Field(default_factory=list)
    expires_at: Optional[datetime] = None
    sender_name: Optional[str] = None
    share_location: bool = False
    location_latitude: Optional[float] = None
    location_longitude: Optional[float] = None
    location_name: Optional[str] = None

    @field_validator("title")
    def _title_required(cls, v: str):  # noqa: N805
        if not v.strip():
            raise ValueError("title must be a non-empty string")
        return v.strip()


class RecipientDraft(BaseModel):
    name: str
    email: str
    phone: Optional[str] = None


class ConditionDraft(BaseModel):
    condition_type: TriggerType
    hours_threshold: int = 0
    minutes_threshold: int = 0
    recipient_ids: List[str] = Field(default_factory=list)
    trigger_date: Optional[datetime] = None
    recurring_pattern: Optional[RecurringPattern] = None
    panic_config: Optional[PanicTriggerConfig] = None
    pin_code: Optional[str] = None
    unlock_delay_hours: int = 0
    expiry_hours: int = 0
    reminder_hours: Optional[List[float]] = None
    check_in_code: Optional[str] = None

    @model_validator(mode="after")
    def _check_trigger_fields(self):  # noqa: N805
        """Ensure every trigger type carries the field its deadline depends on."""
        if self.condition_type in CHECK_IN_TYPES and self.condition_type != "inactivity_to_date":
            if self.hours_threshold <= 0 and self.minutes_threshold <= 0:
                raise ValueError("a check-in condition needs hours_threshold or minutes_threshold")
        if self.condition_type in ("scheduled", "inactivity_to_date") and self.trigger_date is None:
            raise ValueError(f"{self.condition_type} requires trigger_date")
        if self.condition_type == "inactivity_to_recurring" and self.recurring_pattern is None:
            raise ValueError("inactivity_to_recurring requires recurring_pattern")
        if self.pin_code is not None and not self.pin_code.strip():
            self.pin_code = None
        return self


class CheckInRequest(BaseModel):
    method: str = "app"
    device_info: Optional[str] = None


# ──────────────────────────────
# Events
# ──────────────────────────────


class ConditionsUpdatedEvent(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    message_id: Optional[str] = Field(default=None, alias="messageId")
    updated_at: Optional[datetime] = Field(default=None, alias="updatedAt")
    trigger_value: Optional[str] = Field(default=None, alias="triggerValue")
    source: str
    user_id: Optional[str] = Field(default=None, alias="userId")
