"""
Async DB helpers for messages, trigger conditions, reminders and deliveries.
Uses SQLAlchemy 2.0 + asyncpg driver – no raw SQL strings in app code.
"""

from __future__ import annotations

import os
from datetime import datetime, timedelta, timezone
from typing import Any, AsyncGenerator, Iterable, Sequence
from uuid import uuid4

from sqlalchemy import (
    JSON, Boolean, DateTime, ForeignKey, Index, Integer, String, Text, delete, or_, select, update
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy.ext.asyncio import (
    create_async_engine, async_sessionmaker, AsyncSession
)

from app.errors import NotFoundError
from app.types.contracts import (
    AdminMessage,
    ConditionDraft,
    Message,
    MessageCondition,
    MessageDraft,
    Recipient,
    RecipientDraft,
)

# ──────────────────────────────────────────────────────────────────────
# 1. Declarative metadata
# ──────────────────────────────────────────────────────────────────────
class Base(DeclarativeBase):
    pass

# ──────────────────────────────────────────────────────────────────────
# 2. Lazy engine / session factory
# ──────────────────────────────────────────────────────────────────────
_engine = None
_session_maker: async_sessionmaker[AsyncSession] | None = None


def _build_url() -> str:
    url = os.getenv("DATABASE_URL") or os.getenv("DATABASE_PUBLIC_URL")
    if not url:
        raise RuntimeError("DATABASE_URL not set")
    if "+asyncpg" not in url:
        url = url.replace("postgres://", "postgresql+asyncpg://", 1).replace(
            "postgresql://", "postgresql+asyncpg://", 1
        )
    return url


def get_engine():
    global _engine
    if _engine is None:
        _engine = create_async_engine(_build_url(), pool_size=5, max_overflow=5)
    return _engine


def get_session() -> AsyncGenerator[AsyncSession, None]:
    global _session_maker
    if _session_maker is None:
        _session_maker = async_sessionmaker(get_engine(), expire_on_commit=False)
    async def _session_scope():
        async with _session_maker() as session:
            yield session
    return _session_scope()


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _uuid() -> str:
    return str(uuid4())


def _aware(value: datetime | None, field: str) -> datetime | None:
    if value is not None and value.tzinfo is None:
        raise ValueError(f"{field} must be timezone-aware")
    return value

# ──────────────────────────────────────────────────────────────────────
# 3. ORM models
# ──────────────────────────────────────────────────────────────────────

class ProfileRow(Base):
    __tablename__ = "profiles"

    id:              Mapped[str] = mapped_column(String(36), primary_key=True)
    email:           Mapped[str | None]
    first_name:      Mapped[str | None]
    last_name:       Mapped[str | None]
    backup_email:    Mapped[str | None]
    whatsapp_number: Mapped[str | None] = mapped_column(String(32), index=True)
    created_at:      Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_now)

    @property
    def display_name(self) -> str:
        name = f"{self.first_name or ''} {self.last_name or ''}".strip()
        return name or "EchoVault User"


class MessageRow(Base):
    __tablename__ = "messages"

    id:                 Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    user_id:            Mapped[str] = mapped_column(String(36), index=True)
    title:              Mapped[str]
    content:            Mapped[str | None] = mapped_column(Text)
    message_type:       Mapped[str] = mapped_column(String(16), default="text")
    attachments:        Mapped[list[dict[str, Any]] | None] = mapped_column(JSON, nullable=True)
    expires_at:         Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    sender_name:        Mapped[str | None]
    share_location:     Mapped[bool] = mapped_column(Boolean, default=False)
    location_latitude:  Mapped[float | None]
    location_longitude: Mapped[float | None]
    location_name:      Mapped[str | None]
    created_at:         Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_now)
    updated_at:         Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_now, onupdate=_now)


class RecipientRow(Base):
    __tablename__ = "recipients"

    id:         Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    user_id:    Mapped[str] = mapped_column(String(36), index=True)
    name:       Mapped[str]
    email:      Mapped[str]
    phone:      Mapped[str | None] = mapped_column(String(32), index=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_now)


class ConditionRow(Base):
    __tablename__ = "message_conditions"

    id:                 Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    message_id:         Mapped[str] = mapped_column(ForeignKey("messages.id", ondelete="CASCADE"), index=True)
    condition_type:     Mapped[str] = mapped_column(String(32))
    hours_threshold:    Mapped[int] = mapped_column(Integer, default=0)
    minutes_threshold:  Mapped[int] = mapped_column(Integer, default=0)
    last_checked:       Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    next_check:         Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    recipients:         Mapped[list[dict[str, Any]]] = mapped_column(JSON, default=list)
    active:             Mapped[bool] = mapped_column(Boolean, default=True)
    trigger_date:       Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    recurring_pattern:  Mapped[dict[str, Any] | None] = mapped_column(JSON, nullable=True)
    panic_config:       Mapped[dict[str, Any] | None] = mapped_column(JSON, nullable=True)
    pin_code:           Mapped[str | None]
    unlock_delay_hours: Mapped[int] = mapped_column(Integer, default=0)
    expiry_hours:       Mapped[int] = mapped_column(Integer, default=0)
    reminder_hours:     Mapped[list[float] | None] = mapped_column(JSON, nullable=True)
    check_in_code:      Mapped[str | None]
    created_at:         Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_now)
    updated_at:         Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_now, onupdate=_now)

    __table_args__ = (
        Index("ix_message_conditions_active_type", "active", "condition_type"),
    )


class ReminderRow(Base):
    __tablename__ = "reminder_schedule"

    id:                Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    message_id:        Mapped[str] = mapped_column(ForeignKey("messages.id", ondelete="CASCADE"))
    condition_id:      Mapped[str] = mapped_column(ForeignKey("message_conditions.id", ondelete="CASCADE"), index=True)
    scheduled_at:      Mapped[datetime] = mapped_column(DateTime(timezone=True))
    reminder_type:     Mapped[str] = mapped_column(String(16), default="reminder")
    status:            Mapped[str] = mapped_column(String(16), default="pending")
    delivery_priority: Mapped[str] = mapped_column(String(16), default="normal")
    retry_strategy:    Mapped[str] = mapped_column(String(16), default="standard")
    retry_count:       Mapped[int] = mapped_column(Integer, default=0)
    last_attempt_at:   Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    last_error:        Mapped[str | None] = mapped_column(Text)
    created_at:        Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_now)

    __table_args__ = (
        Index("ix_reminder_schedule_status_scheduled", "status", "scheduled_at"),
    )


class DeliveryRow(Base):
    __tablename__ = "delivered_messages"

    id:           Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    message_id:   Mapped[str] = mapped_column(ForeignKey("messages.id", ondelete="CASCADE"), index=True)
    condition_id: Mapped[str | None] = mapped_column(String(36))
    recipient_id: Mapped[str | None] = mapped_column(String(36))
    delivery_id:  Mapped[str] = mapped_column(String(36), unique=True)
    delivered_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_now)
    viewed_at:    Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    viewed_count: Mapped[int] = mapped_column(Integer, default=0)
    pin_verified_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    device_info:  Mapped[str | None]


class CheckInRow(Base):
    __tablename__ = "check_ins"

    id:          Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    user_id:     Mapped[str] = mapped_column(String(36), index=True)
    timestamp:   Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_now)
    method:      Mapped[str] = mapped_column(String(32), default="app")
    device_info: Mapped[str | None]

# ──────────────────────────────────────────────────────────────────────
# 4. DDL helper (run once at startup or from Alembic)
# ──────────────────────────────────────────────────────────────────────
async def create_all():
    async with get_engine().begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

# ──────────────────────────────────────────────────────────────────────
# 5. CRUD helpers
# ──────────────────────────────────────────────────────────────────────

def _to_message(row: MessageRow) -> Message:
    return Message.model_validate(row)


def _to_condition(row: ConditionRow) -> MessageCondition:
    return MessageCondition.model_validate(row)


# 5.1 Profiles ---------------------------------------------------------
async def get_profile(user_id: str) -> ProfileRow | None:
    async for s in get_session():
        return await s.get(ProfileRow, user_id)


async def upsert_profile(user_id: str, **fields) -> ProfileRow:
    async for s in get_session():
        row = await s.get(ProfileRow, user_id)
        if row is None:
            row = ProfileRow(id=user_id, **fields)
            s.add(row)
        else:
            for key, value in fields.items():
                setattr(row, key, value)
        await s.commit()
        return row


async def find_user_by_phone(phone: str) -> str | None:
    """Owner of a WhatsApp number: profile first, then a recipient entry."""
    async for s in get_session():
        res = await s.execute(
            select(ProfileRow.id).where(ProfileRow.whatsapp_number == phone).limit(1)
        )
        user_id = res.scalar_one_or_none()
        if user_id:
            return user_id
        res = await s.execute(
            select(RecipientRow.user_id).where(RecipientRow.phone == phone).limit(1)
        )
        return res.scalar_one_or_none()


# 5.2 Messages ---------------------------------------------------------
async def insert_message(user_id: str, draft: MessageDraft) -> Message:
    row = MessageRow(
        user_id=user_id,
        title=draft.title,
        content=draft.content,
        message_type=draft.message_type,
        attachments=[a.model_dump() for a in draft.attachments] or None,
        expires_at=_aware(draft.expires_at, "expires_at"),
        sender_name=draft.sender_name,
        share_location=draft.share_location,
        location_latitude=draft.location_latitude,
        location_longitude=draft.location_longitude,
        location_name=draft.location_name,
    )
    async for s in get_session():
        s.add(row)
        await s.commit()
        return _to_message(row)


async def get_message(message_id: str) -> Message | None:
    async for s in get_session():
        row = await s.get(MessageRow, message_id)
        return _to_message(row) if row else None


async def _owned_message(s: AsyncSession, message_id: str, user_id: str) -> MessageRow:
    row = await s.get(MessageRow, message_id)
    if row is None or row.user_id != user_id:
        raise NotFoundError(f"Message {message_id} not found")
    return row


async def update_message(message_id: str, user_id: str, draft: MessageDraft) -> Message:
    async for s in get_session():
        row = await _owned_message(s, message_id, user_id)
        row.title = draft.title
        row.content = draft.content
        row.message_type = draft.message_type
        row.attachments = [a.model_dump() for a in draft.attachments] or None
        row.expires_at = _aware(draft.expires_at, "expires_at")
        row.sender_name = draft.sender_name
        row.share_location = draft.share_location
        row.location_latitude = draft.location_latitude
        row.location_longitude = draft.location_longitude
        row.location_name = draft.location_name
        await s.commit()
        return _to_message(row)


async def delete_message(message_id: str, user_id: str) -> Message:
    """Delete a message (conditions, reminders and deliveries cascade); returns the deleted row."""
    async for s in get_session():
        row = await _owned_message(s, message_id, user_id)
        deleted = _to_message(row)
        await s.delete(row)
        await s.commit()
        return deleted


async def list_messages(user_id: str, message_type: str | None = None) -> list[Message]:
    async for s in get_session():
        stmt = select(MessageRow).where(MessageRow.user_id == user_id)
        if message_type:
            stmt = stmt.where(MessageRow.message_type == message_type)
        stmt = stmt.order_by(MessageRow.created_at.desc())
        res = await s.execute(stmt)
        return [_to_message(r) for r in res.scalars()]


async def list_all_messages(limit: int = 100, offset: int = 0) -> list[AdminMessage]:
    async for s in get_session():
        stmt = (
            select(MessageRow, ProfileRow.email, ConditionRow.condition_type, ConditionRow.active)
            .outerjoin(ProfileRow, ProfileRow.id == MessageRow.user_id)
            .outerjoin(ConditionRow, ConditionRow.message_id == MessageRow.id)
            .order_by(MessageRow.created_at.desc())
            .limit(limit)
            .offset(offset)
        )
        res = await s.execute(stmt)
        return [
            AdminMessage(
                id=msg.id,
                title=msg.title,
                message_type=msg.message_type,
                created_at=msg.created_at,
                user_id=msg.user_id,
                user_email=email,
                condition_type=ctype,
                active=active,
            )
            for msg, email, ctype, active in res.all()
        ]


# 5.3 Recipients -------------------------------------------------------
async def insert_recipient(user_id: str, draft: RecipientDraft) -> Recipient:
    row = RecipientRow(user_id=user_id, name=draft.name, email=draft.email.strip(), phone=draft.phone)
    async for s in get_session():
        s.add(row)
        await s.commit()
        return Recipient.model_validate(row)


async def update_recipient(recipient_id: str, user_id: str, draft: RecipientDraft) -> Recipient:
    async for s in get_session():
        row = await s.get(RecipientRow, recipient_id)
        if row is None or row.user_id != user_id:
            raise NotFoundError(f"Recipient {recipient_id} not found")
        row.name, row.email, row.phone = draft.name, draft.email.strip(), draft.phone
        await s.commit()
        return Recipient.model_validate(row)


async def delete_recipient(recipient_id: str, user_id: str) -> None:
    async for s in get_session():
        res = await s.execute(
            delete(RecipientRow).where(RecipientRow.id == recipient_id, RecipientRow.user_id == user_id)
        )
        await s.commit()
        if res.rowcount == 0:
            raise NotFoundError(f"Recipient {recipient_id} not found")


async def list_recipients(user_id: str, ids: Sequence[str] | None = None) -> list[Recipient]:
    async for s in get_session():
        stmt = select(RecipientRow).where(RecipientRow.user_id == user_id)
        if ids is not None:
            stmt = stmt.where(RecipientRow.id.in_(list(ids)))
        res = await s.execute(stmt.order_by(RecipientRow.name))
        return [Recipient.model_validate(r) for r in res.scalars()]


# 5.4 Conditions -------------------------------------------------------
async def insert_condition(
    message_id: str,
    draft: ConditionDraft,
    recipients: Sequence[Recipient],
    last_checked: datetime | None = None,
) -> MessageCondition:
    row = ConditionRow(
        message_id=message_id,
        condition_type=draft.condition_type,
        hours_threshold=draft.hours_threshold,
        minutes_threshold=draft.minutes_threshold,
        last_checked=last_checked or _now(),
        recipients=[r.model_dump(exclude={"user_id"}) for r in recipients],
        active=True,
        trigger_date=_aware(draft.trigger_date, "trigger_date"),
        recurring_pattern=draft.recurring_pattern.model_dump() if draft.recurring_pattern else None,
        panic_config=draft.panic_config.model_dump() if draft.panic_config else None,
        pin_code=draft.pin_code,
        unlock_delay_hours=draft.unlock_delay_hours,
        expiry_hours=draft.expiry_hours,
        reminder_hours=draft.reminder_hours,
        check_in_code=draft.check_in_code,
    )
    async for s in get_session():
        s.add(row)
        await s.commit()
        return _to_condition(row)


async def get_condition(condition_id: str) -> MessageCondition | None:
    async for s in get_session():
        row = await s.get(ConditionRow, condition_id)
        return _to_condition(row) if row else None


async def get_condition_for_message(message_id: str, active_only: bool = False) -> MessageCondition | None:
    async for s in get_session():
        stmt = select(ConditionRow).where(ConditionRow.message_id == message_id)
        if active_only:
            stmt = stmt.where(ConditionRow.active.is_(True))
        res = await s.execute(stmt.order_by(ConditionRow.created_at.desc()).limit(1))
        row = res.scalar_one_or_none()
        return _to_condition(row) if row else None


async def update_condition(condition_id: str, **values) -> MessageCondition:
    async for s in get_session():
        row = await s.get(ConditionRow, condition_id)
        if row is None:
            raise NotFoundError(f"Condition {condition_id} not found")
        for key, value in values.items():
            setattr(row, key, value)
        row.updated_at = _now()
        await s.commit()
        return _to_condition(row)


async def set_condition_active(condition_id: str, active: bool) -> None:
    async for s in get_session():
        await s.execute(
            update(ConditionRow)
            .where(ConditionRow.id == condition_id)
            .values(active=active, updated_at=_now())
        )
        await s.commit()


async def list_active_conditions(message_id: str | None = None) -> list[MessageCondition]:
    async for s in get_session():
        stmt = select(ConditionRow).where(ConditionRow.active.is_(True))
        if message_id:
            stmt = stmt.where(ConditionRow.message_id == message_id)
        res = await s.execute(stmt)
        return [_to_condition(r) for r in res.scalars()]


async def list_user_conditions(
    user_id: str,
    active_only: bool = True,
    condition_type: str | None = None,
) -> list[MessageCondition]:
    async for s in get_session():
        stmt = (
            select(ConditionRow)
            .join(MessageRow, MessageRow.id == ConditionRow.message_id)
            .where(MessageRow.user_id == user_id)
        )
        if active_only:
            stmt = stmt.where(ConditionRow.active.is_(True))
        if condition_type:
            stmt = stmt.where(ConditionRow.condition_type == condition_type)
        res = await s.execute(stmt.order_by(ConditionRow.hours_threshold))
        return [_to_condition(r) for r in res.scalars()]


async def set_conditions_last_checked(condition_ids: Iterable[str], checked_at: datetime) -> int:
    ids = list(condition_ids)
    if not ids:
        return 0
    async for s in get_session():
        res = await s.execute(
            update(ConditionRow)
            .where(ConditionRow.id.in_(ids))
            .values(last_checked=_aware(checked_at, "checked_at"), updated_at=_now())
        )
        await s.commit()
        return res.rowcount


# 5.5 Reminder schedule ------------------------------------------------
def _reminder_dict(row: ReminderRow) -> dict:
    return {
        "id": row.id,
        "message_id": row.message_id,
        "condition_id": row.condition_id,
        "scheduled_at": row.scheduled_at,
        "reminder_type": row.reminder_type,
        "status": row.status,
        "delivery_priority": row.delivery_priority,
        "retry_count": row.retry_count,
    }


async def replace_reminder_schedule(condition_id: str, entries: Sequence[dict]) -> int:
    """Drop the condition's pending rows and insert *entries* in one transaction."""
    async for s in get_session():
        await s.execute(
            delete(ReminderRow).where(
                ReminderRow.condition_id == condition_id,
                ReminderRow.status.in_(("pending", "processing")),
            )
        )
        s.add_all([ReminderRow(**entry) for entry in entries])
        await s.commit()
        return len(entries)


async def cancel_pending_reminders(condition_id: str) -> int:
    async for s in get_session():
        res = await s.execute(
            update(ReminderRow)
            .where(ReminderRow.condition_id == condition_id, ReminderRow.status == "pending")
            .values(status="cancelled")
        )
        await s.commit()
        return res.rowcount


async def claim_due_reminders(
    reminder_type: str = "reminder",
    limit: int = 100,
    force: bool = False,
    message_id: str | None = None,
) -> list[dict]:
    """Atomically move due rows ``pending → processing`` and return them."""
    now = _now()
    async for s in get_session():
        due = (
            select(ReminderRow.id)
            .where(ReminderRow.status == "pending", ReminderRow.reminder_type == reminder_type)
            .order_by(ReminderRow.scheduled_at)
            .limit(limit)
            .with_for_update(skip_locked=True)
        )
        if not force:
            due = due.where(ReminderRow.scheduled_at <= now)
        if message_id:
            due = due.where(ReminderRow.message_id == message_id)
        stmt = (
            update(ReminderRow)
            .where(ReminderRow.id.in_(due.scalar_subquery()))
            .values(status="processing", last_attempt_at=now)
            .returning(ReminderRow)
            .execution_options(synchronize_session=False)
        )
        res = await s.execute(stmt)
        rows = [_reminder_dict(r) for r in res.scalars().all()]
        await s.commit()
        return sorted(rows, key=lambda r: r["scheduled_at"])


async def mark_reminder_sent(rid: str):
    async for s in get_session():
        await s.execute(
            update(ReminderRow)
            .where(ReminderRow.id == rid)
            .values(status="sent", last_attempt_at=_now(), last_error=None)
        )
        await s.commit()


async def mark_reminder_failed(rid: str, err: str, retry: bool = False):
    """Record a failed attempt; ``retry=True`` puts the row back to ``pending``."""
    async for s in get_session():
        await s.execute(
            update(ReminderRow)
            .where(ReminderRow.id == rid)
            .values(
                status="pending" if retry else "failed",
                last_error=err,
                last_attempt_at=_now(),
                retry_count=ReminderRow.retry_count + 1,
            )
        )
        await s.commit()


async def reset_stuck_reminders(older_than_minutes: int = 5) -> int:
    cutoff = _now() - timedelta(minutes=older_than_minutes)
    async for s in get_session():
        res = await s.execute(
            update(ReminderRow)
            .where(
                ReminderRow.status == "processing",
                or_(ReminderRow.last_attempt_at.is_(None), ReminderRow.last_attempt_at < cutoff),
            )
            .values(status="pending", retry_count=ReminderRow.retry_count + 1)
        )
        await s.commit()
        return res.rowcount


async def list_reminders(condition_id: str, limit: int = 50) -> list[dict]:
    async for s in get_session():
        res = await s.execute(
            select(ReminderRow)
            .where(ReminderRow.condition_id == condition_id)
            .order_by(ReminderRow.scheduled_at)
            .limit(limit)
        )
        return [_reminder_dict(r) for r in res.scalars()]


# 5.6 Deliveries -------------------------------------------------------
async def record_delivery(
    message_id: str,
    condition_id: str | None,
    recipient_id: str | None,
    delivery_id: str,
) -> DeliveryRow:
    """Insert a delivery record; an existing ``delivery_id`` is returned unchanged."""
    async for s in get_session():
        res = await s.execute(select(DeliveryRow).where(DeliveryRow.delivery_id == delivery_id))
        existing = res.scalar_one_or_none()
        if existing:
            return existing
        row = DeliveryRow(
            message_id=message_id,
            condition_id=condition_id,
            recipient_id=recipient_id,
            delivery_id=delivery_id,
            delivered_at=_now(),
        )
        s.add(row)
        await s.commit()
        return row


async def get_delivery(message_id: str, delivery_id: str) -> DeliveryRow | None:
    async for s in get_session():
        res = await s.execute(
            select(DeliveryRow).where(
                DeliveryRow.delivery_id == delivery_id, DeliveryRow.message_id == message_id
            )
        )
        return res.scalar_one_or_none()


async def record_view(message_id: str, delivery_id: str, device_info: str | None = None) -> bool:
    async for s in get_session():
        res = await s.execute(
            update(DeliveryRow)
            .where(DeliveryRow.delivery_id == delivery_id, DeliveryRow.message_id == message_id)
            .values(
                viewed_at=_now(),
                viewed_count=DeliveryRow.viewed_count + 1,
                device_info=device_info,
            )
        )
        await s.commit()
        return res.rowcount > 0


async def mark_pin_verified(message_id: str, delivery_id: str, device_info: str | None = None) -> bool:
    """Unlock a PIN-protected delivery; only the PIN check calls this."""
    now = _now()
    async for s in get_session():
        res = await s.execute(
            update(DeliveryRow)
            .where(DeliveryRow.delivery_id == delivery_id, DeliveryRow.message_id == message_id)
            .values(
                pin_verified_at=now,
                viewed_at=now,
                viewed_count=DeliveryRow.viewed_count + 1,
                device_info=device_info,
            )
        )
        await s.commit()
        return res.rowcount > 0


# 5.7 Check-ins --------------------------------------------------------
async def insert_check_in(user_id: str, method: str, checked_at: datetime, device_info: str | None = None) -> str:
    row = CheckInRow(user_id=user_id, method=method, timestamp=_aware(checked_at, "checked_at"), device_info=device_info)
    async for s in get_session():
        s.add(row)
        await s.commit()
        return row.id


async def list_check_ins(user_id: str, limit: int = 20) -> list[dict]:
    async for s in get_session():
        res = await s.execute(
            select(CheckInRow)
            .where(CheckInRow.user_id == user_id)
            .order_by(CheckInRow.timestamp.desc())
            .limit(limit)
        )
        return [
            {"id": r.id, "timestamp": r.timestamp, "method": r.method, "device_info": r.device_info}
            for r in res.scalars()
        ]


async def dispose_engine():
    global _engine, _session_maker
    if _engine is not None:
        await _engine.dispose()
        _engine = None
        _session_maker = None
