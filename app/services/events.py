"""``conditions-updated`` notifications.

Services publish after every condition mutation so that listeners (cache
refreshers, websocket pushers, tests) can re-read the affected rows. Delivery
is best-effort and in-process; a failing listener is logged and skipped.
"""

from __future__ import annotations

import inspect
import logging
from typing import Awaitable, Callable, List, Optional, Union

from app.services.deadlines import utcnow
from app.types.contracts import ConditionsUpdatedEvent

_LOGGER = logging.getLogger(__name__)

CONDITIONS_UPDATED = "conditions-updated"

Listener = Callable[[ConditionsUpdatedEvent], Union[None, Awaitable[None]]]

_listeners: List[Listener] = []


def subscribe(listener: Listener) -> Callable[[], None]:
    """Register *listener*; returns a callable that removes it again."""
    _listeners.append(listener)

    def _unsubscribe() -> None:
        if listener in _listeners:
            _listeners.remove(listener)

    return _unsubscribe


async def publish(
    source: str,
    message_id: Optional[str] = None,
    user_id: Optional[str] = None,
    trigger_value: Optional[str] = None,
) -> ConditionsUpdatedEvent:
    event = ConditionsUpdatedEvent(
        message_id=message_id,
        updated_at=utcnow(),
        trigger_value=trigger_value,
        source=source,
        user_id=user_id,
    )
    _LOGGER.debug("%s: %s", CONDITIONS_UPDATED, event.model_dump(by_alias=True, exclude_none=True))
    for listener in list(_listeners):
        try:
            result = listener(event)
            if inspect.isawaitable(result):
                await result
        except Exception:  # noqa: BLE001
            _LOGGER.exception("conditions-updated listener %r failed", listener)
    return event
