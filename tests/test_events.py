import pytest

from app.services import events


@pytest.mark.asyncio
async def test_publish_reaches_sync_and_async_listeners():
    sync_seen, async_seen = [], []

    async def async_listener(event):
        async_seen.append(event.source)

    unsubscribe_sync = events.subscribe(sync_seen.append)
    unsubscribe_async = events.subscribe(async_listener)
    try:
        event = await events.publish("panic_button", message_id="m1", trigger_value="triggered")
    finally:
        unsubscribe_sync()
        unsubscribe_async()

    assert sync_seen == [event]
    assert async_seen == ["panic_button"]
    assert event.model_dump(by_alias=True, exclude_none=True).keys() >= {"messageId", "updatedAt", "source"}


@pytest.mark.asyncio
async def test_failing_listener_does_not_stop_others():
    seen = []

    def broken(event):
        raise RuntimeError("listener down")

    unsubscribe_broken = events.subscribe(broken)
    unsubscribe_ok = events.subscribe(seen.append)
    try:
        await events.publish("check_in", user_id="u1")
    finally:
        unsubscribe_broken()
        unsubscribe_ok()

    assert len(seen) == 1


@pytest.mark.asyncio
async def test_unsubscribe_stops_delivery():
    seen = []
    unsubscribe = events.subscribe(seen.append)
    unsubscribe()
    unsubscribe()
    await events.publish("arm")
    assert seen == []
