"""
End-to-end flows through dispatcher, daemon and resolver sharing one store.
"""
from datetime import timedelta

import pytest

from sleepbot.constants import ALREADY_SLEEPING_TEXT, NOT_SLEEPING_TEXT
from sleepbot.models import MessageReceived, ReactionAdded
from sleepbot.store import SessionStore

from conftest import EMOJIS, THRESHOLD, T0


@pytest.mark.asyncio
async def test_sleep_poll_react_flow(dispatcher, daemon, resolver, store, notifier, clock, store_path):
    await dispatcher.dispatch(MessageReceived(channel_id="C1", author_id="1", text="/sleep"))

    clock.advance(THRESHOLD)
    assert await daemon.tick() == 1
    (poll_id,) = notifier.polls_for("C1")

    closed = await resolver.resolve(
        ReactionAdded(message_id=poll_id, channel_id="C1", emoji=EMOJIS[-1], actor_id="1")
    )

    assert closed.duration == THRESHOLD
    assert closed.quality == len(EMOJIS)
    assert notifier.texts_for("C1")[-1] == "You slept for 6 hours, 0 minute(s)"
    assert not store.is_poll_active(poll_id)

    await daemon.tick()
    (saved,) = SessionStore(store_path).all_sessions()
    assert saved == closed


@pytest.mark.asyncio
async def test_daemon_granularity_adds_to_duration(dispatcher, daemon, resolver, notifier, clock):
    await dispatcher.dispatch(MessageReceived(channel_id="C1", author_id="1", text="/sleep"))

    clock.advance(THRESHOLD - timedelta(seconds=30))
    assert await daemon.tick() == 0
    clock.advance(timedelta(minutes=1))
    assert await daemon.tick() == 1
    (poll_id,) = notifier.polls_for("C1")

    closed = await resolver.resolve(
        ReactionAdded(message_id=poll_id, channel_id="C1", emoji=EMOJIS[0], actor_id="1")
    )

    assert THRESHOLD <= closed.duration <= THRESHOLD + timedelta(minutes=1)
    assert closed.quality == 1


@pytest.mark.asyncio
async def test_cancel_on_idle_channel_leaves_store_unchanged(dispatcher, store, notifier):
    store.start_session("C1", T0)
    before = store.all_sessions()

    await dispatcher.dispatch(MessageReceived(channel_id="C2", author_id="2", text="/cancel"))

    assert notifier.texts_for("C2") == [NOT_SLEEPING_TEXT]
    assert store.all_sessions() == before


@pytest.mark.asyncio
async def test_double_sleep_leaves_one_pending(dispatcher, store, notifier):
    await dispatcher.dispatch(MessageReceived(channel_id="C1", author_id="1", text="/sleep"))
    await dispatcher.dispatch(MessageReceived(channel_id="C1", author_id="1", text="/Sleep"))

    assert [s.pending for s in store.all_sessions()] == [True]
    assert notifier.texts_for("C1")[-1] == ALREADY_SLEEPING_TEXT


@pytest.mark.asyncio
async def test_new_session_after_close_gets_its_own_poll(dispatcher, daemon, resolver, store, notifier, clock):
    await dispatcher.dispatch(MessageReceived(channel_id="C1", author_id="1", text="/sleep"))
    await dispatcher.dispatch(MessageReceived(channel_id="C1", author_id="1", text="/stop"))
    (first_poll,) = notifier.polls_for("C1")
    await resolver.resolve(ReactionAdded(message_id=first_poll, channel_id="C1", emoji=EMOJIS[2], actor_id="1"))

    clock.advance(timedelta(hours=12))
    await dispatcher.dispatch(MessageReceived(channel_id="C1", author_id="1", text="/sleep"))
    clock.advance(THRESHOLD)
    await daemon.tick()

    first, second = notifier.polls_for("C1")
    assert first == first_poll
    assert store.is_poll_active(second)
    assert not store.is_poll_active(first)
    assert [s.pending for s in store.all_sessions()] == [False, True]
