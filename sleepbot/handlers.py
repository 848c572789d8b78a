from __future__ import annotations

import logging
from typing import Any

from telegram import ReactionTypeEmoji, Update
from telegram.constants import ChatType
from telegram.ext import ContextTypes

from .commands import CommandDispatcher
from .constants import POLL_CALLBACK_PREFIX
from .models import MessageReceived, ReactionAdded
from .reactions import ReactionResolver

logger = logging.getLogger(__name__)


def _service(context: ContextTypes.DEFAULT_TYPE, key: str) -> Any:
    return context.application.bot_data[key]


async def text_message_handler(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    if update.effective_message is None or update.effective_chat is None:
        return

    text = (update.effective_message.text or "").strip()
    if not text:
        return

    dispatcher: CommandDispatcher = _service(context, "dispatcher")
    user = update.effective_user
    event = MessageReceived(
        channel_id=str(update.effective_chat.id),
        author_id=str(user.id) if user else "",
        text=text,
        is_private=update.effective_chat.type == ChatType.PRIVATE,
    )
    await dispatcher.dispatch(event)


async def poll_button_callback(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    query = update.callback_query
    if query is None or query.message is None or not query.data:
        return

    await query.answer()

    resolver: ReactionResolver = _service(context, "resolver")
    event = ReactionAdded(
        message_id=str(query.message.message_id),
        channel_id=str(query.message.chat.id),
        emoji=query.data.removeprefix(POLL_CALLBACK_PREFIX),
        actor_id=str(query.from_user.id),
    )
    closed = await resolver.resolve(event)
    if closed is not None:
        # The poll is answered; drop the buttons so it can't be pressed again.
        await query.edit_message_reply_markup(reply_markup=None)


async def message_reaction_handler(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    reaction = update.message_reaction
    if reaction is None:
        return

    resolver: ReactionResolver = _service(context, "resolver")
    previous = {r.emoji for r in reaction.old_reaction if isinstance(r, ReactionTypeEmoji)}
    actor_id = str(reaction.user.id) if reaction.user else ""

    for new in reaction.new_reaction:
        if not isinstance(new, ReactionTypeEmoji) or new.emoji in previous:
            continue
        await resolver.resolve(
            ReactionAdded(
                message_id=str(reaction.message_id),
                channel_id=str(reaction.chat.id),
                emoji=new.emoji,
                actor_id=actor_id,
            )
        )
