from __future__ import annotations

import logging
import sys
from datetime import timedelta

from telegram import BotCommand, BotCommandScopeAllPrivateChats, Update
from telegram.ext import Application, CallbackQueryHandler, MessageHandler, MessageReactionHandler, filters

from sleepbot.commands import CommandDispatcher
from sleepbot.config import ConfigError, ensure_data_dirs, load_config
from sleepbot.constants import POLL_CALLBACK_PREFIX
from sleepbot.daemon import PollDaemon
from sleepbot.handlers import message_reaction_handler, poll_button_callback, text_message_handler
from sleepbot.notifier import TelegramNotifier
from sleepbot.reactions import ReactionResolver
from sleepbot.store import SessionStore, StoreError

logger = logging.getLogger(__name__)


def configure_logging() -> None:
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
    )
    # Every getUpdates call is logged at INFO otherwise.
    logging.getLogger("httpx").setLevel(logging.WARNING)


async def _post_init(app: Application) -> None:
    dispatcher: CommandDispatcher = app.bot_data["dispatcher"]
    resolver: ReactionResolver = app.bot_data["resolver"]
    dispatcher.self_id = resolver.self_id = str(app.bot.id)

    if dispatcher.prefix == "/":
        commands = [BotCommand(name, cmd.doc) for name, cmd in dispatcher.commands.items()]
        await app.bot.set_my_commands(commands, scope=BotCommandScopeAllPrivateChats())
        logger.info("Telegram command menu updated for private chats")

    logger.info("Bot link: https://t.me/%s", app.bot.username)


async def _post_stop(app: Application) -> None:
    store: SessionStore = app.bot_data["store"]
    try:
        store.persist()
    except StoreError as exc:
        logger.error("Final save on shutdown failed: %s", exc)
    else:
        logger.info("Saved sleep sessions on shutdown")


def build_application() -> Application:
    config = load_config()
    ensure_data_dirs(config)

    store = SessionStore(config.datafile, allow_cancel_after_poll=config.allow_cancel_after_poll)

    app = (
        Application.builder()
        .token(config.telegram_bot_token)
        .post_init(_post_init)
        .post_stop(_post_stop)
        .build()
    )

    notifier = TelegramNotifier(app.bot)
    daemon = PollDaemon(
        store=store,
        notifier=notifier,
        emojis=config.poll_emojis,
        threshold=timedelta(minutes=config.sleep_period_min_minutes),
    )
    dispatcher = CommandDispatcher(
        store=store,
        notifier=notifier,
        daemon=daemon,
        prefix=config.command_prefix,
    )
    resolver = ReactionResolver(store=store, notifier=notifier, emojis=config.poll_emojis)

    app.bot_data["store"] = store
    app.bot_data["daemon"] = daemon
    app.bot_data["dispatcher"] = dispatcher
    app.bot_data["resolver"] = resolver

    app.add_handler(CallbackQueryHandler(poll_button_callback, pattern=rf"^{POLL_CALLBACK_PREFIX}"))
    app.add_handler(MessageReactionHandler(message_reaction_handler))
    app.add_handler(MessageHandler(filters.TEXT, text_message_handler))

    if app.job_queue is None:
        raise ConfigError("JobQueue unavailable: install python-telegram-bot[job-queue]")
    app.job_queue.run_repeating(
        daemon.run_job,
        interval=timedelta(minutes=config.daemon_interval_minutes),
        first=0,
        name="poll_daemon",
    )

    return app


def main() -> None:
    configure_logging()

    try:
        app = build_application()
    except (ConfigError, StoreError) as exc:
        logging.error("Startup failed: %s", exc)
        sys.exit(1)

    app.run_polling(
        allowed_updates=[Update.MESSAGE, Update.CALLBACK_QUERY, Update.MESSAGE_REACTION],
    )


if __name__ == "__main__":
    main()
