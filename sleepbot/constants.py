from __future__ import annotations

DEFAULT_POLL_EMOJIS = [
    "😫",
    "😕",
    "😐",
    "🙂",
    "😄",
]

DEFAULT_COMMAND_PREFIX = "/"
DEFAULT_DAEMON_INTERVAL_MINUTES = 1.0
DEFAULT_SLEEP_PERIOD_MIN_MINUTES = 360.0

MIN_SCALE_SIZE = 2
MAX_SCALE_SIZE = 10

STORE_DOCUMENT_KEY = "sleep-sessions"
EXPORT_FILENAME = "data.json"

# Inline keyboard buttons on a poll carry this prefix followed by the emoji.
POLL_CALLBACK_PREFIX = "poll:"

PONG_TEXT = "Pong!"
SLEEP_STARTED_TEXT = "I started a sleeping period. Good night! 🌙"
ALREADY_SLEEPING_TEXT = (
    "You're already in a sleep period.\n"
    "Either respond to the poll or cancel the last period."
)
NOT_SLEEPING_TEXT = "You're not currently in a sleep period."
CANCELLED_TEXT = "I've stopped/deleted the most recent sleep period."
POLL_ALREADY_SENT_TEXT = "I've already asked how you slept. React to the poll above to finish the period."
PRIVATE_ONLY_TEXT = "This bot's really only made to be used in private chats."
INTERNAL_ERROR_TEXT = "There was an internal error when running the command."
REACTION_ERROR_TEXT = "There was an internal error when handling the reaction."

GOOD_MORNING_TEXT = "Good morning!"
POLL_PROMPT_TEMPLATE = "React to how you feel right now ({low} is bad, {high} is good)"
SLEPT_FOR_TEMPLATE = "You slept for {hours} hours, {minutes} minute(s)"

HELP_TITLE = "🌙 Sleep bot help"
