"""
Chat event classifier.

Maps one Twitch IRC message to the Outcome it has on the non-Prime
subcount. Pure apart from a warning log for malformed operator commands.

Counted:
  - USERNOTICE with msg-id sub / resub on any plan except Prime

Operator command (moderator or broadcaster only):
  - !nonprimesubcount <integer>   overwrite the counter (0 resets it)
"""

from __future__ import annotations

import re
from typing import Optional

from core.subcount.models import Outcome
from services.twitch.models.message import MessageKind, TwitchIrcMessage
from shared.logging.logger import get_logger

log = get_logger("core.subcount.classifier")

OVERWRITE_COMMAND = "!nonprimesubcount "
PRIME_PLAN = "Prime"
COUNTED_MSG_IDS = frozenset({"sub", "resub"})
BROADCASTER_BADGE = "broadcaster/1"

# optional sign + ASCII digits, nothing else
_INTEGER_RE = re.compile(r"[+-]?[0-9]+")


def classify(message: TwitchIrcMessage) -> Outcome:
    kind = message.kind

    if kind is MessageKind.NOTICE_EVENT:
        return _classify_notice(message)

    if kind is MessageKind.CHAT_MESSAGE:
        return _classify_chat(message)

    return Outcome.noop()


def is_privileged(message: TwitchIrcMessage) -> bool:
    # Substring match on badges, not a parsed badge list.
    return (
        message.get_tag("mod") == "1"
        or BROADCASTER_BADGE in message.get_tag("badges")
    )


def parse_count(text: str) -> Optional[int]:
    if not _INTEGER_RE.fullmatch(text):
        return None
    return int(text)


# ---------------------------------------------------------------------- #
# Internal helpers
# ---------------------------------------------------------------------- #

def _classify_notice(message: TwitchIrcMessage) -> Outcome:
    if message.get_tag("msg-id") not in COUNTED_MSG_IDS:
        return Outcome.noop()

    if message.get_tag("msg-param-sub-plan") == PRIME_PLAN:
        return Outcome.noop()

    return Outcome.add(1)


def _classify_chat(message: TwitchIrcMessage) -> Outcome:
    text = message.trailing
    if not text.startswith("!"):
        return Outcome.noop()

    if not is_privileged(message):
        return Outcome.noop()

    if not text.startswith(OVERWRITE_COMMAND):
        return Outcome.noop()

    amount = parse_count(text[len(OVERWRITE_COMMAND):])
    if amount is None:
        log.warning(
            f"Failed to parse amount from overwrite command "
            f"(user={message.username}, text={text!r})"
        )
        return Outcome.noop()

    return Outcome.set_to(amount)
