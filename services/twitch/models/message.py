from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Dict, Mapping, Optional, Tuple


class MessageKind(str, Enum):
    WELCOME = "welcome"
    ROOM_JOIN_ACK = "room-join-ack"
    CHAT_MESSAGE = "chat-message"
    NOTICE_EVENT = "notice-event"
    OTHER = "other"


_COMMAND_KINDS = {
    "001": MessageKind.WELCOME,
    "ROOMSTATE": MessageKind.ROOM_JOIN_ACK,
    "PRIVMSG": MessageKind.CHAT_MESSAGE,
    "USERNOTICE": MessageKind.NOTICE_EVENT,
}

# IRCv3 message-tags escaping
_TAG_ESCAPES = {
    ":": ";",
    "s": " ",
    "\\": "\\",
    "r": "\r",
    "n": "\n",
}


class MessageParseError(ValueError):
    """Raised when a raw line is not a usable IRC message."""


@dataclass(frozen=True)
class TwitchIrcMessage:
    """
    Immutable Twitch IRC message (tags, prefix, command, params).

    Every line read from the relay, or replayed from a debug input file, is
    turned into one of these before it is routed. The classifier only looks
    at `kind`, `tags` and `trailing`.
    """

    raw: str
    command: str
    prefix: str = ""
    params: Tuple[str, ...] = ()
    tags: Mapping[str, str] = field(default_factory=dict)
    has_trailing: bool = False

    def __post_init__(self) -> None:
        object.__setattr__(self, "tags", MappingProxyType(dict(self.tags)))

    # ------------------------------------------------------------------ #
    # Accessors
    # ------------------------------------------------------------------ #

    @property
    def kind(self) -> MessageKind:
        return _COMMAND_KINDS.get(self.command, MessageKind.OTHER)

    @property
    def trailing(self) -> str:
        if self.has_trailing and self.params:
            return self.params[-1]
        return ""

    @property
    def channel(self) -> Optional[str]:
        if self.params and self.params[0].startswith("#"):
            return self.params[0][1:]
        return None

    @property
    def username(self) -> str:
        # Prefix example: nickname!nickname@nickname.tmi.twitch.tv
        if "!" in self.prefix:
            return self.prefix.split("!", 1)[0]
        return self.tags.get("login") or self.prefix

    def get_tag(self, key: str, default: str = "") -> str:
        return self.tags.get(key, default)

    def __str__(self) -> str:
        return self.raw

    # ------------------------------------------------------------------ #
    # Parsing
    # ------------------------------------------------------------------ #

    @classmethod
    def parse(cls, line: str) -> "TwitchIrcMessage":
        raw = line.rstrip("\r\n")
        if not raw.strip():
            raise MessageParseError("empty line")

        tags, remainder = cls._split_tags(raw)
        prefix, command, params, has_trailing = cls._split_prefix_and_command(remainder)
        if not command:
            raise MessageParseError(f"missing command in line: {raw!r}")

        return cls(
            raw=raw,
            command=command.upper(),
            prefix=prefix,
            params=params,
            tags=tags,
            has_trailing=has_trailing,
        )

    @staticmethod
    def _split_tags(raw: str) -> Tuple[Dict[str, str], str]:
        if not raw.startswith("@"):
            return {}, raw

        if " " not in raw:
            raise MessageParseError(f"tags without command: {raw!r}")

        tags_part, remainder = raw.split(" ", 1)
        tags = {}
        for pair in tags_part[1:].split(";"):
            if not pair:
                continue
            if "=" in pair:
                k, v = pair.split("=", 1)
                tags[k] = _unescape_tag_value(v)
            else:
                tags[pair] = ""
        return tags, remainder.lstrip(" ")

    @staticmethod
    def _split_prefix_and_command(raw: str) -> Tuple[str, str, Tuple[str, ...], bool]:
        prefix = ""
        rest = raw
        if raw.startswith(":"):
            if " " in raw:
                prefix, rest = raw[1:].split(" ", 1)
            else:
                prefix = raw[1:]
                rest = ""

        if rest.startswith(":"):
            return prefix, "", tuple(), False

        if " :" in rest:
            middle, trailing = rest.split(" :", 1)
            parts = middle.split()
            if not parts:
                return prefix, "", tuple(), False
            return prefix, parts[0], tuple(parts[1:] + [trailing]), True

        parts = rest.split()
        if not parts:
            return prefix, "", tuple(), False
        return prefix, parts[0], tuple(parts[1:]), False


def _unescape_tag_value(value: str) -> str:
    if "\\" not in value:
        return value

    out = []
    chars = iter(value)
    for ch in chars:
        if ch != "\\":
            out.append(ch)
            continue
        nxt = next(chars, None)
        if nxt is None:
            # trailing lone backslash is dropped
            break
        out.append(_TAG_ESCAPES.get(nxt, nxt))
    return "".join(out)
