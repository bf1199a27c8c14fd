import pytest

from services.twitch.models.message import (
    MessageKind,
    MessageParseError,
    TwitchIrcMessage,
)
from tests import irc_lines


def test_privmsg_fields():
    msg = TwitchIrcMessage.parse(irc_lines.mod_says("!nonprimesubcount 5"))

    assert msg.command == "PRIVMSG"
    assert msg.kind is MessageKind.CHAT_MESSAGE
    assert msg.channel == "eznoprimes"
    assert msg.username == "snip"
    assert msg.trailing == "!nonprimesubcount 5"
    assert msg.get_tag("mod") == "1"
    assert msg.get_tag("badges") == "moderator/1,subscriber/3,hype-train/1"


def test_valueless_tags_are_empty_strings():
    msg = TwitchIrcMessage.parse(irc_lines.PLAIN_CHAT)

    assert msg.tags["badges"] == ""
    assert msg.tags["user-type"] == ""
    assert msg.get_tag("missing", "fallback") == "fallback"


def test_tag_values_are_unescaped():
    msg = TwitchIrcMessage.parse(irc_lines.T1_SUB)

    assert msg.get_tag("msg-param-sub-plan-name") == "Channel Subscription (eznoprimes)"
    assert msg.get_tag("system-msg").startswith("snip subscribed with Prime.")


@pytest.mark.parametrize(
    "raw_value, expected",
    [
        ("a\\:b", "a;b"),
        ("back\\\\slash", "back\\slash"),
        ("line\\nbreak", "line\nbreak"),
        ("unknown\\x", "unknownx"),
        ("dangling\\", "dangling"),
    ],
)
def test_tag_escape_sequences(raw_value, expected):
    msg = TwitchIrcMessage.parse(f"@k={raw_value} :tmi.twitch.tv USERNOTICE #c")
    assert msg.get_tag("k") == expected


def test_notice_without_trailing():
    msg = TwitchIrcMessage.parse(irc_lines.GIFTED_SUB)

    assert msg.kind is MessageKind.NOTICE_EVENT
    assert msg.trailing == ""
    assert msg.channel == "eznoprimes"
    assert msg.get_tag("msg-id") == "subgift"


@pytest.mark.parametrize(
    "line, kind",
    [
        (irc_lines.WELCOME, MessageKind.WELCOME),
        (irc_lines.ROOMSTATE, MessageKind.ROOM_JOIN_ACK),
        (irc_lines.PING, MessageKind.OTHER),
        (":tmi.twitch.tv CLEARCHAT #eznoprimes :someone", MessageKind.OTHER),
    ],
)
def test_kinds(line, kind):
    assert TwitchIrcMessage.parse(line).kind is kind


def test_ping_trailing():
    msg = TwitchIrcMessage.parse(irc_lines.PING)

    assert msg.command == "PING"
    assert msg.prefix == ""
    assert msg.trailing == "tmi.twitch.tv"


def test_trailing_keeps_inner_colons_and_spaces():
    msg = TwitchIrcMessage.parse(":a!a@a PRIVMSG #eznoprimes :hello :) there  ")
    assert msg.trailing == "hello :) there  "


@pytest.mark.parametrize("line", ["", "   ", "@only=tags", ":prefix.only", ":prefix :trailing"])
def test_unparsable_lines(line):
    with pytest.raises(MessageParseError):
        TwitchIrcMessage.parse(line)


def test_message_is_immutable():
    msg = TwitchIrcMessage.parse(irc_lines.PLAIN_CHAT)

    with pytest.raises(AttributeError):
        msg.command = "USERNOTICE"
    with pytest.raises(TypeError):
        msg.tags["mod"] = "1"

