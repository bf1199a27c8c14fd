import asyncio
from pathlib import Path
from typing import Optional

from core.activity import ActivityMonitor
from core.dispatcher import SubcountDispatcher
from services.twitch.api.chat import TwitchChatClient
from services.twitch.models.message import (
    MessageKind,
    MessageParseError,
    TwitchIrcMessage,
)
from shared.logging.logger import get_logger

log = get_logger("twitch.chat_worker")

FORWARDED_KINDS = frozenset({MessageKind.CHAT_MESSAGE, MessageKind.NOTICE_EVENT})


class TwitchChatWorker:
    """
    Ingress side of the subcount pipeline.

    Responsibilities:
    - Own the TwitchChatClient lifecycle (connect, read, shutdown)
    - Finish the channel handshake when the relay welcomes us
    - Forward channel chat messages and notices to the dispatcher queue
    - Optionally replay a debug input file before live traffic

    Connection failures are not handled here: they propagate out of `run()`
    and end the process.
    """

    def __init__(
        self,
        *,
        client: TwitchChatClient,
        dispatcher: SubcountDispatcher,
        debug_input_file: Optional[str] = None,
        activity: Optional[ActivityMonitor] = None,
    ):
        self._client = client
        self._dispatcher = dispatcher
        self._debug_input_file = debug_input_file
        self._activity = activity
        self.channel = client.channel

    # ------------------------------------------------------------------ #

    async def run(self) -> None:
        log.info(f"[#{self.channel}] Twitch chat worker starting")
        await self._client.connect()

        try:
            await self.replay_debug_input()

            async for message in self._client.iter_messages():
                await self.handle_message(message)

        except asyncio.CancelledError:
            log.debug(f"[#{self.channel}] Twitch chat worker cancelled")
            raise
        finally:
            await self._client.close()
            log.info(f"[#{self.channel}] Twitch chat worker stopped")

    # ------------------------------------------------------------------ #

    async def handle_message(self, message: TwitchIrcMessage) -> None:
        kind = message.kind

        if kind is MessageKind.WELCOME:
            await self._client.request_join()
            log.info(f"[#{self.channel}] knock knock")
            return

        if kind is MessageKind.ROOM_JOIN_ACK:
            if self._client.from_channel(message):
                log.info(f"[#{self.channel}] party time")
            return

        if kind in FORWARDED_KINDS and self._client.from_channel(message):
            await self._dispatcher.submit(message)
            if self._activity:
                self._activity.record()

    async def replay_debug_input(self) -> int:
        """
        Feed each line of the debug input file through `handle_message`.
        Stops at the first line that does not parse. Returns the number of
        replayed lines.
        """
        if not self._debug_input_file:
            return 0

        path = Path(self._debug_input_file)
        try:
            handle = path.open("rb")
        except OSError as e:
            log.warning(f"Failed to open debug input file {path} ({e}); ignoring replay")
            return 0

        replayed = 0
        with handle:
            for raw_line in handle:
                try:
                    line = raw_line.decode("utf-8").rstrip("\r\n")
                    message = TwitchIrcMessage.parse(line)
                except (UnicodeDecodeError, MessageParseError) as e:
                    log.warning(f"Invalid message in debug input ({e}); stopping replay")
                    return replayed

                await self.handle_message(message)
                replayed += 1
                log.info(f"Replayed debug input: {line}")

        log.info(f"Finished replaying debug input ({replayed} line(s))")
        return replayed
