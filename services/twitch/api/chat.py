import asyncio
from typing import AsyncGenerator, Optional, Tuple

from services.twitch.models.message import (
    MessageParseError,
    TwitchIrcMessage,
)
from shared.logging.logger import get_logger

log = get_logger("twitch.chat")


class TwitchConnectionError(RuntimeError):
    """Dialing failed for good, or an established connection broke."""


class TwitchChatClient:
    """
    Minimal Twitch IRC client for reading chat.

    - No event loop creation on import.
    - Connection lifecycle is owned by callers (the chat worker).
    - Dialing retries a fixed number of times; once connected, any read or
      write failure is raised as TwitchConnectionError and never retried.
    """

    DEFAULT_PORT = 6667
    CAPABILITIES = "twitch.tv/tags twitch.tv/commands"

    def __init__(
        self,
        address: str,
        nickname: str,
        channel: str,
        *,
        token: Optional[str] = None,
        tls: bool = False,
    ):
        self.host, self.port = self._split_address(address)
        self.nickname = nickname
        self.channel = self._normalize_channel(channel)
        self.token = self._normalize_token(token) if token else None
        self.tls = tls

        self.reader: asyncio.StreamReader | None = None
        self.writer: asyncio.StreamWriter | None = None

        self._connected = False

    # ------------------------------------------------------------------ #
    # Lifecycle
    # ------------------------------------------------------------------ #

    async def connect(
        self,
        *,
        max_attempts: int = 5,
        backoff: float = 1.0,
    ) -> None:
        """
        Dial the relay and register. Channel join happens on the welcome
        message, see `request_join`.
        """
        if self._connected:
            log.debug("TwitchChatClient already connected")
            return

        log.info(
            f"Connecting to Twitch IRC ({self.host}:{self.port}, "
            f"tls={'on' if self.tls else 'off'}) as nick={self.nickname}"
        )
        self.reader, self.writer = await self._dial(max_attempts, backoff)

        if self.token:
            await self.send_raw(f"PASS {self.token}")
        await self.send_raw(f"NICK {self.nickname}")
        await self.send_raw(f"USER {self.nickname} 0 * :{self.nickname}")
        self._connected = True

    async def close(self) -> None:
        if not self.writer:
            return

        log.info("Closing Twitch IRC connection")
        try:
            self.writer.close()
            await self.writer.wait_closed()
        except Exception as e:
            log.debug(f"Error during Twitch IRC close ignored: {e}")
        finally:
            self.reader = None
            self.writer = None
            self._connected = False

    @property
    def connected(self) -> bool:
        return self._connected

    # ------------------------------------------------------------------ #
    # Handshake
    # ------------------------------------------------------------------ #

    async def request_join(self) -> None:
        await self.send_raw(f"CAP REQ :{self.CAPABILITIES}")
        await self.send_raw(f"JOIN #{self.channel}")
        log.info(f"Joining Twitch channel #{self.channel}")

    def from_channel(self, message: TwitchIrcMessage) -> bool:
        return (message.channel or "").lower() == self.channel.lower()

    # ------------------------------------------------------------------ #
    # Reading
    # ------------------------------------------------------------------ #

    async def iter_messages(self) -> AsyncGenerator[TwitchIrcMessage, None]:
        """
        Read lines until the connection fails and yield parsed messages.
        PING is answered here and not yielded.
        """
        if not self.reader:
            raise RuntimeError("iter_messages called before connect()")

        while True:
            try:
                line = await self.reader.readline()
            except (ConnectionError, OSError) as e:
                raise TwitchConnectionError(f"Twitch IRC read failed: {e}") from e

            if line == b"":
                raise TwitchConnectionError("Twitch IRC connection closed by remote")

            decoded = line.decode("utf-8", errors="ignore").strip()
            if not decoded:
                continue

            try:
                message = TwitchIrcMessage.parse(decoded)
            except MessageParseError as e:
                log.warning(f"Ignoring unparsable IRC line: {e}")
                continue

            log.debug(f"received message: {decoded}")

            if message.command == "PING":
                await self._handle_ping(message)
                continue

            yield message

    # ------------------------------------------------------------------ #
    # Internal helpers
    # ------------------------------------------------------------------ #

    async def send_raw(self, data: str) -> None:
        if not self.writer:
            raise RuntimeError("IRC writer is not initialized")

        payload = (data + "\r\n").encode("utf-8")
        try:
            self.writer.write(payload)
            await self.writer.drain()
        except (ConnectionError, OSError) as e:
            raise TwitchConnectionError(f"Twitch IRC write failed: {e}") from e

    async def _dial(
        self,
        max_attempts: int,
        backoff: float,
    ) -> Tuple[asyncio.StreamReader, asyncio.StreamWriter]:
        attempts = 0
        while True:
            try:
                return await asyncio.open_connection(
                    self.host, self.port, ssl=True if self.tls else None
                )
            except OSError as e:
                attempts += 1
                if attempts >= max_attempts:
                    raise TwitchConnectionError(
                        f"Failed to dial {self.host}:{self.port} "
                        f"after {attempts} attempt(s): {e}"
                    ) from e
                log.warning(
                    f"Dial attempt {attempts}/{max_attempts} failed ({e}); "
                    f"retrying in {backoff:g}s"
                )
                await asyncio.sleep(backoff)

    async def _handle_ping(self, message: TwitchIrcMessage) -> None:
        # Twitch IRC sends: PING :tmi.twitch.tv
        payload = message.trailing or " ".join(message.params)
        await self.send_raw(f"PONG :{payload}")
        log.debug("Responded to Twitch PING")

    @classmethod
    def _split_address(cls, address: str) -> Tuple[str, int]:
        address = address.strip()
        if not address:
            raise ValueError("IRC address is empty")

        host, sep, port = address.rpartition(":")
        if not sep:
            return address, cls.DEFAULT_PORT
        if not host:
            raise ValueError(f"IRC address has no host: {address!r}")
        try:
            return host, int(port)
        except ValueError:
            raise ValueError(f"IRC address has an invalid port: {address!r}") from None

    @staticmethod
    def _normalize_token(token: str) -> str:
        token = token.strip()
        if not token.startswith("oauth:"):
            return f"oauth:{token}"
        return token

    @staticmethod
    def _normalize_channel(channel: str) -> str:
        return channel.lstrip("#").strip()
