import asyncio
from typing import Optional

from core.subcount import CounterState, Effect, classify
from services.twitch.models.message import TwitchIrcMessage
from shared.logging.logger import get_logger
from shared.storage.counter_store import CounterStore

log = get_logger("core.dispatcher")

DEFAULT_QUEUE_SIZE = 16

# Queued behind pending events by close(); run() returns when it is reached.
_CLOSED = object()


class SubcountDispatcher:
    """
    Single consumer of inbound chat events.

    Producers `await submit(...)` onto a bounded FIFO queue; `run()` takes
    one event at a time and drives classify -> apply -> persist to
    completion before looking at the next. This is the only place the
    counter is mutated.
    """

    def __init__(
        self,
        state: CounterState,
        store: CounterStore,
        *,
        maxsize: int = DEFAULT_QUEUE_SIZE,
    ):
        self.state = state
        self.store = store
        self._queue: asyncio.Queue = asyncio.Queue(maxsize=maxsize)
        self._closed = False
        self.processed = 0

    # ------------------------------------------------------------------ #
    # Producer side
    # ------------------------------------------------------------------ #

    async def submit(self, message: TwitchIrcMessage) -> None:
        if self._closed:
            raise RuntimeError("submit called after dispatcher was closed")
        await self._queue.put(message)

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        await self._queue.put(_CLOSED)

    @property
    def pending(self) -> int:
        return self._queue.qsize()

    # ------------------------------------------------------------------ #
    # Consumer side
    # ------------------------------------------------------------------ #

    async def run(self) -> None:
        log.info(f"Dispatcher started (subs={self.state.subs})")
        try:
            while True:
                item = await self._queue.get()
                try:
                    if item is _CLOSED:
                        break
                    self._handle_safely(item)
                finally:
                    self._queue.task_done()
        except asyncio.CancelledError:
            log.debug("Dispatcher cancelled")
            raise

        log.info(
            f"Dispatcher stopped after {self.processed} event(s) "
            f"(subs={self.state.subs})"
        )

    def handle(self, message: TwitchIrcMessage) -> Effect:
        outcome = classify(message)
        effect = self.state.apply(outcome)
        self.processed += 1

        if effect.write_subs:
            log.debug(
                f"[{message.command}] {message.username}: {outcome} "
                f"-> subs={self.state.subs}"
            )
            self.store.persist(self.state.subs)

        return effect

    def _handle_safely(self, message: TwitchIrcMessage) -> Optional[Effect]:
        try:
            return self.handle(message)
        except Exception as e:
            log.error(f"Failed to handle message {message!s:.200}: {e}")
            return None
