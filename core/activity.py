"""
Chat activity monitor.

Gives the operator two signs of life without touching the counter:
  - one log line once the first channel event has been forwarded
  - the number of forwarded events every 15 minutes (silent when zero)
"""

import asyncio

from shared.logging.logger import get_logger

log = get_logger("core.activity")

FIRST_MESSAGE_POLL_SECONDS = 1.0
VELOCITY_INTERVAL_SECONDS = 15 * 60


class ActivityMonitor:
    def __init__(
        self,
        channel: str,
        *,
        poll_interval: float = FIRST_MESSAGE_POLL_SECONDS,
        velocity_interval: float = VELOCITY_INTERVAL_SECONDS,
    ):
        self.channel = channel
        self.poll_interval = poll_interval
        self.velocity_interval = velocity_interval

        # events since the last velocity report
        self._window_count = 0
        self._total = 0

    def record(self) -> None:
        self._window_count += 1
        self._total += 1

    @property
    def total(self) -> int:
        return self._total

    def take_window(self) -> int:
        count, self._window_count = self._window_count, 0
        return count

    # ------------------------------------------------------------------

    async def wait_for_first_message(self) -> None:
        try:
            while self._total == 0:
                await asyncio.sleep(self.poll_interval)
            log.info(f"[#{self.channel}] received first regular chat message")
        except asyncio.CancelledError:
            log.debug("first message watch cancelled")
            raise

    async def report_velocity(self) -> None:
        try:
            while True:
                await asyncio.sleep(self.velocity_interval)
                count = self.take_window()
                if count == 0:
                    continue
                minutes = self.velocity_interval / 60
                log.info(f"[#{self.channel}] {count} message(s) in the past {minutes:g} min")
        except asyncio.CancelledError:
            log.debug("velocity report cancelled")
            raise

    async def run(self) -> None:
        await asyncio.gather(
            self.wait_for_first_message(),
            self.report_velocity(),
        )
