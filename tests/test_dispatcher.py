import asyncio

import pytest

from core.dispatcher import DEFAULT_QUEUE_SIZE, SubcountDispatcher
from core.subcount import CounterState, Effect
from services.twitch.models.message import TwitchIrcMessage
from shared.storage.counter_store import CounterStore
from tests import irc_lines


def _msg(line: str) -> TwitchIrcMessage:
    return TwitchIrcMessage.parse(line)


class RecordingStore:
    def __init__(self, fail: bool = False):
        self.writes = []
        self.fail = fail

    def persist(self, value: int) -> bool:
        self.writes.append(value)
        return not self.fail


@pytest.fixture
def output(tmp_path):
    return tmp_path / "nonprimesubcount.txt"


def _dispatcher(output, initial=None):
    store = CounterStore(output)
    subs = store.load() if initial is None else initial
    return SubcountDispatcher(CounterState(subs), store)


# ---------------------------------------------------------------------- #
# Scenarios
# ---------------------------------------------------------------------- #

def test_privileged_reset_to_zero(output):
    dispatcher = _dispatcher(output, initial=57)

    effect = dispatcher.handle(_msg(irc_lines.mod_says("!nonprimesubcount 0")))

    assert effect == Effect(write_subs=True)
    assert dispatcher.state.subs == 0
    assert output.read_text() == "0"


def test_tier_one_resub_increments_by_one(output):
    output.write_text("10")
    dispatcher = _dispatcher(output)

    dispatcher.handle(_msg(irc_lines.T1_RESUB))

    assert dispatcher.state.subs == 11
    assert output.read_text() == "11"


def test_prime_sub_leaves_file_untouched(output):
    output.write_text("10")
    mtime = output.stat().st_mtime_ns
    dispatcher = _dispatcher(output)

    effect = dispatcher.handle(_msg(irc_lines.PRIME_SUB))

    assert effect == Effect()
    assert dispatcher.state.subs == 10
    assert output.read_text() == "10"
    assert output.stat().st_mtime_ns == mtime


def test_non_moderator_overwrite_is_ignored(output):
    output.write_text("10")
    dispatcher = _dispatcher(output)

    dispatcher.handle(_msg(irc_lines.NON_MOD_OVERWRITE))

    assert dispatcher.state.subs == 10
    assert output.read_text() == "10"


def test_startup_without_file(output):
    dispatcher = _dispatcher(output)

    assert dispatcher.state.subs == 0
    assert output.read_text() == "0"


def test_corrupt_file_recovers_on_next_write(output):
    output.write_text("garbage")
    dispatcher = _dispatcher(output)
    assert output.read_text() == "garbage"

    dispatcher.handle(_msg(irc_lines.T1_SUB))

    assert output.read_text() == "1"


# ---------------------------------------------------------------------- #
# Loop behaviour
# ---------------------------------------------------------------------- #

@pytest.mark.asyncio
async def test_run_processes_in_fifo_order_and_drains_on_close():
    store = RecordingStore()
    dispatcher = SubcountDispatcher(CounterState(0), store)

    lines = [
        irc_lines.T1_SUB,
        irc_lines.mod_says("!nonprimesubcount 100"),
        irc_lines.PRIME_SUB,
        irc_lines.T1_RESUB,
        irc_lines.PLAIN_CHAT,
    ]
    for line in lines:
        await dispatcher.submit(_msg(line))
    await dispatcher.close()

    await asyncio.wait_for(dispatcher.run(), timeout=1)

    assert store.writes == [1, 100, 101]
    assert dispatcher.state.subs == 101
    assert dispatcher.processed == len(lines)


@pytest.mark.asyncio
async def test_persist_failure_does_not_stop_loop():
    store = RecordingStore(fail=True)
    dispatcher = SubcountDispatcher(CounterState(0), store)
    task = asyncio.create_task(dispatcher.run())

    await dispatcher.submit(_msg(irc_lines.T1_SUB))
    await dispatcher.submit(_msg(irc_lines.T1_SUB))
    await dispatcher.close()
    await asyncio.wait_for(task, timeout=1)

    assert store.writes == [1, 2]
    assert dispatcher.state.subs == 2


@pytest.mark.asyncio
async def test_handler_exception_is_logged_and_loop_continues():
    class ExplodingStore(RecordingStore):
        def persist(self, value):
            super().persist(value)
            if len(self.writes) == 1:
                raise RuntimeError("boom")
            return True

    store = ExplodingStore()
    dispatcher = SubcountDispatcher(CounterState(0), store)

    await dispatcher.submit(_msg(irc_lines.T1_SUB))
    await dispatcher.submit(_msg(irc_lines.T1_SUB))
    await dispatcher.close()
    await asyncio.wait_for(dispatcher.run(), timeout=1)

    assert store.writes == [1, 2]


@pytest.mark.asyncio
async def test_full_queue_blocks_producer():
    dispatcher = SubcountDispatcher(CounterState(0), RecordingStore(), maxsize=2)

    await dispatcher.submit(_msg(irc_lines.T1_SUB))
    await dispatcher.submit(_msg(irc_lines.T1_SUB))
    blocked = asyncio.create_task(dispatcher.submit(_msg(irc_lines.T1_SUB)))
    await asyncio.sleep(0.01)
    assert not blocked.done()
    assert dispatcher.pending == 2

    consumer = asyncio.create_task(dispatcher.run())
    await asyncio.wait_for(blocked, timeout=1)
    await dispatcher.close()
    await asyncio.wait_for(consumer, timeout=1)

    assert dispatcher.state.subs == 3


@pytest.mark.asyncio
async def test_submit_after_close_is_rejected():
    dispatcher = SubcountDispatcher(CounterState(0), RecordingStore())
    await dispatcher.close()
    await dispatcher.close()

    with pytest.raises(RuntimeError):
        await dispatcher.submit(_msg(irc_lines.T1_SUB))


def test_default_queue_size():
    assert DEFAULT_QUEUE_SIZE == 16
