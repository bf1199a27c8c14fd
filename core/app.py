import asyncio
import signal
import sys

from core.activity import ActivityMonitor
from core.config_loader import (
    AppConfig,
    ConfigError,
    ConfigNotFoundError,
    load_config,
    resolve_config_path,
    sample_config_json,
)
from core.dispatcher import SubcountDispatcher
from core.subcount import CounterState
from runtime.version import as_string
from services.twitch.api.chat import TwitchChatClient, TwitchConnectionError
from services.twitch.workers.chat_worker import TwitchChatWorker
from shared.logging.logger import get_logger, set_debug
from shared.storage.counter_store import CounterStore

log = get_logger("core.app")


async def main(config: AppConfig, stop_event: asyncio.Event) -> int:
    log.info(f"{as_string()} booting")

    # --------------------------------------------------
    # STATE
    # --------------------------------------------------
    store = CounterStore(config.output_file)
    state = CounterState(store.load())

    # --------------------------------------------------
    # PIPELINE
    # --------------------------------------------------
    dispatcher = SubcountDispatcher(state, store)
    activity = ActivityMonitor(config.irc_channel)
    client = TwitchChatClient(
        config.irc_address,
        config.irc_user,
        config.irc_channel,
        token=config.oauth_token,
        tls=config.irc_tls,
    )
    worker = TwitchChatWorker(
        client=client,
        dispatcher=dispatcher,
        debug_input_file=config.debug_input_file or None,
        activity=activity,
    )

    dispatch_task = asyncio.create_task(dispatcher.run(), name="dispatcher")
    activity_task = asyncio.create_task(activity.run(), name="activity")
    worker_task = asyncio.create_task(worker.run(), name="twitch-chat")
    stop_task = asyncio.create_task(stop_event.wait(), name="stop")

    # --------------------------------------------------
    # BLOCK UNTIL SHUTDOWN SIGNAL OR WORKER FAILURE
    # --------------------------------------------------
    await asyncio.wait(
        {worker_task, stop_task},
        return_when=asyncio.FIRST_COMPLETED,
    )

    exit_code = 0
    if worker_task.done():
        try:
            worker_task.result()
            log.error("Twitch chat stream ended unexpectedly")
        except TwitchConnectionError as e:
            log.error(f"Failure during IRC run: {e}")
        except Exception as e:
            log.exception(f"Twitch chat worker crashed: {e}")
        exit_code = 1
    else:
        log.info("Shutdown initiated")
        worker_task.cancel()
        await asyncio.gather(worker_task, return_exceptions=True)

    # --------------------------------------------------
    # ORDERLY SHUTDOWN: DRAIN QUEUED EVENTS FIRST
    # --------------------------------------------------
    await dispatcher.close()
    try:
        await asyncio.wait_for(dispatch_task, timeout=5)
    except asyncio.TimeoutError:
        log.warning("Dispatcher did not drain in time; cancelled")

    for task in (activity_task, stop_task):
        task.cancel()
    await asyncio.gather(activity_task, stop_task, return_exceptions=True)

    log.info(f"eznoprimes stopped (subs={state.subs})")
    return exit_code


# ----------------------------------------------------------------------
# SIGNAL HANDLING (WINDOWS-SAFE)
# ----------------------------------------------------------------------

def _install_signal_handlers(
    loop: asyncio.AbstractEventLoop,
    stop_event: asyncio.Event,
):
    """
    Windows-safe Ctrl+C handler.
    Uses signal.signal + asyncio.Event to unwind cleanly.
    """

    def _handler(signum, frame):
        try:
            loop.call_soon_threadsafe(stop_event.set)
        except RuntimeError:
            stop_event.set()

    try:
        signal.signal(signal.SIGINT, _handler)
        signal.signal(signal.SIGTERM, _handler)
    except (ValueError, OSError) as e:
        log.debug(f"Signal handlers not installed: {e}")


# ----------------------------------------------------------------------
# ENTRYPOINT
# ----------------------------------------------------------------------

def run() -> int:
    try:
        config = load_config()
    except ConfigNotFoundError as e:
        print(sample_config_json())
        log.error(
            f"{e}; please fill the sample above and save it to "
            f"{resolve_config_path()}"
        )
        return 1
    except ConfigError as e:
        log.error(f"Failed to load config: {e}")
        return 1

    set_debug(config.debug_log)

    stop_event = asyncio.Event()

    loop = asyncio.new_event_loop()
    asyncio.set_event_loop(loop)

    _install_signal_handlers(loop, stop_event)

    exit_code = 1
    try:
        exit_code = loop.run_until_complete(main(config, stop_event))

    except KeyboardInterrupt:
        log.info("KeyboardInterrupt received, shutdown initiated")

    finally:
        # --------------------------------------------------
        # CANCEL REMAINING TASKS (CLEANLY)
        # --------------------------------------------------
        pending = [t for t in asyncio.all_tasks(loop) if not t.done()]
        for task in pending:
            task.cancel()

        if pending:
            loop.run_until_complete(
                asyncio.gather(*pending, return_exceptions=True)
            )

        loop.run_until_complete(loop.shutdown_asyncgens())

        asyncio.set_event_loop(None)
        loop.close()

    return exit_code


def cli() -> None:
    sys.exit(run())


if __name__ == "__main__":
    cli()
