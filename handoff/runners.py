import asyncio
import functools
import logging
import signal
import sys

from .buffer import Buffer


def run(main, buffer: Buffer):
    """Run the coroutine `main` on a new event loop.

    SIGHUP, SIGINT and SIGTERM close `buffer`, which terminates every consumer
    that is waiting on it. Once `main` returns, a received signal is reported
    as `SystemExit` with the shell's `128 + signal number` status.
    """
    loop = asyncio.new_event_loop()
    received = []

    if sys.platform != "win32":  # Same check as in `asyncio.__init__`.
        def on_signal(s):
            logging.critical("%r received", s)
            received.append(s)
            buffer.end()
        for s in (signal.SIGHUP, signal.SIGINT, signal.SIGTERM):
            loop.add_signal_handler(s, functools.partial(on_signal, s))

    try:
        result = loop.run_until_complete(main)
        if received:
            raise SystemExit(128 + received[0].value)
        return result
    finally:
        loop.run_until_complete(loop.shutdown_asyncgens())
        loop.close()
