import argparse
import asyncio
import contextlib
import logging
import sys
import urllib.parse

from . import feed
from . import runners
from .buffer import Buffer


def open_source(buffer, source):
    """Return a coroutine that feeds `source` into `buffer`."""
    url = urllib.parse.urlparse(source)
    if url.scheme in ("http", "https"):
        return feed.feed_url(buffer, source)
    if url.scheme in ("", "file"):
        return feed.feed_file(buffer, url.path if url.scheme else source)
    raise ValueError(f"Unsupported scheme {url.scheme!r}.")


async def consume(name, buffer, out=None):
    count = 0
    async for line in buffer:
        print(f"{name}: {line}", file=out)
        count += 1
    logging.debug("Consumer %s received %d line(s)", name, count)
    return count


async def main(buffer, source, consumers, grace=1.0):
    feeder = asyncio.create_task(open_source(buffer, source))
    counts = await asyncio.gather(*(consume(str(i), buffer) for i in range(consumers)))
    # If a signal closed the buffer, the feeder only notices once its source
    # yields another line.
    await asyncio.wait({feeder}, timeout=grace)
    if feeder.done():
        feeder.result()
    else:
        feeder.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await feeder
    return sum(counts)


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description="Hand the lines of a file or URL to concurrent consumers.")
    parser.add_argument("source", help="Path or http(s) URL to read lines from.", metavar="<source>")
    parser.add_argument("--consumers", help="Number of consumers.", type=int, default=1, metavar="<consumers>")
    parser.add_argument("--debug", help="Enable logging.", action="store_true")
    args = parser.parse_args(argv)
    if args.consumers < 1:
        parser.error("--consumers must be at least 1")
    return args


if __name__ == "__main__":
    try:
        import uvloop
    except ImportError:
        pass
    else:
        uvloop.install()

    args = parse_args()
    if args.debug:
        logging.basicConfig(
            level=logging.DEBUG,
            format="%(asctime)s,%(msecs)03d %(levelname)s: %(message)s",
            datefmt="%H:%M:%S",
        )
    buffer = Buffer()
    try:
        runners.run(main(buffer, args.source, args.consumers), buffer)
    except KeyboardInterrupt:
        sys.exit(130)
