"""Producers that drain an external source into a `Buffer`.

Each helper ends the buffer when it returns, including when the source
raises, so that consumers iterating over the buffer always terminate.
"""

from __future__ import annotations
from typing import AsyncIterable, Optional, TypeVar, Union

import contextlib
import logging
import os

import aiofiles
import aiohttp

from .buffer import Buffer


T = TypeVar("T")


async def pump(buffer: Buffer[T], source: AsyncIterable[T], *, end: bool = True) -> int:
    """Push every item of `source` into `buffer` and return the number pushed.

    Stops early if a consumer closed the buffer in the meantime.
    """
    count = 0
    try:
        async for item in source:
            if buffer.closed:
                logging.debug("%r closed after %d item(s)", buffer, count)
                break
            buffer.push(item)
            count += 1
        else:
            logging.debug("Source exhausted after %d item(s)", count)
    except Exception as e:
        logging.warning("Feeding %r failed with %r", buffer, e)
        raise
    finally:
        if end:
            buffer.end()
    return count


async def _file_lines(path):
    async with aiofiles.open(path, "r", encoding="utf-8") as f:
        async for line in f:
            yield line.rstrip("\r\n")


async def feed_file(
    buffer: Buffer[str], path: Union[str, os.PathLike], *, end: bool = True
) -> int:
    """Push the lines of the text file at `path` into `buffer`."""
    async with contextlib.aclosing(_file_lines(path)) as lines:
        return await pump(buffer, lines, end=end)


async def _response_lines(session, url):
    async with session.get(url) as resp:
        if resp.status >= 300:
            raise ConnectionError(f"{url} answered with status {resp.status}.")
        # `StreamReader.__aiter__` yields one line at a time.
        async for line in resp.content:
            yield line.decode("utf-8").rstrip("\r\n")


async def feed_url(
    buffer: Buffer[str],
    url: str,
    *,
    session: Optional[aiohttp.ClientSession] = None,
    end: bool = True,
) -> int:
    """Stream the body of an HTTP GET request into `buffer`, one line per item."""
    if session is not None:
        async with contextlib.aclosing(_response_lines(session, url)) as lines:
            return await pump(buffer, lines, end=end)
    async with aiohttp.ClientSession() as session:
        async with contextlib.aclosing(_response_lines(session, url)) as lines:
            return await pump(buffer, lines, end=end)
