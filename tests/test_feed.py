import asyncio

import aiohttp
import pytest
from aiohttp import web
from aiohttp.test_utils import TestServer

from handoff import feed
from handoff.buffer import Buffer, Yielded


async def _items(*items):
    for item in items:
        yield item


@pytest.mark.asyncio
async def test_pump():
    b = Buffer()
    assert await feed.pump(b, _items(1, 2, 3)) == 3
    assert b.closed
    assert [x async for x in b] == [1, 2, 3]


@pytest.mark.asyncio
async def test_pump_without_end():
    b = Buffer()
    assert await feed.pump(b, _items(1), end=False) == 1
    assert not b.closed
    assert await b.next() == Yielded(1)


@pytest.mark.asyncio
async def test_pump_stops_when_closed():
    b = Buffer()

    async def source():
        yield 1
        await b.aclose()
        yield 2

    assert await feed.pump(b, source()) == 1
    assert len(b) == 1


@pytest.mark.asyncio
async def test_pump_source_fails():
    b = Buffer()

    async def source():
        yield 1
        raise RuntimeError("boom")

    with pytest.raises(RuntimeError):
        await feed.pump(b, source())
    # Consumers still terminate after the values pushed so far.
    assert b.closed
    assert [x async for x in b] == [1]


@pytest.mark.asyncio
async def test_pump_to_waiting_consumer():
    b = Buffer()

    async def consume():
        return [x async for x in b]

    consumer = asyncio.create_task(consume())
    await asyncio.sleep(0)
    await feed.pump(b, _items("a", "b"))
    assert await asyncio.wait_for(consumer, timeout=1) == ["a", "b"]


@pytest.mark.asyncio
async def test_feed_file(tmp_path):
    path = tmp_path / "lines.txt"
    path.write_bytes(b"a\nb\r\n\nc")
    b = Buffer()
    assert await feed.feed_file(b, path) == 4
    assert b.closed
    assert [x async for x in b] == ["a", "b", "", "c"]


@pytest.mark.asyncio
async def test_feed_missing_file(tmp_path):
    b = Buffer()
    with pytest.raises(FileNotFoundError):
        await feed.feed_file(b, tmp_path / "missing.txt")
    assert b.closed
    assert len(b) == 0


def _app():
    async def lines(request):
        return web.Response(text="x\ny\r\nz\n")

    async def missing(request):
        raise web.HTTPNotFound()

    app = web.Application()
    app.router.add_get("/lines", lines)
    app.router.add_get("/missing", missing)
    return app


@pytest.mark.asyncio
async def test_feed_url():
    b = Buffer()
    async with TestServer(_app()) as server:
        assert await feed.feed_url(b, str(server.make_url("/lines"))) == 3
    assert b.closed
    assert [x async for x in b] == ["x", "y", "z"]


@pytest.mark.asyncio
async def test_feed_url_with_session():
    b = Buffer()
    async with TestServer(_app()) as server:
        async with aiohttp.ClientSession() as session:
            url = str(server.make_url("/lines"))
            assert await feed.feed_url(b, url, session=session, end=False) == 3
            assert not session.closed
    assert not b.closed
    assert len(b) == 3


@pytest.mark.asyncio
async def test_feed_url_error_status():
    b = Buffer()
    async with TestServer(_app()) as server:
        with pytest.raises(ConnectionError):
            await feed.feed_url(b, str(server.make_url("/missing")))
    assert b.closed
    assert len(b) == 0


@pytest.mark.asyncio
async def test_feed_file_decodes_utf8(tmp_path):
    path = tmp_path / "lines.txt"
    path.write_bytes("café\nüber\n".encode("utf-8"))
    b = Buffer()
    assert await feed.feed_file(b, path) == 2
    assert [x async for x in b] == ["café", "über"]
