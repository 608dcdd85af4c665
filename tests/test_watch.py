import asyncio
import gc
import threading
import time
from pathlib import Path

import pytest

from wasmtrunk.watch import Broadcast, WatchSystem


class Counter:
    def __init__(self, error=None):
        self.calls = 0
        self.error = error

    def __call__(self):
        self.calls += 1
        if self.error is not None:
            raise self.error


@pytest.fixture
def root(tmp_path: Path) -> Path:
    return tmp_path.resolve()


def test_handle_event_builds(root):
    target = root / "main.rs"
    target.write_text("fn main() {}")
    build = Counter()
    system = WatchSystem([root], [], build)
    assert system.handle_event(target) is True
    assert build.calls == 1


def test_handle_event_skips_ignored(root):
    dist = root / "dist"
    (dist / "sub").mkdir(parents=True)
    target = dist / "sub" / "index.html"
    target.write_text("x")
    build = Counter()
    system = WatchSystem([root], [dist], build)
    assert system.handle_event(target) is False
    assert system.handle_event(dist) is False
    assert build.calls == 0


def test_handle_event_skips_blacklist(root):
    git = root / ".git"
    git.mkdir()
    (git / "HEAD").write_text("ref")
    build = Counter()
    system = WatchSystem([root], [], build)
    assert system.handle_event(git / "HEAD") is False
    assert build.calls == 0


def test_handle_event_skips_removed(root):
    build = Counter()
    system = WatchSystem([root], [], build)
    assert system.handle_event(root / "gone.txt") is False
    assert build.calls == 0


def test_handle_event_survives_build_error(root):
    target = root / "a.txt"
    target.write_text("a")
    build = Counter(RuntimeError("boom"))
    system = WatchSystem([root], [], build)
    assert system.handle_event(target) is True
    assert build.calls == 1


def test_build_propagates_error(root):
    system = WatchSystem([root], [], Counter(RuntimeError("boom")))
    with pytest.raises(RuntimeError, match="boom"):
        system.build()


def test_update_ignore_list_dedups(root):
    target = root / "target"
    target.mkdir()
    system = WatchSystem([root], [], Counter())
    system.update_ignore_list(target)
    system.update_ignore_list(root / "target" / ".." / "target")
    assert system.ignored_paths == [target]


def test_update_ignore_list_keeps_unresolvable(root):
    missing = root / "not-yet"
    system = WatchSystem([root], [], Counter())
    system.update_ignore_list(missing)
    assert system.ignored_paths == [missing]


def test_ignored_after_update(root):
    target = root / "target"
    target.mkdir()
    (target / "out.wasm").write_bytes(b"\x00")
    build = Counter()
    system = WatchSystem([root], [], build)
    system.update_ignore_list(target)
    assert system.handle_event(target / "out.wasm") is False
    assert build.calls == 0


@pytest.mark.asyncio
async def test_broadcast_delivers():
    channel = Broadcast()
    receiver = channel.subscribe()
    assert channel.send() == 1
    assert await asyncio.wait_for(receiver.get(), 1) is None


@pytest.mark.asyncio
async def test_broadcast_without_subscribers():
    assert Broadcast().send() == 0


@pytest.mark.asyncio
async def test_broadcast_drops_collected_subscribers():
    channel = Broadcast()
    receiver = channel.subscribe()
    del receiver
    gc.collect()
    assert channel.send() == 0


@pytest.mark.asyncio
async def test_broadcast_bounded_capacity():
    channel = Broadcast()
    receiver = channel.subscribe()
    for _ in range(12):
        channel.send()
    await asyncio.sleep(0.05)
    assert receiver.qsize() == 8


@pytest.mark.asyncio
async def test_broadcast_from_other_thread():
    channel = Broadcast()
    receiver = channel.subscribe()
    results = []
    worker = threading.Thread(target=lambda: results.append(channel.send()))
    worker.start()
    worker.join()
    assert results == [1]
    assert await asyncio.wait_for(receiver.get(), 1) is None


def test_broadcast_subscribe_needs_loop():
    with pytest.raises(RuntimeError):
        Broadcast().subscribe()


@pytest.mark.asyncio
async def test_handle_event_notifies_build_done(root):
    target = root / "b.txt"
    target.write_text("b")
    channel = Broadcast()
    receiver = channel.subscribe()
    system = WatchSystem([root], [], Counter(), channel)
    assert system.handle_event(target) is True
    assert await asyncio.wait_for(receiver.get(), 1) is None


def test_run_stops_on_shutdown(root):
    build = Counter()
    system = WatchSystem([root], [], build)
    shutdown = threading.Event()
    shutdown.set()
    worker = threading.Thread(target=system.run, args=(shutdown,))
    worker.start()
    worker.join(timeout=10)
    assert not worker.is_alive()
    assert build.calls == 0


def test_run_rebuilds_on_change(root):
    build = Counter()
    system = WatchSystem([root], [], build)
    system.debounce = 0.1
    shutdown = threading.Event()
    worker = threading.Thread(target=system.run, args=(shutdown,))
    worker.start()
    try:
        time.sleep(0.3)
        (root / "changed.txt").write_text("new")
        deadline = time.monotonic() + 10
        while build.calls == 0 and time.monotonic() < deadline:
            time.sleep(0.05)
    finally:
        shutdown.set()
        worker.join(timeout=10)
    assert build.calls >= 1
    assert not worker.is_alive()