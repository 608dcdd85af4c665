"""Watch the project tree and rebuild when files change."""

from __future__ import annotations

import asyncio
import logging
import os
import queue
import threading
import weakref
from collections.abc import Callable, Iterable
from pathlib import Path

from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer

logger = logging.getLogger(__name__)

BLACKLIST = (".git",)
DEBOUNCE_SECONDS = 1.0
_POLL_SECONDS = 0.1


def _offer(target: asyncio.Queue) -> None:
    try:
        target.put_nowait(None)
    except asyncio.QueueFull:
        pass


class Broadcast:
    """Fan a signal out to every subscribed asyncio queue, from any thread."""

    def __init__(self, capacity: int = 8) -> None:
        self._capacity = capacity
        self._lock = threading.Lock()
        self._subscribers: weakref.WeakKeyDictionary[asyncio.Queue, asyncio.AbstractEventLoop] = (
            weakref.WeakKeyDictionary()
        )

    def subscribe(self) -> asyncio.Queue:
        """Return a queue on the running loop that receives ``None`` for every signal."""
        loop = asyncio.get_running_loop()
        receiver: asyncio.Queue = asyncio.Queue(maxsize=self._capacity)
        with self._lock:
            self._subscribers[receiver] = loop
        return receiver

    def send(self) -> int:
        """Signal every live subscriber; return how many were reached."""
        with self._lock:
            targets = list(self._subscribers.items())
        delivered = 0
        for receiver, loop in targets:
            try:
                loop.call_soon_threadsafe(_offer, receiver)
            except RuntimeError:
                with self._lock:
                    self._subscribers.pop(receiver, None)
                continue
            delivered += 1
        return delivered


class _Forwarder(FileSystemEventHandler):
    """Put the paths of relevant file system events on a queue."""

    def __init__(self, events: queue.Queue) -> None:
        super().__init__()
        self._events = events

    def on_any_event(self, event: FileSystemEvent) -> None:
        kind = event.event_type
        if kind == "moved":
            path = event.dest_path
        elif kind in ("created", "deleted") or (kind == "modified" and not event.is_directory):
            path = event.src_path
        else:
            return
        self._events.put(Path(os.fsdecode(path)))


class WatchSystem:
    """Rebuild on file changes, skipping ignored and blacklisted paths."""

    def __init__(
        self,
        paths: Iterable[str | os.PathLike],
        ignored_paths: Iterable[str | os.PathLike],
        build: Callable[[], None],
        build_done: Broadcast | None = None,
    ) -> None:
        self.paths = [Path(path) for path in paths]
        self.ignored_paths = [Path(path) for path in ignored_paths]
        self._build = build
        self.build_done = build_done
        self.debounce = DEBOUNCE_SECONDS

    def build(self) -> None:
        """Run a build, propagating any error."""
        self._build()

    def handle_event(self, path: str | os.PathLike) -> bool:
        """Rebuild for a changed path unless it is gone, ignored or blacklisted."""
        try:
            ev_path = Path(path).resolve(strict=True)
        except OSError:
            # Removed resources, such as staging entries, cannot be resolved.
            return False

        if any(ancestor in self.ignored_paths for ancestor in (ev_path, *ev_path.parents)):
            return False
        if any(part in BLACKLIST for part in ev_path.parts):
            return False

        logger.debug("change detected in %s", ev_path)
        try:
            self._build()
        except Exception as err:  # a failed build must not stop the watcher
            logger.error("build failed: %s", err)
        if self.build_done is not None:
            self.build_done.send()
        return True

    def update_ignore_list(self, path: str | os.PathLike) -> None:
        """Add a path (canonical when possible) to the ignore list."""
        path = Path(path)
        try:
            path = path.resolve(strict=True)
        except OSError:
            pass
        if path not in self.ignored_paths:
            self.ignored_paths.append(path)

    def _collect(self, events: queue.Queue, first: Path, shutdown: threading.Event) -> list[Path]:
        batch = {first: None}
        while not shutdown.is_set():
            try:
                batch[events.get(timeout=self.debounce)] = None
            except queue.Empty:
                break
        return list(batch)

    def run(self, shutdown: threading.Event) -> None:
        """Watch the paths and rebuild on changes until ``shutdown`` is set."""
        events: queue.Queue = queue.Queue()
        observer = Observer()
        handler = _Forwarder(events)
        for path in self.paths:
            observer.schedule(handler, os.fspath(path), recursive=True)
        try:
            observer.start()
        except OSError as err:
            raise OSError(f"failed to watch {self.paths} for file system changes") from err

        try:
            while not shutdown.is_set():
                try:
                    first = events.get(timeout=_POLL_SECONDS)
                except queue.Empty:
                    continue
                for path in self._collect(events, first, shutdown):
                    if shutdown.is_set():
                        break
                    self.handle_event(path)
        finally:
            observer.stop()
            observer.join()
        logger.debug("watcher system has shut down")