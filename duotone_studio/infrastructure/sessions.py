"""Render sessions reconciling rapid orientation toggles.

A session holds one decoded source image. Every request that could change the
rendered output (a new upload, a toggle of the orientation) issues a new
generation tag. Renders run to completion and are published only when their
tag is still the newest one, so a slow render started before a toggle can
never overwrite the result of the toggle. Toggle bursts are coalesced by a
debouncer so only the last state in a burst is rendered.
"""

from __future__ import annotations

import logging
import threading
import time
import uuid
from dataclasses import dataclass
from typing import Callable, Dict, Optional, Tuple

from PIL import Image

from ..config import SETTINGS
from ..errors import DuotoneError, InvalidInputError, SessionNotFoundError, StaleResultError
from ..processing.pipeline import duotone_image, encode_png

log = logging.getLogger("duotone-studio")

Renderer = Callable[[Image.Image, bool], Tuple[bytes, Tuple[int, int]]]

MAX_SESSIONS = 16


def render_png(source: Image.Image, reverse: bool) -> Tuple[bytes, Tuple[int, int]]:
    result = duotone_image(source, reverse=reverse)
    return encode_png(result), result.size


class GenerationCounter:
    def __init__(self) -> None:
        self._value = 0
        self._lock = threading.Lock()

    @property
    def current(self) -> int:
        return self._value

    def issue(self) -> int:
        with self._lock:
            self._value += 1
            return self._value

    def is_current(self, tag: int) -> bool:
        return tag == self._value


class Debouncer:
    """Run ``callback`` once after ``quiet_period`` seconds without triggers."""

    def __init__(self, quiet_period: float, callback: Callable[..., None]) -> None:
        self.quiet_period = quiet_period
        self._callback = callback
        self._lock = threading.Lock()
        self._timer: threading.Timer | None = None
        self._pending: tuple | None = None

    @property
    def pending(self) -> bool:
        return self._pending is not None

    def trigger(self, *args) -> None:
        if self.quiet_period <= 0:
            self.cancel()
            self._callback(*args)
            return

        with self._lock:
            if self._timer is not None:
                self._timer.cancel()
            self._pending = args
            self._timer = threading.Timer(self.quiet_period, self._fire)
            self._timer.daemon = True
            self._timer.start()

    def _take(self) -> tuple | None:
        with self._lock:
            if self._timer is not None:
                self._timer.cancel()
                self._timer = None
            args, self._pending = self._pending, None
            return args

    def _fire(self) -> None:
        args = self._take()
        if args is not None:
            self._callback(*args)

    def flush(self) -> bool:
        """Run a pending call now; return whether there was one."""
        args = self._take()
        if args is None:
            return False
        self._callback(*args)
        return True

    def cancel(self) -> None:
        self._take()


@dataclass(frozen=True)
class RenderResult:
    generation: int
    reverse: bool
    png: bytes
    width: int
    height: int


class RenderSession:
    def __init__(
        self,
        session_id: str | None = None,
        renderer: Renderer | None = None,
        quiet_period: float | None = None,
    ) -> None:
        self.id = session_id or uuid.uuid4().hex
        self.filename: str | None = None
        self.reverse = False
        self.touched = time.time()
        self._renderer = renderer or render_png
        self._generations = GenerationCounter()
        self._lock = threading.Lock()
        self._source: Image.Image | None = None
        self._result: RenderResult | None = None
        self._error: DuotoneError | None = None
        quiet = SETTINGS.debounce_seconds if quiet_period is None else quiet_period
        self._debouncer = Debouncer(quiet, self._render_in_background)

    @property
    def generation(self) -> int:
        return self._generations.current

    @property
    def result(self) -> Optional[RenderResult]:
        return self._result

    @property
    def error(self) -> Optional[DuotoneError]:
        return self._error

    @property
    def pending(self) -> bool:
        result = self._result
        return self._debouncer.pending or result is None or result.generation != self.generation

    def _release(self) -> None:
        self._result = None
        self._error = None

    def load(
        self,
        source: Image.Image,
        filename: str | None = None,
        reverse: bool | None = None,
    ) -> int:
        """Replace the source image; earlier renders become stale."""
        self._debouncer.cancel()
        with self._lock:
            self._source = source
            self.filename = filename
            if reverse is not None:
                self.reverse = bool(reverse)
            self._release()
            self.touched = time.time()
            return self._generations.issue()

    def set_reverse(self, reverse: bool) -> int:
        """Record a new orientation and schedule a debounced re-render."""
        with self._lock:
            if self._source is None:
                raise InvalidInputError("session has no source image")
            self.reverse = bool(reverse)
            self.touched = time.time()
            generation = self._generations.issue()
        # The debounced render snapshots the session state when it fires.
        self._debouncer.trigger()
        return generation

    def render_now(self) -> RenderResult:
        """Render the current state synchronously and return the result."""
        self._debouncer.cancel()
        with self._lock:
            if self._source is None:
                raise InvalidInputError("session has no source image")
            generation = self._generations.issue()
            source = self._source
            reverse = self.reverse
        result = self._render(generation, source, reverse)
        if result is None:
            raise StaleResultError(f"render {generation} of session {self.id} was superseded")
        return result

    def flush(self) -> bool:
        return self._debouncer.flush()

    def _render(self, generation: int, source: Image.Image, reverse: bool) -> Optional[RenderResult]:
        started = time.perf_counter()
        png, (width, height) = self._renderer(source, reverse)
        result = RenderResult(generation, reverse, png, width, height)

        with self._lock:
            if not self._generations.is_current(generation):
                log.warning(
                    "session %s: discarding stale render %d (current %d)",
                    self.id,
                    generation,
                    self._generations.current,
                )
                return None
            self._result = result
            self._error = None

        log.info(
            "session %s: published render %d (%dx%d, reverse=%s) in %.1f ms",
            self.id,
            generation,
            width,
            height,
            reverse,
            (time.perf_counter() - started) * 1000.0,
        )
        return result

    def _render_in_background(self) -> None:
        with self._lock:
            if self._source is None:
                return
            generation = self._generations.current
            source = self._source
            reverse = self.reverse

        try:
            self._render(generation, source, reverse)
        except DuotoneError as exc:
            log.warning("session %s: render %d failed: %s", self.id, generation, exc.detail)
            self._record_error(generation, exc)
        except Exception as exc:
            log.exception("session %s: render %d crashed", self.id, generation)
            self._record_error(generation, DuotoneError(f"render {generation} crashed: {exc}"))

    def _record_error(self, generation: int, exc: DuotoneError) -> None:
        with self._lock:
            if self._generations.is_current(generation):
                self._error = exc

    def close(self) -> None:
        self._debouncer.cancel()
        with self._lock:
            self._generations.issue()
            self._release()
            self._source = None


class SessionStore:
    """Bounded set of live sessions with an idle timeout."""

    def __init__(
        self,
        ttl: float | None = None,
        max_sessions: int = MAX_SESSIONS,
        factory: Callable[[], RenderSession] | None = None,
    ) -> None:
        self._sessions: Dict[str, RenderSession] = {}
        self._ttl = ttl
        self._max_sessions = max_sessions
        self._factory = factory or RenderSession
        self._lock = threading.Lock()

    @property
    def ttl(self) -> float:
        return SETTINGS.session_ttl if self._ttl is None else self._ttl

    def _expire(self) -> list:
        now = time.time()
        expired = [sid for sid, s in self._sessions.items() if now - s.touched > self.ttl]
        return [self._sessions.pop(sid) for sid in expired]

    def create(self) -> RenderSession:
        session = self._factory()
        with self._lock:
            dropped = self._expire()
            while len(self._sessions) >= self._max_sessions:
                oldest = min(self._sessions.values(), key=lambda s: s.touched)
                dropped.append(self._sessions.pop(oldest.id))
            self._sessions[session.id] = session
        for stale in dropped:
            log.info("session %s: released", stale.id)
            stale.close()
        return session

    def get(self, session_id: str) -> RenderSession:
        with self._lock:
            dropped = self._expire()
            session = self._sessions.get(session_id)
        for stale in dropped:
            stale.close()
        if session is None:
            raise SessionNotFoundError(f"unknown session {session_id!r}")
        session.touched = time.time()
        return session

    def remove(self, session_id: str) -> None:
        with self._lock:
            session = self._sessions.pop(session_id, None)
        if session is None:
            raise SessionNotFoundError(f"unknown session {session_id!r}")
        session.close()

    def __len__(self) -> int:
        return len(self._sessions)

    def __contains__(self, session_id: str) -> bool:
        return session_id in self._sessions


SESSIONS = SessionStore()
