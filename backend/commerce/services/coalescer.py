# Overview: Debounced, optimistic coalescing of rapid admin edits into minimal authoritative writes.

"""
Mutation Coalescer

Admin screens fire edits faster than the network confirms them ("+1 stock"
clicked five times, a status dropdown changed twice in a second). Sending
each edit as its own request wastes writes and, worse, lets a slow early
request land after a fast later one.

Per key (entity, entity_id, field) the coalescer keeps:
- local_value:  optimistic value, updated immediately on every edit
- server_value: last value the server confirmed (known-good)
- pending:      local_value still has to be written

Every edit updates local_value under the lock and restarts the debounce
timer for that key. When the timer elapses, only the value present at that
moment is written; intermediate values are never sent. Writes for one key
are serialized, so they cannot be applied out of order.

Delta bursts: with a delta_writer, a burst made only of add() edits is sent
as its net change (delta_writer(key, net)) instead of an absolute value, so
the server applies it to its own current count. Writes from other clients
that land during the window (a checkout decrement) are kept, not
overwritten. A set() in the burst makes it absolute again. A burst whose
net change is zero sends nothing.

On success the written value becomes server_value and the pending marker is
cleared (unless a newer edit arrived meanwhile; its own timer is running).
On failure local_value rolls back to server_value, any queued newer edit for
that key is dropped, and the error is reported through on_error and kept in
last_error(). A rejected value is never left showing.

Absolute writes are last-write-wins. The checkout race itself is settled
by the conditional decrement in order_service.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from typing import Any, Callable, Hashable


logger = logging.getLogger(__name__)

DEFAULT_DEBOUNCE_SECONDS = 0.3

CoalesceKey = tuple[str, Hashable, str]
Writer = Callable[[CoalesceKey, Any], Any]
DeltaWriter = Callable[[CoalesceKey, int], Any]


@dataclass
class _Entry:
    server_value: Any
    local_value: Any
    pending: bool = False
    generation: int = 0
    timer: threading.Timer | None = None
    in_flight: bool = False
    # Net change of local_value since the last write was taken, and whether
    # the unsent burst contains a set().
    delta: int = 0
    absolute: bool = False
    minimum: int | None = None
    last_error: Exception | None = None
    write_lock: threading.Lock = field(default_factory=threading.Lock)


class MutationCoalescer:
    """
    Debounce edits per key and write only the final value.

    writer(key, value) performs the authoritative absolute write and
    delta_writer(key, net), when given, the relative one. Both return the
    server-confirmed value (None means "as sent" for writer). They run on a
    timer thread, or on the caller's thread for flush().
    """

    def __init__(
        self,
        writer: Writer,
        *,
        delta_writer: DeltaWriter | None = None,
        delay: float = DEFAULT_DEBOUNCE_SECONDS,
        on_error: Callable[[CoalesceKey, Exception, Any], None] | None = None,
        on_success: Callable[[CoalesceKey, Any], None] | None = None,
    ):
        if delay < 0:
            raise ValueError("delay must be >= 0")
        self._writer = writer
        self._delta_writer = delta_writer
        self._delay = delay
        self._on_error = on_error
        self._on_success = on_success
        self._entries: dict[CoalesceKey, _Entry] = {}
        self._lock = threading.Lock()
        self._idle = threading.Condition(self._lock)
        self._closed = False

    @property
    def delay(self) -> float:
        return self._delay

    # -- reads ---------------------------------------------------------------

    def seed(self, key: CoalesceKey, server_value: Any) -> None:
        """Record a freshly read server value. Ignored while an edit is pending."""
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                self._entries[key] = _Entry(server_value=server_value, local_value=server_value)
            elif not entry.pending and not entry.in_flight:
                entry.server_value = server_value
                entry.local_value = server_value

    def read(self, key: CoalesceKey) -> Any:
        """Optimistic value, including edits not yet written."""
        with self._lock:
            return self._require(key).local_value

    def server_value(self, key: CoalesceKey) -> Any:
        with self._lock:
            return self._require(key).server_value

    def is_pending(self, key: CoalesceKey) -> bool:
        with self._lock:
            entry = self._entries.get(key)
            return bool(entry and (entry.pending or entry.in_flight))

    def last_error(self, key: CoalesceKey) -> Exception | None:
        with self._lock:
            entry = self._entries.get(key)
            return entry.last_error if entry else None

    # -- edits ---------------------------------------------------------------

    def set(self, key: CoalesceKey, value: Any, *, base: Any = None) -> Any:
        """Absolute edit. base seeds an unknown key with its server value."""
        with self._lock:
            entry = self._entry_for_edit(key, base)
            entry.local_value = value
            entry.absolute = True
            entry.delta = 0
            self._touch(key, entry)
            return value

    def add(self, key: CoalesceKey, delta: int, *, base: Any = None, minimum: int | None = None) -> Any:
        """
        Delta edit applied to the optimistic value, optionally clamped.

        The clamped change (not the requested one) is what accumulates, so
        the net sent matches what the optimistic value showed.
        """
        with self._lock:
            entry = self._entry_for_edit(key, base)
            value = entry.local_value + delta
            if minimum is not None and value < minimum:
                value = minimum
            entry.delta += value - entry.local_value
            entry.minimum = minimum
            entry.local_value = value
            self._touch(key, entry)
            return value

    # -- lifecycle -----------------------------------------------------------

    def flush(self, key: CoalesceKey | None = None) -> None:
        """Write pending keys now on the calling thread instead of waiting."""
        with self._lock:
            keys = [key] if key is not None else list(self._entries)
            work = []
            for k in keys:
                entry = self._entries.get(k)
                if entry is None or not entry.pending:
                    continue
                if entry.timer is not None:
                    entry.timer.cancel()
                    entry.timer = None
                work.append((k, entry.generation))
        for k, generation in work:
            self._fire(k, generation)

    def wait_idle(self, timeout: float | None = None) -> bool:
        """Block until nothing is pending or in flight. False on timeout."""
        with self._idle:
            return self._idle.wait_for(self._is_idle, timeout=timeout)

    def close(self) -> None:
        """Flush everything and refuse further edits."""
        with self._lock:
            self._closed = True
        self.flush()

    # -- internals -----------------------------------------------------------

    def _require(self, key: CoalesceKey) -> _Entry:
        entry = self._entries.get(key)
        if entry is None:
            raise KeyError(f"Unknown key {key!r}; seed it with a server value first")
        return entry

    def _entry_for_edit(self, key: CoalesceKey, base: Any) -> _Entry:
        if self._closed:
            raise RuntimeError("Coalescer is closed")
        entry = self._entries.get(key)
        if entry is None:
            if base is None:
                raise KeyError(f"Unknown key {key!r}; pass base or seed it first")
            entry = _Entry(server_value=base, local_value=base)
            self._entries[key] = entry
        return entry

    def _touch(self, key: CoalesceKey, entry: _Entry) -> None:
        entry.pending = True
        entry.generation += 1
        entry.last_error = None
        if entry.timer is not None:
            entry.timer.cancel()
        timer = threading.Timer(self._delay, self._fire, args=(key, entry.generation))
        timer.daemon = True
        entry.timer = timer
        timer.start()

    def _is_idle(self) -> bool:
        return all(not e.pending and not e.in_flight for e in self._entries.values())

    def _fire(self, key: CoalesceKey, generation: int) -> None:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return
            write_lock = entry.write_lock

        with write_lock:
            with self._lock:
                if not entry.pending or entry.generation != generation:
                    # Superseded; the newer edit's timer owns the write.
                    return
                entry.timer = None
                as_delta = self._delta_writer is not None and not entry.absolute
                value = entry.delta if as_delta else entry.local_value
                entry.delta = 0
                entry.absolute = False
                if as_delta and value == 0:
                    entry.pending = False
                    entry.local_value = entry.server_value
                    self._idle.notify_all()
                    return
                entry.in_flight = True

            try:
                if as_delta:
                    confirmed = self._delta_writer(key, value)
                else:
                    confirmed = self._writer(key, value)
            except Exception as exc:
                self._record_failure(key, entry, exc)
                return

            if confirmed is None:
                confirmed = entry.server_value + value if as_delta else value
            with self._idle:
                entry.in_flight = False
                entry.server_value = confirmed
                if entry.generation == generation:
                    entry.pending = False
                    entry.local_value = confirmed
                elif not entry.absolute:
                    # Newer deltas are still queued; show them on top of the
                    # count the server just confirmed.
                    rebased = confirmed + entry.delta
                    if entry.minimum is not None and rebased < entry.minimum:
                        rebased = entry.minimum
                    entry.local_value = rebased
                self._idle.notify_all()

        if self._on_success is not None:
            self._on_success(key, confirmed)

    def _record_failure(self, key: CoalesceKey, entry: _Entry, exc: Exception) -> None:
        with self._idle:
            if entry.timer is not None:
                entry.timer.cancel()
                entry.timer = None
            entry.in_flight = False
            entry.pending = False
            entry.generation += 1
            entry.delta = 0
            entry.absolute = False
            entry.local_value = entry.server_value
            entry.last_error = exc
            rolled_back_to = entry.server_value
            self._idle.notify_all()

        logger.warning("Coalesced write for %r failed; rolled back to %r: %s", key, rolled_back_to, exc)
        if self._on_error is not None:
            self._on_error(key, exc, rolled_back_to)
