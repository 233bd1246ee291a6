# watchfs/watch/debounce.py

"""
Quiescence debouncing of file system changes

A burst of changes is collected into a pending set.  Every accepted change
pushes the deadline out to ``now + delay``; once the deadline passes with
no further change, the whole set is handed to the dispatch callable on the
timer thread.
"""
import logging
import threading
import time
from functools import partial
from typing import Any, Callable, Dict, List, Optional, Set, Tuple

logger = logging.getLogger(__name__)

Clock = Callable[[], float]

# Longest single wait of the timer thread
MAX_WAIT_SECONDS = 3600.0


class DeadlineTimer:
    """
    Single-slot timer backed by one long-lived thread

    Only one deadline is armed at a time; scheduling a new one replaces the
    previous one.  Callbacks run on the timer thread, one after the other,
    so a callback that blocks delays any later firing instead of running
    beside it.
    """

    def __init__(self, clock: Clock = time.monotonic, name: str = "watchfs-timer"):
        """
        Initialize deadline timer

        Args:
            clock: Monotonic clock used for deadlines
            name: Name of the firing thread
        """
        self.clock = clock
        self.name = name

        self._condition = threading.Condition()
        self._slot: Optional[Tuple[int, float, Callable[[], Any]]] = None
        self._generation = 0
        self._closed = False
        self._thread: Optional[threading.Thread] = None

        self.stats = {
            'scheduled': 0,
            'cancelled': 0,
            'fired': 0,
        }

    def schedule(self, deadline: float, callback: Callable[[], Any]) -> Optional[int]:
        """
        Arm the timer, replacing whatever was armed before

        Args:
            deadline: Absolute time on ``clock`` at which to fire
            callback: Called on the timer thread

        Returns:
            Generation of the armed firing, or None if the timer is closed
        """
        with self._condition:
            if self._closed:
                logger.debug("Timer closed, not scheduling")
                return None

            if self._slot is not None:
                self.stats['cancelled'] += 1
            self._generation += 1
            self._slot = (self._generation, deadline, callback)
            self.stats['scheduled'] += 1

            if self._thread is None:
                self._thread = threading.Thread(target=self._run, name=self.name, daemon=True)
                self._thread.start()

            self._condition.notify()
            return self._generation

    def cancel(self, generation: int) -> bool:
        """
        Disarm the timer if it still holds the given generation

        Returns:
            True if a pending firing was removed
        """
        with self._condition:
            if self._slot is None or self._slot[0] != generation:
                return False
            self._slot = None
            self.stats['cancelled'] += 1
            self._condition.notify()
            return True

    def close(self, timeout: Optional[float] = None):
        """
        Stop the timer thread; nothing fires after this returns

        A callback already running is not interrupted.  When called from
        the timer thread itself the thread exits after the callback returns.
        """
        with self._condition:
            self._closed = True
            self._slot = None
            self._condition.notify()
            thread = self._thread

        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout)

    @property
    def closed(self) -> bool:
        return self._closed

    def _run(self):
        while True:
            with self._condition:
                while not self._closed:
                    if self._slot is None:
                        self._condition.wait()
                        continue
                    remaining = self._slot[1] - self.clock()
                    if remaining <= 0:
                        break
                    # Far deadlines are re-checked in slices; huge waits overflow
                    self._condition.wait(min(remaining, MAX_WAIT_SECONDS))

                if self._closed:
                    return

                generation, _, callback = self._slot
                self._slot = None
                self.stats['fired'] += 1

            logger.debug(f"Timer tick (generation {generation})")
            try:
                callback()
            except Exception:
                logger.exception(f"Timer callback for generation {generation} failed")


class DebounceScheduler:
    """
    Owns the pending change set and the single armed deadline
    """

    def __init__(self, delay: float,
                 dispatch: Callable[[List[str]], Any],
                 timer: Optional[DeadlineTimer] = None,
                 clock: Clock = time.monotonic):
        """
        Initialize debounce scheduler

        Args:
            delay: Seconds without accepted changes before dispatching
            dispatch: Receives the sorted snapshot of changed paths
            timer: Timer to arm; a new DeadlineTimer by default
            clock: Clock used when ``touch`` is not given a time
        """
        if delay <= 0:
            raise ValueError(f"delay must be > 0, got {delay}")

        self.delay = delay
        self.dispatch = dispatch
        self.timer = timer or DeadlineTimer(clock=clock)
        self.clock = clock

        self._lock = threading.Lock()
        self._paths: Set[str] = set()
        self._generation = 0
        self._handle: Optional[int] = None
        self._closed = False

        self.stats = {
            'touches': 0,
            'fires': 0,
            'stale_fires': 0,
            'empty_fires': 0,
            'dispatches': 0,
        }

    def touch(self, path: str, now: Optional[float] = None):
        """
        Record a change and restart the countdown

        Args:
            path: Changed path
            now: Arrival time on the scheduler clock (defaults to now)
        """
        if now is None:
            now = self.clock()
        deadline = now + self.delay

        with self._lock:
            if self._closed:
                logger.debug(f"Scheduler closed, ignoring change to {path}")
                return

            self._paths.add(path)
            self._generation += 1
            self.stats['touches'] += 1

            previous = self._handle
            if previous is not None:
                logger.debug(f"Cancel timer generation {previous}")
                self.timer.cancel(previous)

            self._handle = self.timer.schedule(deadline, partial(self.fire, self._generation))
            logger.debug(f"Touch {path}; {len(self._paths)} pending, deadline in {self.delay}s")

    def fire(self, generation: Optional[int] = None):
        """
        Publish the pending set if this firing is still current

        Args:
            generation: Generation the firing was armed for; None fires
                unconditionally
        """
        with self._lock:
            if generation is not None:
                if generation != self._generation:
                    self.stats['stale_fires'] += 1
                    logger.debug(f"Ignoring superseded firing {generation} (current {self._generation})")
                    return
                self._handle = None

            snapshot = self._paths
            self._paths = set()
            self.stats['fires'] += 1

            if not snapshot:
                self.stats['empty_fires'] += 1
            else:
                self.stats['dispatches'] += 1

        if not snapshot:
            logger.debug("No changed paths remain in set - already published?")
            return

        paths = sorted(snapshot)
        logger.debug(f"Emit {len(paths)} changed paths: {paths}")
        self.dispatch(paths)

    def pending(self) -> Set[str]:
        """Copy of the paths waiting for the next firing"""
        with self._lock:
            return set(self._paths)

    @property
    def is_pending(self) -> bool:
        with self._lock:
            return bool(self._paths)

    def close(self, timeout: Optional[float] = None):
        """
        Stop accepting changes and disarm the timer

        Args:
            timeout: How long to wait for a dispatch already running;
                None waits for it, 0 returns at once
        """
        with self._lock:
            self._closed = True
            self._handle = None
        self.timer.close(timeout)

    def get_stats(self) -> Dict[str, Any]:
        """Get scheduler statistics"""
        with self._lock:
            return {
                **self.stats,
                'pending_paths': len(self._paths),
                'delay': self.delay,
            }
