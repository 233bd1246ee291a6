# watchfs/watch/monitor.py

"""
Main watch loop for watchfs
"""
import logging
import threading
import time
from queue import Empty, Queue
from typing import Any, Callable, Dict, List, Optional

from watchdog.observers import Observer
from watchdog.observers.api import BaseObserver
from watchdog.observers.polling import PollingObserver

from ..errors import ExitRequested, RelativizeError, WatchStartError
from ..execution.dispatcher import CommandDispatcher
from ..utils.config import WatchConfig
from .debounce import Clock, DeadlineTimer, DebounceScheduler
from .events import ChangeEvent, WatchError
from .handlers import ChangeEventHandler, QueueItem
from .patterns import PathFilter

logger = logging.getLogger(__name__)

# Process exit codes raised by the watch loop itself
EXIT_FATAL = 1
EXIT_WATCH_ERROR = 10
EXIT_CHANNEL_CLOSED = 11

# Delay between attempts to restart a dead observer, doubling up to the maximum
RESTART_BACKOFF_INITIAL = 1.0
RESTART_BACKOFF_MAX = 60.0

_STOP = object()


class WatchLoop:
    """
    Feeds filtered file system changes to the debounce scheduler

    The observer threads push normalized changes onto a queue; one
    dedicated thread drains it.  Commands run on the scheduler's timer
    thread.  When the exit policy asks for termination the loop shuts the
    timer down so nothing else can run, records the exit code and wakes
    whoever is blocked in ``wait``.
    """

    def __init__(self, config: WatchConfig,
                 dispatcher: Optional[CommandDispatcher] = None,
                 timer: Optional[DeadlineTimer] = None,
                 observer_factory: Optional[Callable[[], BaseObserver]] = None,
                 clock: Clock = time.monotonic,
                 liveness_interval: float = 0.5):
        """
        Initialize watch loop

        Args:
            config: Finalized configuration
            dispatcher: Command dispatcher; built from config by default
            timer: Timer for the scheduler; a new DeadlineTimer by default
            observer_factory: Creates the watchdog observer
            clock: Monotonic clock stamping accepted changes
            liveness_interval: How often the loop checks the observer is alive
        """
        self.config = config
        self.clock = clock
        self.liveness_interval = liveness_interval

        self.path_filter = PathFilter(config.filter, config.ignore)
        self.dispatcher = dispatcher or CommandDispatcher(config)
        self.scheduler = DebounceScheduler(
            config.delay_seconds,
            self._dispatch,
            timer=timer or DeadlineTimer(clock=clock),
            clock=clock,
        )

        self.queue: Queue = Queue()
        self.handler = ChangeEventHandler(config.path, self.queue)
        self.observer_factory = observer_factory or self._default_observer_factory
        self.observer: Optional[BaseObserver] = None

        self._lock = threading.Lock()
        self._thread: Optional[threading.Thread] = None
        self._finished = threading.Event()
        self.exit_code: Optional[int] = None
        self.is_running = False
        self._restart_backoff = RESTART_BACKOFF_INITIAL
        self._next_restart = None

        self.stats = {
            'changes_received': 0,
            'changes_accepted': 0,
            'changes_rejected': 0,
            'watch_errors': 0,
            'observer_restarts': 0,
        }

    def _default_observer_factory(self) -> BaseObserver:
        if self.config.use_polling:
            logger.debug(f"Using polling observer (interval: {self.config.poll_interval}s)")
            return PollingObserver(timeout=self.config.poll_interval)
        return Observer()

    def start(self):
        """
        Start the observer and the loop thread

        Raises:
            WatchStartError: If the root cannot be watched
        """
        if self.is_running:
            logger.warning(f"Already watching {self.config.path}")
            return

        logger.info(f"Enter watch on {self.config.path} (recursive: {self.config.recursive})")
        self._start_observer()

        self.is_running = True
        self._thread = threading.Thread(target=self._run, name="watchfs-watch-loop", daemon=True)
        self._thread.start()

    def _start_observer(self):
        observer = self.observer_factory()
        try:
            observer.schedule(self.handler, self.config.path, recursive=self.config.recursive)
            observer.start()
        except OSError as e:
            raise WatchStartError(
                f"Could not create a watcher for {self.config.path} - no notify support in os? "
                f"Folder deleted since startup? ({e})"
            ) from e
        self.observer = observer

    def stop(self):
        """
        Stop watching

        A command already running is neither interrupted nor waited for.
        """
        self._finished.set()
        self.queue.put(_STOP)
        self.scheduler.close(timeout=0)

        observer = self.observer
        if observer is not None:
            observer.stop()
            if observer.is_alive():
                observer.join(timeout=10)
            self.observer = None

        thread = self._thread
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout=10)
        self._thread = None
        self.is_running = False
        logger.debug("Watch loop stopped")

    def wait(self, timeout: Optional[float] = None) -> Optional[int]:
        """
        Block until termination is requested

        Returns:
            The requested exit code, or None on timeout
        """
        self._finished.wait(timeout)
        return self.exit_code

    def run(self) -> int:
        """Watch until termination is requested; returns the exit code"""
        self.start()
        try:
            # Short waits keep the main thread responsive to Ctrl+C
            while not self._finished.wait(timeout=1.0):
                pass
        finally:
            self.stop()
        return self.exit_code if self.exit_code is not None else 0

    def request_exit(self, code: int, reason: Optional[str] = None):
        """
        Ask the process to terminate with the given code

        The first request wins.  After this returns no further command can
        start, even if changes are still pending.
        """
        with self._lock:
            if self.exit_code is not None:
                return
            self.exit_code = code

        if code == 0:
            logger.info(reason or "Exiting")
        else:
            logger.error(reason or f"Exiting with code {code}")

        self._finished.set()
        self.queue.put(_STOP)
        # A command still running on the timer thread is not waited for
        self.scheduler.close(timeout=0)

    def _run(self):
        loop_ix = 0
        while not self._finished.is_set():
            try:
                item = self.queue.get(timeout=self.liveness_interval)
            except Empty:
                self._check_observer()
                continue

            if item is _STOP:
                break

            loop_ix += 1
            logger.debug(f"Loop {loop_ix}: {item}")
            self.handle(item)

    def handle(self, item: QueueItem, now: Optional[float] = None):
        """
        Process one item delivered by the watch primitive

        Args:
            item: A change or an error
            now: Arrival time on the loop clock (defaults to now)
        """
        if isinstance(item, WatchError):
            self._handle_error(item)
        else:
            self._handle_change(item, now)

    def _handle_change(self, event: ChangeEvent, now: Optional[float] = None):
        self.stats['changes_received'] += 1

        if not self.path_filter.accepts(event.path):
            self.stats['changes_rejected'] += 1
            logger.debug(f"Filter regex REJECTS path {event.path}")
            return

        self.stats['changes_accepted'] += 1
        logger.debug(f"Change accepted: {event}")
        self.scheduler.touch(event.path, self.clock() if now is None else now)

    def _handle_error(self, error: WatchError):
        self.stats['watch_errors'] += 1
        logger.error(f"Error in watcher: {error}")
        if self.config.exit_on_error:
            self.request_exit(EXIT_WATCH_ERROR, "exit-on-error is true - exiting")

    def _check_observer(self):
        observer = self.observer
        if observer is None or observer.is_alive() or self._finished.is_set():
            return

        now = self.clock()
        if self._next_restart is not None and now < self._next_restart:
            return

        logger.error(f"Watch channel for {self.config.path} closed")
        if self.config.exit_on_error:
            self.request_exit(EXIT_CHANNEL_CLOSED, "exit-on-error is true - exiting")
            return

        self.stats['observer_restarts'] += 1
        try:
            self._start_observer()
        except WatchStartError as e:
            self._next_restart = now + self._restart_backoff
            logger.error(f"Failed to restart watcher, retrying in {self._restart_backoff:.0f}s: {e}")
            self._restart_backoff = min(self._restart_backoff * 2, RESTART_BACKOFF_MAX)
            return

        self._next_restart = None
        self._restart_backoff = RESTART_BACKOFF_INITIAL
        logger.info(f"Restarted watcher for {self.config.path}")

    def _dispatch(self, paths: List[str]):
        # Runs on the timer thread
        try:
            self.dispatcher.run(paths)
        except ExitRequested as e:
            self.request_exit(e.code, e.reason)
        except RelativizeError as e:
            logger.critical(f"{e} - the watcher reported a path outside its root")
            self.request_exit(EXIT_FATAL, str(e))

    def get_stats(self) -> Dict[str, Any]:
        """Get watch loop statistics"""
        return {
            **self.stats,
            'is_running': self.is_running,
            'handler': self.handler.get_stats(),
            'scheduler': self.scheduler.get_stats(),
            'dispatcher': dict(self.dispatcher.stats),
        }
