import logging
import threading
from typing import Callable, Dict, Hashable


logger = logging.getLogger(__name__)


class TaskScheduler:
    """One-shot delayed callbacks keyed by an arbitrary hashable key.

    - A key can be pending at most once; scheduling it again is refused
    - ``cancel`` drops a pending key; the sleeping worker notices and skips
    - Work runs as a Socket.IO background task so it fits whatever async
      mode the server was started with
    """

    def __init__(self, socketio):
        self._socketio = socketio
        self._pending: Dict[Hashable, object] = {}
        self._lock = threading.Lock()

    def schedule(self, key: Hashable, delay: float, callback: Callable[[], None]) -> bool:
        with self._lock:
            if key in self._pending:
                logger.info(f"[timer-skip] key={key} already scheduled")
                return False
            token = object()
            self._pending[key] = token
        logger.info(f"[timer-set] key={key} delay={delay}s")
        self._socketio.start_background_task(self._worker, key, token, delay, callback)
        return True

    def cancel(self, key: Hashable) -> bool:
        with self._lock:
            cancelled = self._pending.pop(key, None) is not None
        if cancelled:
            logger.info(f"[timer-cancel] key={key}")
        return cancelled

    def cancel_all(self) -> None:
        with self._lock:
            self._pending.clear()

    def is_pending(self, key: Hashable) -> bool:
        with self._lock:
            return key in self._pending

    def _worker(self, key, token, delay, callback) -> None:
        if delay > 0:
            self._socketio.sleep(delay)
        with self._lock:
            if self._pending.get(key) is not token:
                logger.info(f"[timer-abort] key={key} cancelled")
                return
            del self._pending[key]
        logger.info(f"[timer-fire] key={key}")
        try:
            callback()
        except Exception:
            logger.exception(f"[timer-error] key={key}")
