import logging
from typing import Callable, List, Optional, Tuple

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[float, Optional[str]], None]

ERROR_PROGRESS = -1.0


class ProgressTracker:
    """
    Broadcasts ``(percent, message)`` updates for long operations.

    A new subscriber is immediately sent the current value, so it sees where
    an in-flight model load is rather than waiting for the next update.
    """

    def __init__(self) -> None:
        self._callbacks: List[ProgressCallback] = []
        self._progress: float = 0.0
        self._message: Optional[str] = None

    def subscribe(self, callback: ProgressCallback) -> Callable[[], None]:
        self._callbacks.append(callback)
        callback(self._progress, self._message)

        def unsubscribe() -> None:
            if callback in self._callbacks:
                self._callbacks.remove(callback)

        return unsubscribe

    def update(self, progress: float, message: Optional[str] = None) -> None:
        self._progress = progress
        self._message = message
        for cb in list(self._callbacks):
            try:
                cb(progress, message)
            except Exception:
                logger.exception("Progress subscriber failed")

    def complete(self, message: str = "Complete") -> None:
        self.update(100.0, message)

    def error(self, message: str) -> None:
        self.update(ERROR_PROGRESS, f"Error: {message}")

    def reset(self) -> None:
        self._progress = 0.0
        self._message = None

    def get_progress(self) -> Tuple[float, Optional[str]]:
        return self._progress, self._message

    def has_subscribers(self) -> bool:
        return bool(self._callbacks)
