"""
Leading-edge debounce for expensive calls.
"""
import threading
import time
from typing import Any, Callable, Dict, Hashable, Tuple


class Debouncer:
    """
    Wrap a function so it runs at most once per window for the same arguments.

    The first call runs immediately; calls with the same arguments inside the
    following window return the last result without running the function.
    Calls with other arguments keep their own window. A call that raised does
    not start a window.
    """

    def __init__(
        self,
        func: Callable[..., Any],
        wait_seconds: float,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._func = func
        self.wait_seconds = wait_seconds
        self._clock = clock
        self._last_runs: Dict[Hashable, Tuple[float, Any]] = {}
        self._lock = threading.Lock()

    @staticmethod
    def _key(args: tuple, kwargs: dict) -> Hashable:
        return args, tuple(sorted(kwargs.items()))

    def __call__(self, *args, **kwargs) -> Any:
        key = self._key(args, kwargs)
        with self._lock:
            now = self._clock()
            last = self._last_runs.get(key)
            if last is not None and now - last[0] < self.wait_seconds:
                return last[1]
            result = self._func(*args, **kwargs)
            self._last_runs[key] = (now, result)
            return result

    def reset(self) -> None:
        """Forget every window so the next call goes through."""
        with self._lock:
            self._last_runs.clear()
