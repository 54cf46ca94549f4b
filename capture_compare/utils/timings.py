import time
from contextlib import contextmanager


@contextmanager
def measure_ms():
    """Yields a callable returning whole milliseconds elapsed on the monotonic clock."""
    start = time.perf_counter()
    yield lambda: int((time.perf_counter() - start) * 1000)
