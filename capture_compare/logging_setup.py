import logging
import sys

LOG_FORMAT = '%(asctime)s %(levelname)s %(name)s %(message)s'


def setup_logging(level: str = 'INFO') -> None:
    root = logging.getLogger()
    resolved = logging.getLevelName(str(level).upper())
    if not isinstance(resolved, int):
        resolved = logging.INFO
    root.setLevel(resolved)

    # Safe to call repeatedly (tests, reloads): only one stderr handler is installed.
    for handler in root.handlers:
        if getattr(handler, '_capture_compare', False):
            return
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    handler._capture_compare = True  # type: ignore[attr-defined]
    root.addHandler(handler)
