"""Rich console logging for PocketAuth."""

import logging

from rich.console import Console
from rich.logging import RichHandler

_NOISY_LOGGERS = ("uvicorn.access", "httpx", "httpcore")


def setup_logging(level: str = "INFO") -> None:
    """Route the root logger through Rich. Safe to call more than once."""
    root = logging.getLogger()
    for handler in list(root.handlers):
        if isinstance(handler, RichHandler):
            root.removeHandler(handler)

    handler = RichHandler(
        console=Console(stderr=True),
        rich_tracebacks=True,
        show_path=False,
        markup=False,
    )
    handler.setFormatter(logging.Formatter("%(message)s", datefmt="[%X]"))
    root.addHandler(handler)
    root.setLevel(level.upper())

    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
