"""Centralised logging configuration.

Call configure() once at startup (the API server does). All modules use
logging.getLogger(__name__) normally.
"""

import logging

_CONSOLE_FMT = "%(asctime)s  %(levelname)-7s  %(name)s - %(message)s"
_DATE_FMT = "%Y-%m-%d %H:%M:%S"

_NOISY = ("httpx", "httpcore", "PIL", "uvicorn.access")


def configure(level: str = "INFO") -> None:
    """Install a console handler on the root logger. Safe to call multiple times."""
    root = logging.getLogger()
    if root.handlers:
        return

    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter(_CONSOLE_FMT, datefmt=_DATE_FMT))
    root.addHandler(handler)
    root.setLevel(getattr(logging, level.upper(), logging.INFO))

    for name in _NOISY:
        logging.getLogger(name).setLevel(logging.WARNING)


def mask_secret(value: str | None, visible: int = 8) -> str:
    """Render a credential for log output without exposing it."""
    if not value:
        return "<unset>"
    return f"{value[:visible]}..." if len(value) > visible else "***"
