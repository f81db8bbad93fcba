"""Logging setup for the querygate service."""

import logging


def configure_logging(level: str = "INFO", debug: bool = False) -> None:
    """Attach a console handler to the ``querygate`` logger.

    Args:
        level: Logging level name (DEBUG, INFO, WARNING, ERROR).
        debug: Force DEBUG regardless of ``level``.
    """
    root = logging.getLogger("querygate")
    if root.handlers:
        return
    root.setLevel(logging.DEBUG if debug else getattr(logging, level.upper(), logging.INFO))

    handler = logging.StreamHandler()
    handler.setFormatter(
        logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")
    )
    root.addHandler(handler)
    root.propagate = False
