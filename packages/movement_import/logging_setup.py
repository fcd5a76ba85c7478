"""Logging for the ``movement_import`` package.

The CLI calls :func:`configure_logging` once; library modules only ever call
:func:`get_logger` (or :func:`import_logger` for lines tied to one import) and
never attach handlers. Until configuration runs, the package logger carries a
``NullHandler`` so embedding applications see nothing they did not ask for.

Environment
-----------
``MOVEMENT_IMPORT_LOG_LEVEL``
    Level name or number used when ``configure_logging`` gets no ``level``.
``MOVEMENT_IMPORT_LOG_FORMAT``
    Format string used when ``configure_logging`` gets no ``fmt``.
"""

from __future__ import annotations

import logging
import os
import sys
import uuid
from collections.abc import MutableMapping
from typing import IO, Any

PACKAGE_LOGGER = "movement_import"
LEVEL_ENV = "MOVEMENT_IMPORT_LOG_LEVEL"
FORMAT_ENV = "MOVEMENT_IMPORT_LOG_FORMAT"
DEFAULT_FORMAT = "%(asctime)s %(name)s %(levelname)s %(message)s"

_configured = False


def _coerce_level(value: int | str | None) -> int | None:
    if value is None or isinstance(value, int):
        return value
    text = value.strip().upper()
    if text.isdigit():
        return int(text)
    found = logging.getLevelName(text)
    return found if isinstance(found, int) else None


def resolve_level(level: int | str | None = None) -> int:
    """Explicit level, else ``MOVEMENT_IMPORT_LOG_LEVEL``, else ``INFO``.

    Unknown names fall through to the next source instead of raising.
    """

    for candidate in (level, os.getenv(LEVEL_ENV)):
        numeric = _coerce_level(candidate)
        if numeric is not None:
            return numeric
    return logging.INFO


def configure_logging(
    level: int | str | None = None,
    *,
    fmt: str | None = None,
    stream: IO[str] | None = None,
) -> logging.Logger:
    """Attach one ``StreamHandler`` to the package logger; later calls are no-ops.

    Parameters
    ----------
    level:
        ``int`` or level name; see :func:`resolve_level`.
    fmt:
        Format string; defaults to ``MOVEMENT_IMPORT_LOG_FORMAT`` and then to
        time, logger name, level and message.
    stream:
        Handler stream, ``sys.stderr`` by default so stdout stays free for
        command output.

    Returns
    -------
    logging.Logger
        The package logger.
    """

    global _configured
    pkg = logging.getLogger(PACKAGE_LOGGER)
    if _configured:
        return pkg

    pkg.handlers = [h for h in pkg.handlers if not isinstance(h, logging.NullHandler)]
    numeric = resolve_level(level)
    handler = logging.StreamHandler(stream or sys.stderr)
    handler.setFormatter(logging.Formatter(fmt or os.getenv(FORMAT_ENV) or DEFAULT_FORMAT))
    handler.setLevel(numeric)
    pkg.addHandler(handler)
    pkg.setLevel(numeric)
    # Package records are emitted here only, not again by the root logger.
    pkg.propagate = False

    _configured = True
    return pkg


def get_logger(name: str) -> logging.Logger:
    pkg = logging.getLogger(PACKAGE_LOGGER)
    if not _configured and not pkg.handlers:
        pkg.addHandler(logging.NullHandler())
    return logging.getLogger(name)


class ImportLogAdapter(logging.LoggerAdapter):
    """Prefix every message with the organization and file of one import."""

    def process(
        self, msg: Any, kwargs: MutableMapping[str, Any]
    ) -> tuple[Any, MutableMapping[str, Any]]:
        extra = self.extra or {}
        prefix = f"[org={extra.get('organization_id')} file={extra.get('file_name')}]"
        return f"{prefix} {msg}", kwargs


def import_logger(
    name: str, *, organization_id: uuid.UUID | str, file_name: str
) -> ImportLogAdapter:
    return ImportLogAdapter(
        get_logger(name), {"organization_id": str(organization_id), "file_name": file_name}
    )


__all__ = [
    "DEFAULT_FORMAT",
    "FORMAT_ENV",
    "ImportLogAdapter",
    "LEVEL_ENV",
    "PACKAGE_LOGGER",
    "configure_logging",
    "get_logger",
    "import_logger",
    "resolve_level",
]
