"""Logging setup for lineage engine consumers.

Two output modes are supported:

* plain text (default) -- ``"%(asctime)s %(levelname)s %(name)s: %(message)s"``
* single-line JSON via :class:`JSONFormatter`, enabled with
  ``LINEAGE_STRUCTURED_LOGGING=true``

Output schema per JSON line::

    {
        "timestamp": "2025-05-15T12:34:56.789012+00:00",
        "level": "WARNING",
        "logger": "lineage_engine.graph.expander",
        "message": "Upstream expansion of ... failed",
        "lineage": { ... },          // present when passed via extra={"lineage": ...}
        "exc_info": "Traceback ..."  // present only on exceptions
    }
"""

from __future__ import annotations

import json
import logging
import traceback
from datetime import UTC, datetime
from typing import Any

from lineage_engine.config import Settings

_TEXT_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


class JSONFormatter(logging.Formatter):
    """Format log records as single-line JSON."""

    def format(self, record: logging.LogRecord) -> str:
        """Render *record* as a single JSON line."""
        payload: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        lineage_context = getattr(record, "lineage", None)
        if lineage_context is not None:
            payload["lineage"] = lineage_context

        if record.exc_info and record.exc_info[0] is not None:
            payload["exc_info"] = "".join(traceback.format_exception(*record.exc_info))

        return json.dumps(payload, default=str, ensure_ascii=False)


def configure_logging(settings: Settings, *, root_logger: logging.Logger | None = None) -> logging.Handler:
    """Install a single stream handler on the ``lineage_engine`` logger.

    Existing handlers on the target logger are replaced so repeated calls
    (e.g. from tests or a long-lived CLI process) do not duplicate output.

    Returns
    -------
    logging.Handler
        The installed handler.
    """
    target = root_logger or logging.getLogger("lineage_engine")
    handler = logging.StreamHandler()
    if settings.structured_logging:
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(logging.Formatter(_TEXT_FORMAT))

    for existing in list(target.handlers):
        target.removeHandler(existing)
    target.addHandler(handler)
    target.setLevel(settings.log_level)
    return handler
