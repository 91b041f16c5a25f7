"""Structured log lines for the FIRMS pipeline.

Every line reads `[<event>] <message> | {json context}`, and the same context is attached to
the record as `ctx_<name>` attributes so handlers can filter on it (e.g. `ctx_source`).
"""

from __future__ import annotations

import json
import logging
from typing import Any, Mapping

NOISY_LOGGERS = ("httpx", "httpcore")


def _encode_context(context: Mapping[str, Any]) -> str:
    try:
        return json.dumps(context, default=str, sort_keys=True)
    except TypeError:
        safe_ctx = {k: str(v) for k, v in context.items()}
        return json.dumps(safe_ctx, sort_keys=True)


def log_event(
    logger: logging.Logger,
    event: str,
    message: str,
    *,
    level: str = "info",
    **fields: Any,
) -> None:
    """Log `message` under `event`; `None` fields are left out of the context.

    Example:
        log_event(LOGGER, "firms.upsert", "Chunk inserted", chunk_index=0, inserted=412)
        -> [firms.upsert] Chunk inserted | {"chunk_index": 0, "inserted": 412}
    """
    context = {k: v for k, v in fields.items() if v is not None}
    payload = f"[{event}] {message}"
    if context:
        payload = f"{payload} | {_encode_context(context)}"

    log_fn = getattr(logger, level, logger.info)
    # LogRecord reserves some attribute names; prefix the extras to stay clear of them.
    log_fn(payload, extra={"event": event, **{f"ctx_{k}": v for k, v in context.items()}})


def configure_logging(level: int = logging.INFO) -> None:
    """Configure root logging for entrypoints.

    httpx logs full request URLs, which embed the FIRMS map key.
    """
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
