# app/core/request_id.py
from __future__ import annotations

import contextvars
import uuid
from contextlib import contextmanager
from typing import Iterator, Optional

_request_id_ctx: contextvars.ContextVar[Optional[str]] = contextvars.ContextVar("request_id", default=None)
_run_id_ctx: contextvars.ContextVar[Optional[str]] = contextvars.ContextVar("run_id", default=None)

# -------- Request ID (API) ---------------------------------------------------

def set_request_id(request_id: Optional[str]) -> None:
    _request_id_ctx.set(request_id)

def get_request_id() -> Optional[str]:
    return _request_id_ctx.get()

def clear_request_id() -> None:
    _request_id_ctx.set(None)

# -------- Run ID (refresh cycles / scheduled tasks) --------------------------

def get_run_id() -> Optional[str]:
    return _run_id_ctx.get()

@contextmanager
def with_run_id(run_id: Optional[str] = None) -> Iterator[str]:
    """
    Bind a correlation id for one unit of background work:

        with with_run_id() as run_id:
            await aggregator.refresh()

    Every log line emitted inside the block carries ``run_id``.
    """
    token = _run_id_ctx.set(run_id or uuid.uuid4().hex)
    try:
        yield _run_id_ctx.get() or ""
    finally:
        _run_id_ctx.reset(token)
