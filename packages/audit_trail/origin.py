"""Who and where a mutation came from, propagated with ``contextvars``.

Request middleware or job runners bind the acting principal and source
address once; the recorder reads them when assembling each entry. The value
is task- and thread-local, so concurrent requests do not see each other's
origin.
"""

from __future__ import annotations

from contextlib import contextmanager
from contextvars import ContextVar
from dataclasses import dataclass, replace
from typing import Any, Iterator

from . import fields


@dataclass(frozen=True)
class AuditOrigin:
    """Actor, source address and origin context for the current mutation."""

    actor_id: Any = None
    ip: str | None = None
    context: str = fields.CONTEXT_CLI


_ORIGIN: ContextVar[AuditOrigin] = ContextVar("audit_origin", default=AuditOrigin())


def get_origin() -> AuditOrigin:
    """Return the origin bound to the current context."""
    return _ORIGIN.get()


def bind_origin(**values: Any) -> None:
    """Replace selected origin fields (``actor_id``, ``ip``, ``context``)."""
    if not values:
        return
    _ORIGIN.set(replace(_ORIGIN.get(), **values))


def clear_origin() -> None:
    """Reset the origin to an anonymous command-line context."""
    _ORIGIN.set(AuditOrigin())


@contextmanager
def origin_scope(
    *,
    actor_id: Any = None,
    ip: str | None = None,
    context: str = fields.CONTEXT_WEB,
) -> Iterator[AuditOrigin]:
    """Temporarily bind an origin for the duration of a block."""
    origin = AuditOrigin(actor_id=actor_id, ip=ip, context=context)
    token = _ORIGIN.set(origin)
    try:
        yield origin
    finally:
        _ORIGIN.reset(token)
