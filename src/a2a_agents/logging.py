import logging
from typing import Any, MutableMapping, Tuple

from fastapi import Request

from .correlation import CORRELATION_HEADER, ensure_correlation_id

logger = logging.getLogger("a2a_agents")

def setup_logging(level: str = "INFO") -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )

class StructuredAdapter(logging.LoggerAdapter):
    """Appends bound fields as ``key=value`` pairs to every message.

    Fields passed per call through ``extra`` are merged over the bound ones.
    """

    def process(self, msg: Any, kwargs: MutableMapping[str, Any]) -> Tuple[Any, MutableMapping[str, Any]]:
        fields = dict(self.extra or {})
        fields.update(kwargs.pop("extra", None) or {})
        if fields:
            rendered = " ".join(f"{k}={fields[k]}" for k in sorted(fields))
            msg = f"{msg} {rendered}"
        return msg, kwargs

def bind_logger(base: logging.Logger | logging.LoggerAdapter, **fields: Any) -> StructuredAdapter:
    """Return a logger whose entries carry ``fields`` (correlation id, agent, ...)."""
    if isinstance(base, logging.LoggerAdapter):
        merged = dict(base.extra or {})
        merged.update(fields)
        return StructuredAdapter(base.logger, merged)
    return StructuredAdapter(base, fields)

async def correlation_id_middleware(request: Request, call_next):
    request.state.correlation_id = ensure_correlation_id(request.headers.get(CORRELATION_HEADER))
    response = await call_next(request)
    # Endpoints may replace the id with the one from the request body
    response.headers[CORRELATION_HEADER] = request.state.correlation_id
    return response
