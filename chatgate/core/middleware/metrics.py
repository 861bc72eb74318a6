from starlette.middleware.base import BaseHTTPMiddleware

from chatgate.core.metrics import http_requests_total, normalize_path
from chatgate.features.routing.classifier import RequestKind, classify


class MetricsMiddleware(BaseHTTPMiddleware):
    """Record HTTP request metrics (Prometheus-style), labelled by route class."""

    async def dispatch(self, request, call_next):
        response = await call_next(request)
        _record_request_metric(request, response)
        return response


def _record_request_metric(request, response) -> None:
    kind = classify(request.url.path)
    # Asset paths are unbounded; collapse them into one series
    path = "<static>" if kind == RequestKind.STATIC_ASSET else normalize_path(request.url.path)
    status = getattr(response, "status_code", None) or 0
    http_requests_total.inc(labels={
        "method": request.method.upper(),
        "path": path,
        "status": str(status),
        "kind": kind.value,
    })
