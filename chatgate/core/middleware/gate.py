import logging
from urllib.parse import quote

from starlette.concurrency import run_in_threadpool
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import PlainTextResponse, RedirectResponse

from chatgate.core.config import settings, split_csv
from chatgate.core.session import get_session
from chatgate.features.routing.classifier import RequestKind, classify

AUTH_PAGES = ("/login", "/register")


def _is_under(path: str, roots) -> bool:
    return any(path == root or path.startswith(root.rstrip("/") + "/") for root in roots)


class RequestGateMiddleware(BaseHTTPMiddleware):
    """
    Apply the request classifier before routing.

    - health checks answer "pong" without touching the session or database
    - static assets pass through untouched
    - API calls pass through; routes enforce access with dependencies
    - pages need a session unless listed in PUBLIC_PAGE_PATHS
    """

    async def dispatch(self, request, call_next):
        path = request.url.path
        kind = classify(path)
        request.state.request_kind = kind

        if kind == RequestKind.HEALTH_CHECK:
            return PlainTextResponse("pong", status_code=200)
        if kind != RequestKind.PAGE:
            return await call_next(request)

        session = await run_in_threadpool(get_session, request)

        if session is not None and _is_under(path, AUTH_PAGES):
            return RedirectResponse("/", status_code=307)

        if session is None and not _is_under(path, split_csv(settings.PUBLIC_PAGE_PATHS)):
            logging.getLogger("chatgate").info(
                "gate.redirect_login",
                extra={"path": path, "request_kind": kind.value},
            )
            target = f"{settings.LOGIN_PATH}?redirectUrl={quote(str(request.url), safe='')}"
            return RedirectResponse(target, status_code=307)

        return await call_next(request)
