"""
chatgate/features/routing/classifier.py

Classifies request paths so the gate knows which checks apply.

Rules, first match wins:
1. health paths (/ping, /healthz) and their sub-paths
2. well-known asset prefixes
3. /api and everything under it
4. a file extension on the last path segment
5. anything else is a page

API routes come before the extension rule, so /api/export.csv stays an API
call.
"""

from enum import Enum
import posixpath


class RequestKind(str, Enum):
    HEALTH_CHECK = "health_check"
    STATIC_ASSET = "static_asset"
    API = "api"
    PAGE = "page"


HEALTH_PATHS = ("/ping", "/healthz")

STATIC_PREFIXES = (
    "/_next/static",
    "/_next/image",
    "/static",
    "/images",
    "/assets",
    "/favicon.ico",
    "/robots.txt",
    "/sitemap.xml",
)

API_PREFIX = "/api"


def _matches_prefix(path: str, prefix: str) -> bool:
    return path == prefix or path.startswith(prefix + "/")


def _has_extension(path: str) -> bool:
    last = path.rstrip("/").rsplit("/", 1)[-1]
    _, ext = posixpath.splitext(last)
    return bool(ext) and len(ext) > 1


def classify(path: str) -> RequestKind:
    path = path or "/"
    if not path.startswith("/"):
        path = "/" + path

    if any(_matches_prefix(path, p) for p in HEALTH_PATHS):
        return RequestKind.HEALTH_CHECK
    if any(_matches_prefix(path, p) for p in STATIC_PREFIXES):
        return RequestKind.STATIC_ASSET
    if _matches_prefix(path, API_PREFIX):
        return RequestKind.API
    if _has_extension(path):
        return RequestKind.STATIC_ASSET
    return RequestKind.PAGE
