"""Boundary between the navigation coordinator and whatever displays content."""

import html
import logging
import re
import time
from concurrent import futures
from concurrent.futures import ThreadPoolExecutor
from typing import List, Optional, Protocol, Tuple

import requests
from pydantic import BaseModel

from ..errors import NavigationFailed, NavigationTimeout
from .urls import SANDBOX_CAPABILITIES

logger = logging.getLogger(__name__)

TITLE_RE = re.compile(r"<title[^>]*>(.*?)</title\s*>", re.IGNORECASE | re.DOTALL)
TITLE_SCAN_BYTES = 64 * 1024
READ_CHUNK_BYTES = 8 * 1024


class LoadRequest(BaseModel):
    url: str
    sandbox_capabilities: Tuple[str, ...] = SANDBOX_CAPABILITIES
    timeout_ms: int = 10_000


class LoadResult(BaseModel):
    success: bool
    title: Optional[str] = None
    error: Optional[str] = None


class Renderer(Protocol):
    def load(self, request: LoadRequest) -> LoadResult: ...


def extract_title(markup: str) -> Optional[str]:
    m = TITLE_RE.search(markup)
    if not m:
        return None
    title = " ".join(html.unescape(m.group(1)).split())
    return title or None


class HttpRenderer:
    """Loads pages over HTTP and reports the document title.

    Stands in for a sandboxed frame when running headless: the sandbox
    capability list is recorded but only the fetch is performed. Each load
    runs on a worker thread so the whole fetch, not just each socket read,
    is bounded by ``timeout_ms``.
    """

    def __init__(self, session: Optional[requests.Session] = None, user_agent: str = "AIBrowser/1.0",
                 max_workers: int = 4) -> None:
        self.session = session or requests.Session()
        self.session.headers.setdefault("User-Agent", user_agent)
        self.executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="PageLoad")

    def load(self, request: LoadRequest) -> LoadResult:
        deadline = time.monotonic() + request.timeout_ms / 1000
        opened: List[requests.Response] = []
        future = self.executor.submit(self._fetch, request, deadline, opened)
        try:
            return future.result(timeout=max(0.0, deadline - time.monotonic()))
        except futures.TimeoutError as exc:
            # unblocks a worker still waiting on the socket
            for resp in opened:
                resp.close()
            raise NavigationTimeout("Page load timeout") from exc

    def _fetch(self, request: LoadRequest, deadline: float, opened: List[requests.Response]) -> LoadResult:
        try:
            resp = self.session.get(request.url, timeout=request.timeout_ms / 1000, stream=True)
        except requests.exceptions.Timeout as exc:
            raise NavigationTimeout("Page load timeout") from exc
        except requests.exceptions.RequestException as exc:
            raise NavigationFailed(f"Failed to load page: {exc}") from exc
        opened.append(resp)
        with resp:
            if not resp.ok:
                raise NavigationFailed(f"Failed to load page (HTTP {resp.status_code})")
            head = b""
            try:
                for chunk in resp.iter_content(READ_CHUNK_BYTES):
                    head += chunk
                    if len(head) >= TITLE_SCAN_BYTES or b"</title" in head.lower():
                        break
                    if time.monotonic() >= deadline:
                        raise NavigationTimeout("Page load timeout")
            except requests.exceptions.RequestException as exc:
                logger.debug("Title extraction failed for %s: %s", request.url, exc)
            try:
                title = extract_title(head.decode(resp.encoding or "utf-8", errors="ignore"))
            except LookupError:
                title = None
        return LoadResult(success=True, title=title)

    def close(self) -> None:
        self.executor.shutdown(wait=False)
