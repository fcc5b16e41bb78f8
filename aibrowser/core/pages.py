from datetime import datetime
from html import escape
from typing import Literal, Optional, Tuple

from pydantic import BaseModel

PageKind = Literal["content", "newtab", "blank", "search", "error", "history", "bookmarks", "settings"]


class RenderedPage(BaseModel):
    kind: PageKind
    url: str
    title: str
    html: Optional[str] = None
    sandbox: Tuple[str, ...] = ()


def time_of_day(now: Optional[datetime] = None) -> str:
    hour = (now or datetime.now()).hour
    if hour < 12:
        return "morning"
    if hour < 18:
        return "afternoon"
    return "evening"


def _document(body: str) -> str:
    return (
        "<!DOCTYPE html><html><head><meta charset=\"utf-8\">"
        "<style>body{font-family:-apple-system,'Segoe UI',sans-serif;margin:0;padding:2rem}"
        ".center{text-align:center;max-width:600px;margin:0 auto}</style>"
        f"</head><body>{body}</body></html>"
    )


def new_tab_page(url: str, now: Optional[datetime] = None) -> RenderedPage:
    body = (
        "<div class=\"center\">"
        f"<div class=\"greeting\">Good {time_of_day(now)}!</div>"
        "<h1>Welcome to AI Browser</h1>"
        "<p>Your intelligent browsing companion</p>"
        "<div class=\"action\" data-action=\"ai-search\">AI Search</div>"
        "<div class=\"action\" data-action=\"history\">History</div>"
        "<div class=\"action\" data-action=\"bookmarks\">Bookmarks</div>"
        "</div>"
    )
    return RenderedPage(kind="newtab", url=url, title="New Tab", html=_document(body))


def blank_page(url: str) -> RenderedPage:
    return RenderedPage(kind="blank", url=url, title="Blank Page", html="")


def view_page(kind: Literal["history", "bookmarks", "settings"], url: str) -> RenderedPage:
    # the list itself is drawn by the UI in response to view:* events
    return RenderedPage(kind=kind, url=url, title=kind.capitalize())


def search_page(query: str) -> RenderedPage:
    q = escape(query)
    body = (
        "<div class=\"center\"><h1>Search Results</h1>"
        f"<div class=\"search-query\"><strong>Query:</strong> {q}</div>"
        "<p>Use the AI Assistant to search the web with AI-powered results.</p>"
        f"<div class=\"suggestion\" data-action=\"ai-search\" data-query=\"{q}\">Search with AI Assistant</div>"
        "</div>"
    )
    return RenderedPage(kind="search", url=query, title=f"Search: {query}", html=_document(body))


def error_page(url: str, title: str, message: str) -> RenderedPage:
    body = (
        "<div class=\"center\">"
        f"<h1>{escape(title)}</h1><p>{escape(message)}</p>"
        "<button data-action=\"reload\">Try Again</button>"
        "</div>"
    )
    return RenderedPage(kind="error", url=url, title=title, html=_document(body))
