from typing import List, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from ..browser import Browser
from ..core.pages import RenderedPage
from ..dependencies import get_browser
from ..errors import TabNotFound
from ..models import ClosedTab, Tab

router = APIRouter(tags=["tabs"], prefix="/tabs")


class CreateTab(BaseModel):
    url: Optional[str] = None
    title: Optional[str] = None
    pinned: bool = False


class NavigateTo(BaseModel):
    url: str


class TabUpdate(BaseModel):
    title: Optional[str] = None
    favicon: Optional[str] = None
    scroll_position: Optional[int] = None


class TabList(BaseModel):
    tabs: List[Tab]
    active_tab_id: Optional[str]


def _tab(browser: Browser, tab_id: str) -> Tab:
    tab = browser.sessions.get_tab(tab_id)
    if tab is None:
        raise TabNotFound(tab_id)
    return tab


def _require(ok: bool, tab_id: str) -> None:
    if not ok:
        raise TabNotFound(tab_id)


@router.get("", response_model=TabList)
def list_tabs(browser: Browser = Depends(get_browser)):
    return TabList(tabs=browser.sessions.all_tabs(), active_tab_id=browser.sessions.active_tab_id)


@router.post("", response_model=Tab)
def create_tab(body: CreateTab, browser: Browser = Depends(get_browser)):
    return browser.sessions.create_tab(body.url, title=body.title, pinned=body.pinned)


@router.get("/recently-closed", response_model=List[ClosedTab])
def recently_closed(browser: Browser = Depends(get_browser)):
    return browser.sessions.recently_closed


@router.post("/restore", response_model=Optional[Tab])
def restore_tab(browser: Browser = Depends(get_browser)):
    return browser.sessions.restore_closed_tab()


@router.get("/{tab_id}", response_model=Tab)
def get_tab(tab_id: str, browser: Browser = Depends(get_browser)):
    return _tab(browser, tab_id)


@router.patch("/{tab_id}", response_model=Tab)
def update_tab(tab_id: str, body: TabUpdate, browser: Browser = Depends(get_browser)):
    updates = {k: v for k, v in body.model_dump().items() if v is not None}
    _require(browser.sessions.update_tab(tab_id, **updates), tab_id)
    return _tab(browser, tab_id)


@router.delete("/{tab_id}")
def close_tab(tab_id: str, browser: Browser = Depends(get_browser)):
    _require(browser.sessions.close_tab(tab_id), tab_id)
    return {"ok": True, "active_tab_id": browser.sessions.active_tab_id}


@router.post("/{tab_id}/activate", response_model=Tab)
def activate_tab(tab_id: str, browser: Browser = Depends(get_browser)):
    _require(browser.sessions.activate_tab(tab_id), tab_id)
    return _tab(browser, tab_id)


@router.post("/{tab_id}/pin", response_model=Tab)
def toggle_pin(tab_id: str, browser: Browser = Depends(get_browser)):
    _require(browser.sessions.toggle_pin(tab_id), tab_id)
    return _tab(browser, tab_id)


@router.post("/{tab_id}/navigate", response_model=Tab)
def navigate(tab_id: str, body: NavigateTo, browser: Browser = Depends(get_browser)):
    _require(browser.sessions.navigate(tab_id, body.url), tab_id)
    return _tab(browser, tab_id)


@router.post("/{tab_id}/back")
def go_back(tab_id: str, browser: Browser = Depends(get_browser)):
    tab = _tab(browser, tab_id)
    moved = browser.sessions.go_back(tab_id)
    return {"moved": moved, "tab": tab}


@router.post("/{tab_id}/forward")
def go_forward(tab_id: str, browser: Browser = Depends(get_browser)):
    tab = _tab(browser, tab_id)
    moved = browser.sessions.go_forward(tab_id)
    return {"moved": moved, "tab": tab}


@router.post("/{tab_id}/reload", response_model=Tab)
def reload(tab_id: str, browser: Browser = Depends(get_browser)):
    _require(browser.sessions.reload(tab_id), tab_id)
    return _tab(browser, tab_id)


@router.get("/{tab_id}/page", response_model=Optional[RenderedPage])
def current_page(tab_id: str, browser: Browser = Depends(get_browser)):
    _tab(browser, tab_id)
    return browser.navigation.current_page(tab_id)
