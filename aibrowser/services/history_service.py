from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel

from ..browser import Browser
from ..dependencies import get_browser
from ..models import Bookmark

router = APIRouter(tags=["history"])


class NewBookmark(BaseModel):
    url: str
    title: str = ""
    folder: Optional[str] = None


@router.get("/history")
def list_history(limit: int = Query(100, ge=1, le=1000), q: Optional[str] = None,
                 browser: Browser = Depends(get_browser)) -> List[Dict[str, Any]]:
    if q:
        return browser.storage.search_history(q)[:limit]
    return browser.storage.get_history(limit)


@router.delete("/history")
def clear_history(browser: Browser = Depends(get_browser)):
    return {"ok": browser.storage.clear_history()}


@router.get("/bookmarks")
def list_bookmarks(folder: Optional[str] = None, browser: Browser = Depends(get_browser)):
    return browser.storage.get_bookmarks(folder)


@router.post("/bookmarks", response_model=Bookmark)
def add_bookmark(body: NewBookmark, browser: Browser = Depends(get_browser)):
    bookmark = Bookmark(url=body.url, title=body.title or body.url, folder=body.folder)
    if not browser.storage.add_bookmark(bookmark):
        raise HTTPException(status_code=409, detail="Bookmark could not be saved")
    return bookmark


@router.get("/bookmarks/check")
def check_bookmark(url: str, browser: Browser = Depends(get_browser)):
    return {"url": url, "bookmarked": browser.storage.is_bookmarked(url)}


@router.delete("/bookmarks/{bookmark_id}")
def delete_bookmark(bookmark_id: str, browser: Browser = Depends(get_browser)):
    return {"ok": browser.storage.delete_bookmark(bookmark_id)}
