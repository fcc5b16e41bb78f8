from typing import Any, Dict

from fastapi import APIRouter, Depends, HTTPException

from ..browser import Browser
from ..dependencies import get_browser

router = APIRouter(tags=["settings"])


@router.get("/settings")
def get_settings(browser: Browser = Depends(get_browser)) -> Dict[str, Any]:
    return browser.storage.get_all_settings()


@router.patch("/settings")
def update_settings(values: Dict[str, Any], browser: Browser = Depends(get_browser)) -> Dict[str, Any]:
    for key, value in values.items():
        if not browser.storage.save_setting(key, value):
            raise HTTPException(status_code=503, detail=f"Could not save setting {key}")
    return browser.storage.get_all_settings()


@router.get("/data/export")
def export_data(browser: Browser = Depends(get_browser)) -> Dict[str, Any]:
    return browser.storage.export_data()


@router.post("/data/import")
def import_data(data: Dict[str, Any], browser: Browser = Depends(get_browser)):
    if not browser.storage.import_data(data):
        raise HTTPException(status_code=400, detail="Import failed")
    return {"ok": True}


@router.delete("/data")
def clear_data(browser: Browser = Depends(get_browser)):
    return {"ok": browser.storage.clear_all()}
