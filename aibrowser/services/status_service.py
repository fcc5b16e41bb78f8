from fastapi import APIRouter, Depends

from ..browser import Browser
from ..dependencies import get_browser

router = APIRouter()


@router.get("/status")
async def status(browser: Browser = Depends(get_browser)):
    sessions = browser.sessions
    return {
        "app": browser.settings.app_name,
        "version": browser.settings.version,
        "storage_ready": browser.storage.ready,
        "tabs": len(sessions.tabs),
        "active_tab_id": sessions.active_tab_id,
        "ai_configured": browser.chat.has_api_key(),
        "model": browser.chat.model,
        "active_streams": len(browser.chat.active_streams),
    }
