from typing import Optional

from .browser import Browser

_BROWSER: Optional[Browser] = None


def get_browser() -> Browser:
    global _BROWSER
    if _BROWSER is None:
        _BROWSER = Browser().start()
    return _BROWSER


def shutdown_browser() -> None:
    global _BROWSER
    if _BROWSER is not None:
        _BROWSER.shutdown()
        _BROWSER = None
