import re
from typing import Optional
from urllib.parse import urlparse

NEW_TAB = "about:newtab"
BLANK = "about:blank"
HISTORY = "about:history"
BOOKMARKS = "about:bookmarks"
SETTINGS = "about:settings"

INTERNAL_SCHEME = "about:"

SANDBOX_CAPABILITIES = (
    "allow-scripts",
    "allow-same-origin",
    "allow-forms",
    "allow-popups",
    "allow-modals",
)

DANGEROUS_SCHEMES = ("javascript:", "data:", "file:", "vbscript:")
ALLOWED_SCHEMES = ("http", "https")

URL_PATTERN = re.compile(
    r"^(https?://)?([\da-z.-]+)\.([a-z.]{2,6})(:\d{1,5})?([/\w.\-?=&%#~+]*)/?$", re.IGNORECASE
)
IP_PATTERN = re.compile(r"^(\d{1,3}\.){3}\d{1,3}(:\d{1,5})?$")
SCHEME_PATTERN = re.compile(r"^([a-z][a-z0-9+.-]*):(?!\d)", re.IGNORECASE)

# stripped by URL parsers before the scheme is read
_INVISIBLE = re.compile(r"[\t\n\r\x00-\x1f]")


def _clean(url: str) -> str:
    return _INVISIBLE.sub("", url or "").strip()


def is_internal(url: str) -> bool:
    return _clean(url).lower().startswith(INTERNAL_SCHEME)


def is_dangerous(url: str) -> bool:
    lowered = _clean(url).lower()
    return any(lowered.startswith(s) for s in DANGEROUS_SCHEMES)


def normalize_url(raw: str) -> Optional[str]:
    """Turn address-bar input into an absolute URL.

    Returns None when the input should be treated as a search query. Inputs
    that already carry a scheme are returned untouched so that the security
    check sees exactly what was typed.
    """
    text = _clean(raw)
    if not text:
        return None
    if text.lower().startswith(INTERNAL_SCHEME):
        return text
    if "://" in text or SCHEME_PATTERN.match(text):
        return text
    if URL_PATTERN.match(text) or IP_PATTERN.match(text):
        return f"https://{text}"
    return None


def validate_csp(url: str) -> bool:
    """Only plain http(s) URLs with a host may be loaded."""
    cleaned = _clean(url)
    if is_dangerous(cleaned):
        return False
    try:
        parsed = urlparse(cleaned)
    except ValueError:
        return False
    return parsed.scheme.lower() in ALLOWED_SCHEMES and bool(parsed.netloc)


def get_url_domain(url: str) -> str:
    try:
        return urlparse(url).hostname or ""
    except ValueError:
        return ""


def get_favicon_url(url: str) -> str:
    domain = get_url_domain(url)
    if not domain:
        return ""
    return f"https://www.google.com/s2/favicons?domain={domain}&sz=32"
