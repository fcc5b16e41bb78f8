"""Error taxonomy shared by the session, navigation and chat layers."""


class BrowserError(Exception):
    """Base class for every error raised by :mod:`aibrowser`."""


class CapacityExceeded(BrowserError):
    def __init__(self, limit: int) -> None:
        super().__init__(f"Maximum number of tabs ({limit}) reached.")
        self.limit = limit


class TabNotFound(BrowserError):
    def __init__(self, tab_id: str) -> None:
        super().__init__(f"Tab not found: {tab_id}")
        self.tab_id = tab_id


class MissingCredential(BrowserError):
    def __init__(self, message: str = "Please configure your OpenRouter API key in Settings.") -> None:
        super().__init__(message)


class InvalidCredential(BrowserError):
    def __init__(self, message: str = "Invalid API key. Please check your OpenRouter API key.") -> None:
        super().__init__(message)


class RateLimited(BrowserError):
    def __init__(self, retry_after: float = 0.0) -> None:
        super().__init__("Rate limit exceeded. Please try again later.")
        self.retry_after = retry_after


class ChatRequestError(BrowserError):
    """The completions endpoint answered with an error or could not be reached."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class NavigationError(BrowserError):
    title = "Cannot Load Page"


class NavigationRejected(NavigationError):
    title = "Blocked URL"


class NavigationTimeout(NavigationError):
    pass


class NavigationFailed(NavigationError):
    pass


class StorageUnavailable(BrowserError):
    pass
