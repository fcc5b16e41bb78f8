from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    app_name: str = "AI Browser"
    version: str = "1.0.0"
    host: str = "127.0.0.1"
    port: int = 8001
    debug: bool = False
    allowed_origins: list[str] = ["http://localhost:5173", "tauri://localhost"]
    data_dir: str = "./data"
    log_file: str = "logs/aibrowser.log"

    # Chat completions
    completions_url: str = "https://openrouter.ai/api/v1/chat/completions"
    app_url: str = "http://localhost:8001"
    default_model: str = "anthropic/claude-3.5-sonnet"
    temperature: float = 0.7
    max_tokens: int = 4096
    api_key: str | None = None
    api_key_prefix: str = "sk-or-v1-"
    request_timeout: float = 60.0
    rate_limit_requests: int = 20
    rate_limit_window: float = 60.0

    # Tabs
    max_tabs: int = 20
    max_history_per_tab: int = 50
    max_recently_closed: int = 20
    new_tab_url: str = "about:newtab"
    default_title: str = "New Tab"
    navigation_timeout_ms: int = 10_000

    # Persistent history / bookmarks
    history_max_entries: int = 1000
    history_retention_days: int = 90
    bookmarks_max_per_folder: int = 100

    # "scheduled" saves in the background, "immediate" writes inline
    persistence: str = "scheduled"

    model_config = SettingsConfigDict(
        env_prefix="AIB_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )
