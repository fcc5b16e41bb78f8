from __future__ import annotations

import logging
import uuid
import weakref
from typing import Any, Dict, Iterable, List, Optional, Union

import requests

from ..config import Settings
from ..errors import ChatRequestError, InvalidCredential, MissingCredential, RateLimited
from ..events import EventBus, EventType
from ..models import ChatTurn
from ..storage.kv import API_KEY, MODEL_KEY, KeyValueStore
from . import prompts
from .rate_limiter import RateLimiter
from .stream import ChatStream, ChunkCallback

logger = logging.getLogger(__name__)

Message = Union[Dict[str, str], ChatTurn]


def validate_api_key(key: Optional[str], prefix: str = "sk-or-v1-") -> bool:
    return bool(key) and key.startswith(prefix) and len(key) > 20


def mask_api_key(key: Optional[str]) -> str:
    if not key or len(key) < 8:
        return "****"
    return f"{key[:4]}{'*' * (len(key) - 8)}{key[-4:]}"


def _as_message(m: Message) -> Dict[str, str]:
    if isinstance(m, ChatTurn):
        return {"role": m.role, "content": m.content}
    return {"role": m["role"], "content": m["content"]}


class ChatClient:
    """Chat-completions client with admission control and streaming."""

    def __init__(
        self,
        settings: Settings,
        bus: Optional[EventBus] = None,
        kv: Optional[KeyValueStore] = None,
        session: Optional[requests.Session] = None,
        rate_limiter: Optional[RateLimiter] = None,
    ) -> None:
        self.settings = settings
        self.bus = bus
        self.kv = kv
        self.session = session or requests.Session()
        self.rate_limiter = rate_limiter or RateLimiter(settings.rate_limit_requests, settings.rate_limit_window)
        self.api_key: Optional[str] = settings.api_key
        self.model = settings.default_model
        # streams drop out once released or garbage collected
        self._active: "weakref.WeakValueDictionary[str, ChatStream]" = weakref.WeakValueDictionary()

    def init(self) -> None:
        """Load the stored credential and model choice."""
        if self.kv is None:
            return
        try:
            self.api_key = self.kv.get(API_KEY) or self.api_key
            self.model = self.kv.get(MODEL_KEY) or self.model
        except Exception:
            logger.exception("Could not read AI settings")

    # ----- credential / model -----

    def set_api_key(self, api_key: str) -> None:
        api_key = (api_key or "").strip()
        if not validate_api_key(api_key, self.settings.api_key_prefix):
            raise InvalidCredential("Invalid API key format")
        self.api_key = api_key
        self._remember(API_KEY, api_key)
        self._emit(EventType.AI_KEY_UPDATED)

    def has_api_key(self) -> bool:
        return validate_api_key(self.api_key, self.settings.api_key_prefix)

    def masked_api_key(self) -> str:
        return mask_api_key(self.api_key)

    def set_model(self, model_id: str) -> None:
        self.model = model_id
        self._remember(MODEL_KEY, model_id)
        self._emit(EventType.AI_MODEL_CHANGED, model=model_id)

    @staticmethod
    def available_models() -> List[Dict[str, Any]]:
        return list(prompts.MODELS)

    def _remember(self, key: str, value: str) -> None:
        if self.kv is None:
            return
        try:
            self.kv.set(key, value)
        except Exception:
            logger.exception("Could not persist %s", key)

    def _emit(self, event_type: EventType, **data: Any) -> None:
        if self.bus is not None:
            self.bus.emit(event_type, **data)

    # ----- requests -----

    def _admit(self) -> None:
        if not self.api_key:
            raise MissingCredential()
        if not self.has_api_key():
            raise InvalidCredential()
        if not self.rate_limiter.check_limit():
            raise RateLimited(self.rate_limiter.retry_after())

    def _body(self, messages: Iterable[Message], stream: bool, model: Optional[str],
              temperature: Optional[float], max_tokens: Optional[int]) -> Dict[str, Any]:
        return {
            "model": model or self.model,
            "messages": [_as_message(m) for m in messages],
            "temperature": self.settings.temperature if temperature is None else temperature,
            "max_tokens": max_tokens or self.settings.max_tokens,
            "stream": stream,
        }

    def _post(self, body: Dict[str, Any]) -> requests.Response:
        headers = {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {self.api_key}",
            "HTTP-Referer": self.settings.app_url,
            "X-Title": self.settings.app_name,
        }
        try:
            resp = self.session.post(
                self.settings.completions_url,
                json=body,
                headers=headers,
                timeout=self.settings.request_timeout,
                stream=body["stream"],
            )
        except requests.exceptions.RequestException as exc:
            logger.error("Chat request failed: %s", exc)
            raise ChatRequestError(f"Network error: {exc}") from exc
        if not resp.ok:
            message = None
            try:
                message = (resp.json().get("error") or {}).get("message")
            except (ValueError, AttributeError):
                pass
            resp.close()
            logger.error("Chat API error %s: %s", resp.status_code, message)
            raise ChatRequestError(message or f"API Error: {resp.status_code}", resp.status_code)
        return resp

    def complete(self, messages: Iterable[Message], model: Optional[str] = None,
                 temperature: Optional[float] = None, max_tokens: Optional[int] = None) -> str:
        self._admit()
        resp = self._post(self._body(messages, False, model, temperature, max_tokens))
        try:
            return resp.json()["choices"][0]["message"]["content"]
        except (ValueError, KeyError, IndexError, TypeError) as exc:
            raise ChatRequestError("Malformed completion response") from exc

    def stream(self, messages: Iterable[Message], on_chunk: Optional[ChunkCallback] = None,
               stream_id: Optional[str] = None, model: Optional[str] = None,
               temperature: Optional[float] = None, max_tokens: Optional[int] = None) -> ChatStream:
        """Start a streamed completion and return its lazy fragment iterator."""
        stream_id = stream_id or str(uuid.uuid4())
        if stream_id in self._active:
            raise ValueError(f"Stream {stream_id!r} is already active")
        self._admit()
        resp = self._post(self._body(messages, True, model, temperature, max_tokens))
        chat_stream = ChatStream(resp, stream_id, on_chunk=on_chunk, on_release=self._forget)
        self._active[stream_id] = chat_stream
        return chat_stream

    def _forget(self, chat_stream: ChatStream) -> None:
        if self._active.get(chat_stream.id) is chat_stream:
            del self._active[chat_stream.id]

    def stream_chat(self, messages: Iterable[Message], on_chunk: Optional[ChunkCallback] = None,
                    **options: Any) -> str:
        with self.stream(messages, on_chunk=on_chunk, **options) as chat_stream:
            for _ in chat_stream:
                pass
            return chat_stream.text

    def cancel_stream(self, stream_id: str) -> bool:
        chat_stream = self._active.get(stream_id)
        if chat_stream is None:
            return False
        chat_stream.cancel()
        return True

    @property
    def active_streams(self) -> List[str]:
        return list(self._active)

    # ----- conversation helpers -----

    def _ask(self, content: str, on_chunk: Optional[ChunkCallback]) -> str:
        return self.stream_chat([{"role": "user", "content": content}], on_chunk)

    def search(self, query: str, on_chunk: Optional[ChunkCallback] = None) -> str:
        return self._ask(prompts.search(query), on_chunk)

    def explain_page(self, page_content: str, on_chunk: Optional[ChunkCallback] = None) -> str:
        return self._ask(prompts.explain(page_content), on_chunk)

    def ask_about_page(self, question: str, page_content: str, on_chunk: Optional[ChunkCallback] = None) -> str:
        return self._ask(prompts.ask(question, page_content), on_chunk)

    def compare_tabs(self, first: str, second: str, on_chunk: Optional[ChunkCallback] = None) -> str:
        return self._ask(prompts.compare(first, second), on_chunk)

    def code_assist(self, request: str, on_chunk: Optional[ChunkCallback] = None) -> str:
        return self._ask(prompts.code(request), on_chunk)

    def research(self, topic: str, on_chunk: Optional[ChunkCallback] = None) -> str:
        return self._ask(prompts.research(topic), on_chunk)

    def continue_conversation(self, history: Iterable[Message], message: str,
                              on_chunk: Optional[ChunkCallback] = None) -> str:
        messages = [_as_message(m) for m in history]
        messages.append({"role": "user", "content": message})
        return self.stream_chat(messages, on_chunk)
