import logging
from typing import Optional

from ..errors import TabNotFound
from ..models import ChatMessage
from ..core.session_store import SessionStore
from .client import ChatClient
from .stream import ChunkCallback

logger = logging.getLogger(__name__)


class TabConversation:
    """Chat scoped to one tab: its turns live in ``tab.ai_context``."""

    def __init__(self, client: ChatClient, sessions: SessionStore, storage=None) -> None:
        self.client = client
        self.sessions = sessions
        self.storage = storage

    def send(self, tab_id: str, message: str, on_chunk: Optional[ChunkCallback] = None) -> str:
        if self.sessions.get_tab(tab_id) is None:
            raise TabNotFound(tab_id)
        history = self.sessions.chat_context(tab_id)

        # admission errors surface before the turn is recorded
        chat_stream = self.client.stream([*history, {"role": "user", "content": message}])
        self.sessions.add_chat_turn(tab_id, "user", message)
        self.sessions.add_chat_turn(tab_id, "assistant", "")
        self._archive(tab_id, "user", message)

        with chat_stream:
            for fragment in chat_stream:
                self.sessions.extend_last_turn(tab_id, fragment)
                if on_chunk is not None:
                    on_chunk(fragment)
        reply = chat_stream.text
        self._archive(tab_id, "assistant", reply)
        self.sessions.save()
        return reply

    def clear(self, tab_id: str) -> bool:
        if not self.sessions.clear_chat(tab_id):
            return False
        if self.storage is not None:
            self.storage.clear_chat_history(tab_id)
        return True

    def _archive(self, tab_id: str, role: str, content: str) -> None:
        if self.storage is None:
            return
        self.storage.save_chat_message(
            ChatMessage(tab_id=tab_id, role=role, content=content, model=self.client.model)
        )
