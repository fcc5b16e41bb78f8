from __future__ import annotations

from typing import List, Literal, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel
from sse_starlette.sse import EventSourceResponse

from ..ai import prompts
from ..ai.stream import ChatStream
from ..browser import Browser
from ..dependencies import get_browser
from ..errors import ChatRequestError
from ..models import ChatTurn

router = APIRouter(tags=["chat"], prefix="/chat")


class ChatRequest(BaseModel):
    messages: List[ChatTurn]
    model: Optional[str] = None
    temperature: Optional[float] = None
    max_tokens: Optional[int] = None


class StreamRequest(ChatRequest):
    stream_id: Optional[str] = None


class ModeRequest(BaseModel):
    text: str = ""
    context: str = ""
    other: str = ""


class TabMessage(BaseModel):
    message: str


class ApiKey(BaseModel):
    api_key: str


class ModelChoice(BaseModel):
    model: str


@router.post("")
def chat(body: ChatRequest, browser: Browser = Depends(get_browser)):
    text = browser.chat.complete(body.messages, model=body.model, temperature=body.temperature,
                                 max_tokens=body.max_tokens)
    return {"response": text, "model": body.model or browser.chat.model}


def _events(chat_stream: ChatStream):
    try:
        yield {"event": "stream", "data": chat_stream.id}
        try:
            for fragment in chat_stream:
                yield {"event": "token", "data": fragment}
        except ChatRequestError as exc:
            yield {"event": "error", "data": str(exc)}
            return
        yield {"event": "cancelled" if chat_stream.cancelled else "end", "data": ""}
    finally:
        chat_stream.close()


@router.post("/stream")
def chat_stream(body: StreamRequest, browser: Browser = Depends(get_browser)):
    # admission and HTTP errors are raised here, before the event stream opens
    try:
        stream = browser.chat.stream(body.messages, stream_id=body.stream_id, model=body.model,
                                     temperature=body.temperature, max_tokens=body.max_tokens)
    except ValueError as exc:
        raise HTTPException(status_code=409, detail=str(exc)) from exc
    return EventSourceResponse(_events(stream))


@router.delete("/stream/{stream_id}")
def cancel_stream(stream_id: str, browser: Browser = Depends(get_browser)):
    return {"cancelled": browser.chat.cancel_stream(stream_id)}


@router.get("/streams")
def active_streams(browser: Browser = Depends(get_browser)):
    return {"streams": browser.chat.active_streams}


@router.post("/modes/{mode}")
def run_mode(mode: Literal["chat", "search", "explain", "ask", "compare", "code", "research"],
             body: ModeRequest, browser: Browser = Depends(get_browser)):
    client = browser.chat
    if mode == prompts.CHAT:
        text = client.stream_chat([{"role": "user", "content": body.text}])
    elif mode == prompts.SEARCH:
        text = client.search(body.text)
    elif mode == prompts.EXPLAIN:
        text = client.explain_page(body.context)
    elif mode == prompts.ASK:
        text = client.ask_about_page(body.text, body.context)
    elif mode == prompts.COMPARE:
        text = client.compare_tabs(body.context, body.other)
    elif mode == prompts.CODE:
        text = client.code_assist(body.text)
    else:
        text = client.research(body.text)
    return {"mode": mode, "response": text}


@router.post("/tabs/{tab_id}")
def tab_message(tab_id: str, body: TabMessage, browser: Browser = Depends(get_browser)):
    reply = browser.conversation.send(tab_id, body.message)
    return {"response": reply, "context": browser.sessions.chat_context(tab_id)}


@router.delete("/tabs/{tab_id}")
def clear_tab_chat(tab_id: str, browser: Browser = Depends(get_browser)):
    if not browser.conversation.clear(tab_id):
        raise HTTPException(status_code=404, detail=f"Tab not found: {tab_id}")
    return {"ok": True}


@router.get("/models")
def models(browser: Browser = Depends(get_browser)):
    return {"models": browser.chat.available_models(), "current": browser.chat.model}


@router.put("/model")
def set_model(body: ModelChoice, browser: Browser = Depends(get_browser)):
    browser.chat.set_model(body.model)
    return {"current": browser.chat.model}


@router.get("/key")
def key_status(browser: Browser = Depends(get_browser)):
    return {"configured": browser.chat.has_api_key(), "masked": browser.chat.masked_api_key()}


@router.put("/key")
def set_key(body: ApiKey, browser: Browser = Depends(get_browser)):
    browser.chat.set_api_key(body.api_key)
    return {"configured": True, "masked": browser.chat.masked_api_key()}
