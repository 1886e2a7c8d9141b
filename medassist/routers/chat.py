from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, Query, status
from fastapi.responses import StreamingResponse

from medassist.chat.llm import Attachment
from medassist.chat.orchestrator import ChatOrchestrator
from medassist.chat.store import DEFAULT_HISTORY_LIMIT, MAX_HISTORY_LIMIT, ConversationStore
from medassist.chat.streaming import (
    STREAM_MEDIA_TYPE,
    STREAM_PROTOCOL_HEADER,
    STREAM_PROTOCOL_VERSION,
    stream_text_parts,
)
from medassist.models.users import User
from medassist.schemas.chat import ChatHistoryOut, ChatRequest, ChatSessionOut
from medassist.security.dependencies import get_conversation_store, get_current_user, get_orchestrator

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/chat", tags=["chat"])


@router.post("")
def chat(
    body: ChatRequest,
    user: User = Depends(get_current_user),
    orchestrator: ChatOrchestrator = Depends(get_orchestrator),
) -> StreamingResponse:
    messages = [m.model_dump() for m in body.messages]
    attachments = [Attachment(name=a.name, url=a.url, content_type=a.content_type) for a in body.attachments]

    reply = orchestrator.process_chat(user.id, messages, attachments)
    logger.info("Streaming chat reply user=%s classification=%s", user.id, reply.classification.value)

    return StreamingResponse(
        stream_text_parts(reply.chunks),
        media_type=STREAM_MEDIA_TYPE,
        headers={STREAM_PROTOCOL_HEADER: STREAM_PROTOCOL_VERSION},
    )


@router.get("/history", response_model=ChatHistoryOut)
def chat_history(
    limit: int = Query(DEFAULT_HISTORY_LIMIT, ge=1, le=MAX_HISTORY_LIMIT),
    user: User = Depends(get_current_user),
    store: ConversationStore = Depends(get_conversation_store),
) -> ChatHistoryOut:
    sessions = store.get_history(user.id, limit)
    return ChatHistoryOut(history=[ChatSessionOut.model_validate(s) for s in sessions])


@router.get("/{session_id}", response_model=ChatSessionOut)
def chat_session(
    session_id: str,
    user: User = Depends(get_current_user),
    store: ConversationStore = Depends(get_conversation_store),
) -> ChatSessionOut:
    session = store.get_session(user.id, session_id)
    if session is None:
        # Someone else's session looks the same as a missing one.
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Chat session not found")
    return ChatSessionOut.model_validate(session)
