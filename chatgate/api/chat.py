"""
Chat API routes.

POST /api/chat runs the full policy pipeline before a message is accepted.
The history and model routes are owner-only.
"""

import logging

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field
from typing import Optional

from chatgate.core.errors import ModelNotAllowedError, NotFoundError
from chatgate.core.session import get_session
from chatgate.features.access.service import ensure_owner, require_session
from chatgate.features.chats.service import (
    create_chat,
    delete_chat,
    get_chat,
    list_messages,
    save_message,
    title_from_message,
    update_chat_model,
)
from chatgate.features.entitlements.service import resolve_for_user
from chatgate.features.policy.service import authorize_chat_message
from chatgate.models.chat_model import DEFAULT_CHAT_MODEL
from chatgate.models.session import Session

logger = logging.getLogger("chatgate")

router = APIRouter(prefix="/api/chat", tags=["chat"])


class SendMessageRequest(BaseModel):
    id: str = Field(..., min_length=1, max_length=100)
    message: str = Field(..., min_length=1, max_length=20000)
    selected_chat_model: str = DEFAULT_CHAT_MODEL


class UpdateModelRequest(BaseModel):
    model: str


def _owned_chat(session: Session, chat_id: str, action: str):
    chat = get_chat(chat_id)
    if chat is None:
        raise NotFoundError("Chat not found")
    ensure_owner(session, chat.user_id, action=action)
    return chat


@router.post("")
def send_message(body: SendMessageRequest, session: Optional[Session] = Depends(get_session)) -> dict:
    decision = authorize_chat_message(session, body.id, body.selected_chat_model)
    decision.raise_for_denial()

    chat = decision.chat
    if chat is None:
        chat = create_chat(
            body.id,
            session.user_id,
            title_from_message(body.message),
            body.selected_chat_model,
        )
        # A concurrent request may have created this id first
        ensure_owner(session, chat.user_id, action="send_message")
    message = save_message(chat.id, "user", body.message)

    logger.info(
        "chat.message_accepted",
        extra={"user_id": session.user_id, "chat_id": chat.id, "model": body.selected_chat_model},
    )
    return {
        "chat_id": chat.id,
        "message_id": message.id,
        "model": body.selected_chat_model,
        "quota": decision.quota.to_dict(),
    }


@router.get("/{chat_id}/messages")
def get_messages(chat_id: str, session: Session = Depends(require_session)) -> dict:
    _owned_chat(session, chat_id, "read_messages")
    messages = list_messages(chat_id)
    return {
        "chat_id": chat_id,
        "count": len(messages),
        "messages": [m.model_dump(mode="json") for m in messages],
    }


@router.patch("/{chat_id}/model")
def set_chat_model(chat_id: str, body: UpdateModelRequest, session: Session = Depends(require_session)) -> dict:
    _owned_chat(session, chat_id, "update_model")
    entitlements = resolve_for_user(session)
    if not entitlements.allows_model(body.model):
        raise ModelNotAllowedError(
            f"Model '{body.model}' is not included in your subscription",
            details={"model_id": body.model},
        )
    chat = update_chat_model(chat_id, body.model)
    return {"chat_id": chat.id, "model": chat.model}


@router.delete("/{chat_id}")
def remove_chat(chat_id: str, session: Session = Depends(require_session)) -> dict:
    _owned_chat(session, chat_id, "delete_chat")
    delete_chat(chat_id)
    return {"deleted": True, "chat_id": chat_id}
