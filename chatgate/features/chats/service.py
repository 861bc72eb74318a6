"""
chatgate/features/chats/service.py

Chat and message records.

Only what the policy engine needs: chat ownership, the chat's selected model
and the accepted user messages. Completions are produced elsewhere.
"""

from datetime import datetime, timezone
from typing import List, Optional
import logging

from sqlalchemy import select, insert, update, delete

from chatgate.core.database import get_db_session, insert_ignoring_conflicts, chats, chat_messages
from chatgate.core.errors import NotFoundError
from chatgate.models.chat import Chat, ChatMessage


logger = logging.getLogger(__name__)

TITLE_MAX_LENGTH = 80


def title_from_message(content: str) -> str:
    """First line of the message, trimmed to TITLE_MAX_LENGTH."""
    first_line = (content or "").strip().splitlines()[0] if (content or "").strip() else ""
    if not first_line:
        return "New chat"
    if len(first_line) <= TITLE_MAX_LENGTH:
        return first_line
    return first_line[: TITLE_MAX_LENGTH - 3].rstrip() + "..."


def _row_to_chat(row) -> Chat:
    return Chat(id=row.id, user_id=row.user_id, title=row.title, model=row.model, created_at=row.created_at)


def get_chat(chat_id: str) -> Optional[Chat]:
    with get_db_session() as session:
        row = session.execute(select(chats).where(chats.c.id == chat_id)).first()
        return _row_to_chat(row) if row else None


def create_chat(chat_id: str, user_id: str, title: str, model: str) -> Chat:
    """
    Create the chat unless one with this id already exists.

    Returns the stored chat, which belongs to whoever created it first; callers
    must check ownership on the result.
    """
    with get_db_session() as session:
        insert_ignoring_conflicts(
            session,
            chats,
            {
                "id": chat_id,
                "user_id": user_id,
                "title": title,
                "model": model,
                "created_at": datetime.now(timezone.utc),
            },
            ["id"],
        )
        row = session.execute(select(chats).where(chats.c.id == chat_id)).first()
    chat = _row_to_chat(row)
    if chat.user_id == user_id:
        logger.info("[chats] chat created", extra={"chat_id": chat_id, "user_id": user_id, "model": model})
    return chat


def save_message(chat_id: str, role: str, content: str) -> ChatMessage:
    now = datetime.now(timezone.utc)
    with get_db_session() as session:
        result = session.execute(
            insert(chat_messages).values(chat_id=chat_id, role=role, content=content, created_at=now)
        )
        message_id = result.inserted_primary_key[0]
    return ChatMessage(id=message_id, chat_id=chat_id, role=role, content=content, created_at=now)


def list_messages(chat_id: str) -> List[ChatMessage]:
    with get_db_session() as session:
        rows = session.execute(
            select(chat_messages)
            .where(chat_messages.c.chat_id == chat_id)
            .order_by(chat_messages.c.created_at, chat_messages.c.id)
        ).all()
        return [
            ChatMessage(
                id=row.id,
                chat_id=row.chat_id,
                role=row.role,
                content=row.content,
                created_at=row.created_at,
            )
            for row in rows
        ]


def update_chat_model(chat_id: str, model: str) -> Chat:
    with get_db_session() as session:
        result = session.execute(update(chats).where(chats.c.id == chat_id).values(model=model))
        if result.rowcount == 0:
            raise NotFoundError(f"Chat {chat_id} not found")
        row = session.execute(select(chats).where(chats.c.id == chat_id)).first()
        return _row_to_chat(row)


def delete_chat(chat_id: str) -> None:
    with get_db_session() as session:
        session.execute(delete(chat_messages).where(chat_messages.c.chat_id == chat_id))
        result = session.execute(delete(chats).where(chats.c.id == chat_id))
        if result.rowcount == 0:
            raise NotFoundError(f"Chat {chat_id} not found")
    logger.info("[chats] chat deleted", extra={"chat_id": chat_id})
