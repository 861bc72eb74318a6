from datetime import datetime
from typing import Literal
from pydantic import BaseModel, ConfigDict


class Chat(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    user_id: str
    title: str
    model: str
    created_at: datetime


class ChatMessage(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: int
    chat_id: str
    role: Literal["user", "assistant"]
    content: str
    created_at: datetime
