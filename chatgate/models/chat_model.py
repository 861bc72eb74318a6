"""
chatgate/models/chat_model.py

Catalog of chat model variants a subscription type can grant.
"""

from typing import Dict, List
from pydantic import BaseModel, ConfigDict


class ChatModel(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    description: str


DEFAULT_CHAT_MODEL = "chat-model"

CHAT_MODELS: List[ChatModel] = [
    ChatModel(
        id="chat-model",
        name="Basic Chat",
        description="Primary model for all-purpose chat",
    ),
    ChatModel(
        id="gpt-3.5",
        name="GPT-3.5",
        description="Fast and efficient for general chat",
    ),
    ChatModel(
        id="gpt-4",
        name="GPT-4",
        description="Advanced model for complex analysis and reasoning",
    ),
    ChatModel(
        id="chat-model-reasoning",
        name="GPT-4 with Reasoning",
        description="Uses step-by-step reasoning with think tags",
    ),
]

CHAT_MODELS_BY_ID: Dict[str, ChatModel] = {m.id: m for m in CHAT_MODELS}


def is_known_model(model_id: str) -> bool:
    return model_id in CHAT_MODELS_BY_ID
