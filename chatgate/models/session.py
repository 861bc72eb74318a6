"""
chatgate/models/session.py

Authenticated session as seen by the policy engine.
"""

from typing import Literal, Optional
from pydantic import BaseModel, ConfigDict


class Session(BaseModel):
    """
    Identity of the caller for one request.

    is_admin and subscription_type_id are read from the user record when the
    session is built, never from the token, so admin edits apply on the next
    request.
    """
    model_config = ConfigDict(frozen=True)

    user_id: str
    subscription_type_id: int
    is_admin: bool = False
    email: Optional[str] = None
    auth_mechanism: Literal["session_jwt", "x_user_id"] = "session_jwt"
