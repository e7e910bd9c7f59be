"""
Pydantic schemas for user summaries embedded in booking responses.
"""

import uuid

from pydantic import BaseModel


class UserSummary(BaseModel):
    id: uuid.UUID
    username: str
    email: str

    model_config = {"from_attributes": True}
