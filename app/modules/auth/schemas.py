from pydantic import BaseModel
from typing import Optional
from uuid import UUID
from datetime import datetime


# Auth context schemas
class AuthContext(BaseModel):
    user_id: UUID
    email: Optional[str] = None
    token_expires_at: Optional[datetime] = None
