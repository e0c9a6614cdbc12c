"""
Identity Models

Data structures produced by the identity resolver and the API key service.
"""

from datetime import datetime
from enum import Enum
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict


class AuthMethod(str, Enum):
    """How the caller authenticated"""

    SESSION = "session"
    API_KEY = "api_key"


class CallerIdentity(BaseModel):
    """
    Authenticated caller.

    Session callers carry only the identity provider's subject id. API key
    callers are additionally scoped to the publisher that owns the key.
    """

    model_config = ConfigDict(frozen=True)

    subject_id: str
    auth_method: AuthMethod = AuthMethod.SESSION
    publisher_id: Optional[UUID] = None
    api_key_id: Optional[UUID] = None


class ApiKeyInfo(BaseModel):
    """API key metadata (never includes the secret or its hash)"""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    name: str
    key_prefix: str
    created_at: datetime
    expires_at: datetime
    last_used_at: Optional[datetime] = None


class ApiKeyCreated(ApiKeyInfo):
    key: str  # Only returned on creation
