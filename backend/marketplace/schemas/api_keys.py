"""
API Key Schemas
"""

from pydantic import BaseModel, Field

from ..config import get_settings

settings = get_settings()


class ApiKeyCreateRequest(BaseModel):
    """Request model for minting a publisher API key."""

    name: str = Field(..., min_length=1, max_length=100)
    expires_in_days: int = Field(settings.api_key_default_days, description="Key lifetime in days")
