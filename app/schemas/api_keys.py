"""Delegate API key schemas"""

from datetime import datetime
from typing import List, Optional

from pydantic import ConfigDict, Field
from pydantic.alias_generators import to_camel

from app.schemas.common import CamelModel


class ApiKeyCreate(CamelModel):
    """Schema for creating a delegate API key"""

    name: str = Field(..., min_length=1, max_length=100)
    expires_at: Optional[datetime] = None


class ApiKeyResponse(CamelModel):
    """Key record as returned to its owner (never contains the secret)"""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )

    id: str
    name: str
    key_prefix: str
    created_at: datetime
    expires_at: Optional[datetime] = None
    revoked: bool = False
    revoked_at: Optional[datetime] = None
    last_used_at: Optional[datetime] = None


class ApiKeyListResponse(CamelModel):
    """Response for GET /tools/api-keys"""

    keys: List[ApiKeyResponse]


class ApiKeyCreatedResponse(CamelModel):
    """Response for POST /tools/api-keys; the only time secret_key is shown"""

    key: ApiKeyResponse
    secret_key: str
    warning: str = "Save this key securely! It will not be shown again."


class ApiKeyRevokeResponse(CamelModel):
    """Response for DELETE /tools/api-keys/{key_id}"""

    success: bool = True
    message: str = "API key revoked"
