from typing import Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field


class AuthUser(BaseModel):
    """
    Represents an authenticated user from the identity provider.
    """

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    user_id: str = Field(..., alias="sub", min_length=1)
    email: Optional[EmailStr] = None
    email_verified: bool = False
    role: str = "authenticated"
