"""Checkout and payment confirmation schemas.

Field names follow the storefront's camelCase contract.
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class PackageResponse(CamelModel):
    id: str
    name: str
    tokens: int
    price_cents: int


class PackageListResponse(CamelModel):
    packages: list[PackageResponse]
    currency: str


class CheckoutRequest(CamelModel):
    package_id: str = Field(..., min_length=1)


class CheckoutResponse(CamelModel):
    session_id: str
    url: Optional[str] = None
    amount: int
    tokens: int
    package_name: str


class WebhookAck(BaseModel):
    received: bool = True
    status: str


class ConfirmationResponse(CamelModel):
    session_id: str
    status: str
    tokens_credited: int = 0
    token_balance: Optional[int] = None
