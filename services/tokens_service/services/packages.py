"""Token package catalog.

The catalog is server authoritative: clients send only a package id and the
token count and price are always re-derived from here.
"""

from dataclasses import dataclass

from libs.common.errors import InvalidPackage


@dataclass(frozen=True)
class TokenPackage:
    id: str
    tokens: int
    price_cents: int
    name: str

    @property
    def line_item_name(self) -> str:
        return f"{self.name} - {self.tokens:,} Tokens"

    @property
    def line_item_description(self) -> str:
        return f"Purchase {self.tokens:,} tokens for your marketing campaigns"


TOKEN_PACKAGES: dict[str, TokenPackage] = {
    "small": TokenPackage(id="small", tokens=1000, price_cents=9900, name="Small Package"),
    "medium": TokenPackage(
        id="medium", tokens=2500, price_cents=19900, name="Medium Package"
    ),
    "large": TokenPackage(id="large", tokens=5000, price_cents=34900, name="Large Package"),
}


def get_package(package_id: str) -> TokenPackage:
    """Look up a catalog package, raising InvalidPackage for unknown ids."""
    package = TOKEN_PACKAGES.get(package_id) if isinstance(package_id, str) else None
    if package is None:
        raise InvalidPackage()
    return package


def list_packages() -> list[TokenPackage]:
    return sorted(TOKEN_PACKAGES.values(), key=lambda p: p.price_cents)
