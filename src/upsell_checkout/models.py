"""Pydantic models for the upsell checkout widget.

Covers storefront payload shapes, the grouped product model, cart lines and
snapshots, cart line changes, status notices, and the per-render view handed
to the presentation layer.
"""

from __future__ import annotations

import enum
from collections.abc import Iterable
from decimal import Decimal
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, computed_field, field_validator


# ---------------------------------------------------------------------------
# Storefront payloads
# ---------------------------------------------------------------------------


class MoneyV2(BaseModel):
    """Price as returned by the storefront (amount is a decimal string)."""

    amount: Decimal
    currency_code: str = Field(alias="currencyCode")


class ImageNode(BaseModel):
    """Variant image; the storefront may omit the URL."""

    url: str | None = None
    alt_text: str | None = Field(default=None, alias="altText")


class ParentProductNode(BaseModel):
    title: str


class VariantNode(BaseModel):
    """A ``ProductVariant`` node from the batched ``nodes(ids:)`` query."""

    id: str
    title: str
    price_v2: MoneyV2 = Field(alias="priceV2")
    image: ImageNode | None = None
    product: ParentProductNode


# ---------------------------------------------------------------------------
# Grouped product model
# ---------------------------------------------------------------------------


class VariantRef(BaseModel):
    """A purchasable variant as displayed by the widget."""

    model_config = ConfigDict(frozen=True)

    id: str
    title: str
    price: str
    image: str


class ProductGroup(BaseModel):
    """All upsell variants sharing one parent product title."""

    model_config = ConfigDict(frozen=True)

    heading: str
    variants: tuple[VariantRef, ...] = Field(min_length=1)

    @property
    def first_variant(self) -> VariantRef:
        return self.variants[0]

    def find_variant(self, variant_id: str | None) -> VariantRef | None:
        """Return the variant with *variant_id*, or ``None``."""
        for variant in self.variants:
            if variant.id == variant_id:
                return variant
        return None


# ---------------------------------------------------------------------------
# Cart
# ---------------------------------------------------------------------------


class CartLine(BaseModel):
    """One line of the live order."""

    merchandise_id: str
    quantity: int = 1


class CartSnapshot(BaseModel):
    """Point-in-time set of merchandise ids present in the cart."""

    model_config = ConfigDict(frozen=True)

    merchandise_ids: frozenset[str] = frozenset()

    @classmethod
    def from_lines(cls, lines: Iterable[CartLine]) -> CartSnapshot:
        return cls(merchandise_ids=frozenset(line.merchandise_id for line in lines))

    def __contains__(self, variant_id: object) -> bool:
        return variant_id in self.merchandise_ids

    def __len__(self) -> int:
        return len(self.merchandise_ids)


class CartLineChange(BaseModel):
    """A single cart line change request (only additions are issued)."""

    type: Literal["addCartLine"] = "addCartLine"
    merchandise_id: str
    quantity: int = 1

    @field_validator("quantity")
    @classmethod
    def _positive_quantity(cls, value: int) -> int:
        if value < 1:
            raise ValueError("quantity must be at least 1")
        return value


class CartLineChangeResult(BaseModel):
    """Outcome of a cart line change that reached the storefront."""

    type: Literal["success", "error"]
    message: str = ""


class MembershipStatus(BaseModel):
    in_cart: bool


# ---------------------------------------------------------------------------
# Status banner
# ---------------------------------------------------------------------------


class StatusSeverity(str, enum.Enum):
    """Severity of the banner shown above the upsell block."""

    INFO = "info"
    SUCCESS = "success"
    CRITICAL = "critical"


class Status(BaseModel):
    """A single transient notice for the shopper."""

    model_config = ConfigDict(frozen=True)

    severity: StatusSeverity
    message: str

    @classmethod
    def info(cls, message: str) -> Status:
        return cls(severity=StatusSeverity.INFO, message=message)

    @classmethod
    def success(cls, message: str) -> Status:
        return cls(severity=StatusSeverity.SUCCESS, message=message)

    @classmethod
    def critical(cls, message: str) -> Status:
        return cls(severity=StatusSeverity.CRITICAL, message=message)


# ---------------------------------------------------------------------------
# Presentation surface
# ---------------------------------------------------------------------------


class ProductCard(BaseModel):
    """One product group as the presentation layer should render it."""

    heading: str
    variants: list[VariantRef]
    selected: VariantRef
    in_cart: bool = False
    has_variant_choice: bool = False

    @computed_field  # type: ignore[prop-decorator]
    @property
    def action_label(self) -> str:
        return "In Cart" if self.in_cart else "Add to Cart"


class WidgetView(BaseModel):
    """Everything a single render of the upsell block needs."""

    status: Status | None = None
    loading: bool = True
    products: list[ProductCard] = Field(default_factory=list)
