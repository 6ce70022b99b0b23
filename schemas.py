"""
Database Schemas for the Storefront Admin

Each Pydantic model describes a document in one MongoDB collection:

- Product -> "products"
- Hero    -> "heroes"
- Order   -> "orders" (written by the storefront, read and deleted here)

Use these models for validation before writing to MongoDB.
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, List, Literal, Optional, Union

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

PRODUCTS = "products"
HEROES = "heroes"
ORDERS = "orders"

CATEGORIES = ("men", "women", "kids")
SIZES = ("XS", "S", "M", "L", "XL", "XXL")
ALLOWED_IMAGE_TYPES = ("image/jpeg", "image/png", "image/jpg")
MAX_UPLOAD_BYTES = 5 * 1024 * 1024

# -----------------
# Catalog Collections
# -----------------

class Product(BaseModel):
    name: str = Field(..., min_length=1, description="Product name")
    description: str = Field(..., description="Marketing description")
    price: float = Field(..., gt=0, description="Base price in USD")
    sale_price: float = Field(..., ge=0, description="Sale price, shown instead of price when set")
    quantity: int = Field(..., ge=0, description="Units on hand")
    category: Literal["men", "women", "kids"] = Field(..., description="Storefront department")
    sizes: List[Literal["XS", "S", "M", "L", "XL", "XXL"]] = Field(..., min_length=1)
    images: List[str] = Field(..., min_length=1, description="Hosted image URLs in upload order")


class Hero(BaseModel):
    title: str = Field(..., min_length=1, description="Banner headline")
    button_text: str = Field(..., min_length=1, description="Call-to-action label")
    description: str = Field(..., min_length=1, description="Banner body text")
    image: str = Field(..., min_length=1, description="Hosted banner image URL")


# ------------
# Admin Forms
# ------------

class ProductForm(BaseModel):
    """Raw product form fields as typed by the admin."""

    model_config = ConfigDict(populate_by_name=True)

    name: str = ""
    description: str = ""
    price: str = ""
    sale_price: str = Field("", validation_alias=AliasChoices("sale_price", "newPrice"))
    quantity: str = ""
    category: str = ""
    sizes: List[str] = Field(default_factory=list)

    @field_validator("price", "sale_price", "quantity", mode="before")
    @classmethod
    def _numbers_as_text(cls, value: Any) -> Any:
        if value is None:
            return ""
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return str(value)
        return value


class HeroForm(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    title: str = ""
    button_text: str = Field("", validation_alias=AliasChoices("button_text", "subtitle"))
    description: str = ""


# ------------
# Order Models
# ------------

class Client(BaseModel):
    name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    address: Optional[str] = None


class OrderItem(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    name: str = Field("", description="Product name snapshot")
    quantity: int = Field(..., ge=1, validation_alias=AliasChoices("quantity", "qty"))
    unit_price: float = Field(..., ge=0, validation_alias=AliasChoices("unit_price", "price"))
    image_url: Optional[str] = Field(None, validation_alias=AliasChoices("image_url", "image"))
    size: Optional[str] = None


class Order(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: Optional[str] = None
    client: Optional[Client] = None
    items: List[OrderItem] = Field(default_factory=list)
    timestamp: Optional[datetime] = None

    @field_validator("timestamp", mode="before")
    @classmethod
    def _normalize(cls, value: Any) -> Optional[datetime]:
        return normalize_timestamp(value)

    @property
    def total(self) -> float:
        return order_total(self.items)


def order_total(items: List[OrderItem]) -> float:
    """Sum of quantity x unit price, computed for display and never stored."""
    return round(sum(i.quantity * i.unit_price for i in items), 2)


# ---------------------
# Timestamp wire shapes
# ---------------------

def _from_epoch(value: float, per_second: float = 1) -> datetime:
    # Out-of-range values surface as OverflowError or OSError depending on the platform
    try:
        return datetime.fromtimestamp(value / per_second, tz=timezone.utc)
    except (OverflowError, OSError) as e:
        raise ValueError(f"Timestamp out of range: {value!r}") from e


@dataclass(frozen=True)
class SecondsEpoch:
    """Timestamp sent as ``{"seconds": n, "nanoseconds": m}``."""

    seconds: int
    nanoseconds: int = 0

    def to_datetime(self) -> datetime:
        return _from_epoch(self.seconds * 1_000_000_000 + self.nanoseconds, 1e9)


@dataclass(frozen=True)
class NativeTimestamp:
    """Timestamp already stored as a native time value."""

    value: datetime

    def to_datetime(self) -> datetime:
        if self.value.tzinfo is None:
            return self.value.replace(tzinfo=timezone.utc)
        return self.value


WireTimestamp = Union[SecondsEpoch, NativeTimestamp]


def parse_timestamp(raw: Any) -> Optional[WireTimestamp]:
    """Classify a raw timestamp value into one of the two wire shapes.

    Bare numbers are milliseconds since the epoch and ISO-8601 strings are
    parsed; both count as native values.
    """
    if raw is None or raw == "":
        return None
    if isinstance(raw, (SecondsEpoch, NativeTimestamp)):
        return raw
    if isinstance(raw, datetime):
        return NativeTimestamp(raw)
    if isinstance(raw, dict):
        seconds = raw.get("seconds", raw.get("_seconds"))
        if seconds is None:
            raise ValueError(f"Unrecognized timestamp object: {raw!r}")
        nanos = raw.get("nanoseconds", raw.get("_nanoseconds", 0)) or 0
        try:
            return SecondsEpoch(int(seconds), int(nanos))
        except OverflowError as e:
            raise ValueError(f"Timestamp out of range: {raw!r}") from e
    if isinstance(raw, bool):
        raise ValueError(f"Unrecognized timestamp: {raw!r}")
    if isinstance(raw, (int, float)):
        return NativeTimestamp(_from_epoch(raw, 1000))
    if isinstance(raw, str):
        return NativeTimestamp(datetime.fromisoformat(raw.replace("Z", "+00:00")))
    raise ValueError(f"Unrecognized timestamp: {raw!r}")


def normalize_timestamp(raw: Any) -> Optional[datetime]:
    parsed = parse_timestamp(raw)
    return parsed.to_datetime() if parsed is not None else None
