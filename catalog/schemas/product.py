from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from catalog.models.product import CATEGORIES

NAME_MAX_LENGTH = 100
DESCRIPTION_MAX_LENGTH = 1000

# Messages reported when a required field is absent from the request body
REQUIRED_MESSAGES = {
    "name": "Product name is required",
    "description": "Product description is required",
    "price": "Product price is required",
    "category": "Product category is required",
    "url": "Image url is required",
    "rating": "Rating is required",
}


def _check_text(value: Optional[str], label: str, max_length: int, required: bool):
    if value is None:
        return value
    value = value.strip()
    if required and not value:
        raise ValueError(f"{label} is required")
    if len(value) > max_length:
        raise ValueError(f"{label} cannot exceed {max_length} characters")
    return value


def _check_price(value):
    if value is not None and value < 0:
        raise ValueError("Price must be a positive number")
    return value


def _check_stock(value):
    if value is not None and value < 0:
        raise ValueError("Stock cannot be negative")
    return value


def _check_category(value, required=False):
    if value is None:
        return value
    value = value.strip()
    if required and not value:
        raise ValueError("Product category is required")
    if value not in CATEGORIES:
        raise ValueError("Please select a valid category")
    return value


def _strip(value):
    return value.strip() if isinstance(value, str) else value


class ProductImage(BaseModel):
    """Image attached to a product."""
    url: str = Field(..., description="Image URL")
    alt: Optional[str] = Field(None, description="Alternative text")

    @field_validator("url")
    @classmethod
    def validate_url(cls, value):
        value = value.strip()
        if not value:
            raise ValueError("Image url is required")
        return value

    @field_validator("alt")
    @classmethod
    def strip_alt(cls, value):
        return _strip(value)


class ProductCreate(BaseModel):
    """Schema for creating a new product."""
    name: str = Field(..., description="Product name, unique, at most 100 characters")
    description: str = Field(..., description="Product description, at most 1000 characters")
    price: float = Field(..., allow_inf_nan=False, description="Product price (must be non-negative)")
    category: str = Field(..., description=f"One of: {', '.join(CATEGORIES)}")
    brand: Optional[str] = Field(None, description="Brand name")
    stock: int = Field(0, description="Available stock (must be non-negative)")
    images: List[ProductImage] = Field(default_factory=list)

    @field_validator("name")
    @classmethod
    def validate_name(cls, value):
        return _check_text(value, "Product name", NAME_MAX_LENGTH, required=True)

    @field_validator("description")
    @classmethod
    def validate_description(cls, value):
        return _check_text(value, "Product description", DESCRIPTION_MAX_LENGTH, required=True)

    @field_validator("price")
    @classmethod
    def validate_price(cls, value):
        return _check_price(value)

    @field_validator("stock")
    @classmethod
    def validate_stock(cls, value):
        return _check_stock(value)

    @field_validator("category")
    @classmethod
    def validate_category(cls, value):
        return _check_category(value, required=True)

    @field_validator("brand")
    @classmethod
    def strip_brand(cls, value):
        return _strip(value)


class ProductUpdate(BaseModel):
    """
    Schema for updating an existing product. All fields are optional.

    Empty strings and zero numbers are accepted here and treated as
    "keep the current value" by the service.
    """
    name: Optional[str] = None
    description: Optional[str] = None
    price: Optional[float] = Field(None, allow_inf_nan=False)
    category: Optional[str] = None
    brand: Optional[str] = None
    stock: Optional[int] = None
    images: Optional[List[ProductImage]] = None

    @field_validator("name")
    @classmethod
    def validate_name(cls, value):
        return _check_text(value, "Product name", NAME_MAX_LENGTH, required=False)

    @field_validator("description")
    @classmethod
    def validate_description(cls, value):
        return _check_text(value, "Product description", DESCRIPTION_MAX_LENGTH, required=False)

    @field_validator("category")
    @classmethod
    def validate_category(cls, value):
        # An empty category means "not supplied"
        if value is not None and not value.strip():
            return ""
        return _check_category(value)

    @field_validator("price")
    @classmethod
    def validate_price(cls, value):
        return _check_price(value)

    @field_validator("stock")
    @classmethod
    def validate_stock(cls, value):
        return _check_stock(value)

    @field_validator("brand")
    @classmethod
    def strip_brand(cls, value):
        return _strip(value)


class Rating(BaseModel):
    """Aggregated review statistics."""
    average: float = 0
    count: int = 0


class ReviewResponse(BaseModel):
    """Schema for a review embedded in a product response."""
    id: int
    user: str
    name: str
    rating: int
    title: Optional[str] = None
    comment: Optional[str] = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True, populate_by_name=True, alias_generator=to_camel)


class ProductResponse(BaseModel):
    """Schema for product response including derived fields and reviews."""
    id: int
    name: str
    description: str
    price: float
    category: str
    brand: Optional[str] = None
    stock: int
    images: List[ProductImage] = []
    rating: Rating
    in_stock: bool
    reviews: List[ReviewResponse] = []
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True, populate_by_name=True, alias_generator=to_camel)


class ProductEnvelope(BaseModel):
    """Single product response envelope."""
    success: bool = True
    data: ProductResponse


class ProductListEnvelope(BaseModel):
    """Paginated product list response envelope."""
    success: bool = True
    count: int
    page: int
    pages: int
    data: List[ProductResponse]


class TopProductsEnvelope(BaseModel):
    """Top-rated products response envelope."""
    success: bool = True
    data: List[ProductResponse]


class MessageEnvelope(BaseModel):
    """Envelope for operations that only report a message."""
    success: bool = True
    message: str
