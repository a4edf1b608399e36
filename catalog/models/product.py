from datetime import datetime, timezone

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    Float,
    Integer,
    String,
    Text,
)
from sqlalchemy.orm import relationship

from catalog.database import Base

CATEGORIES = ("electronics", "clothing", "books", "home", "beauty", "sports", "other")


def utc_now():
    return datetime.now(timezone.utc)


class Product(Base):
    """
    Product model representing an item in the catalog.

    Attributes:
        id: Unique identifier for the product
        name: Product name (unique)
        description: Product description
        price: Product price (must be non-negative)
        category: One of CATEGORIES
        brand: Optional brand name
        stock: Available quantity (must be non-negative)
        images: List of {"url", "alt"} objects
        rating_average: Mean of all review ratings
        rating_count: Number of reviews
        in_stock: Whether stock is above zero
        reviews: Reviews submitted for this product, oldest first
        created_at: Timestamp when product was created
        updated_at: Timestamp when product was last updated
    """
    __tablename__ = "products"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(100), nullable=False, unique=True, index=True)
    description = Column(Text, nullable=False)
    price = Column(Float, nullable=False)
    category = Column(String(32), nullable=False, index=True)
    brand = Column(Text, nullable=True)
    stock = Column(Integer, nullable=False, default=0)
    images = Column(JSON, nullable=False, default=list)
    rating_average = Column(Float, nullable=False, default=0)
    rating_count = Column(Integer, nullable=False, default=0)
    in_stock = Column(Boolean, nullable=False, default=False)
    # Microsecond timestamps keep newest-first ordering stable within one second
    created_at = Column(DateTime(timezone=True), default=utc_now, nullable=False, index=True)
    updated_at = Column(DateTime(timezone=True), default=utc_now, onupdate=utc_now, nullable=False)

    reviews = relationship(
        "Review",
        back_populates="product",
        cascade="all, delete-orphan",
        order_by="Review.id",
        lazy="selectin",
    )

    # Database-level constraints to ensure data integrity
    __table_args__ = (
        CheckConstraint("price >= 0", name="check_price_non_negative"),
        CheckConstraint("stock >= 0", name="check_stock_non_negative"),
        CheckConstraint(
            "rating_average >= 0 AND rating_average <= 5",
            name="check_rating_average_range",
        ),
    )

    @property
    def rating(self) -> dict:
        return {"average": self.rating_average, "count": self.rating_count}

    def refresh_stock_status(self) -> None:
        self.in_stock = (self.stock or 0) > 0

    def __repr__(self):
        return f"<Product(id={self.id}, name='{self.name}', stock={self.stock})>"
