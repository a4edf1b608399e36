from sqlalchemy import Column, Integer, String, Text, DateTime, ForeignKey, UniqueConstraint
from sqlalchemy.orm import relationship

from catalog.database import Base
from catalog.models.product import utc_now

USER_ID_MAX_LENGTH = 64


class Review(Base):
    """
    Review model representing a customer rating of a product.

    Attributes:
        id: Unique identifier for the review
        product_id: Reference to the reviewed product
        user: Identifier of the submitting user
        name: Display name of the submitter at review time
        rating: Rating from 1 to 5
        title: Optional headline
        comment: Optional free text
        created_at: Timestamp when review was submitted
    """
    __tablename__ = "reviews"

    id = Column(Integer, primary_key=True, index=True)
    product_id = Column(
        Integer,
        ForeignKey("products.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    user = Column("user_id", String(USER_ID_MAX_LENGTH), nullable=False)
    name = Column(Text, nullable=False, default="")
    rating = Column(Integer, nullable=False)
    title = Column(String(255), nullable=True)
    comment = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), default=utc_now, nullable=False)

    # Relationship to Product
    product = relationship("Product", back_populates="reviews")

    # One review per user per product
    __table_args__ = (
        UniqueConstraint("product_id", "user_id", name="uq_review_product_user"),
    )

    def __repr__(self):
        return f"<Review(id={self.id}, product_id={self.product_id}, rating={self.rating})>"
