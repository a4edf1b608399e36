from dataclasses import dataclass
from typing import Iterable, Tuple
import logging

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from catalog.exceptions import ConflictError
from catalog.models.product import Product
from catalog.models.review import Review
from catalog.schemas.review import ReviewCreate
from catalog.services.product_service import ProductService
from catalog.utils.cache import CacheService, cache_service

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Reviewer:
    """Identity of the user submitting a review, as supplied by the auth gateway."""
    id: str
    name: str


def summarize_ratings(ratings: Iterable[int]) -> Tuple[float, int]:
    """
    Compute (average, count) over the full set of ratings.

    An empty set yields (0, 0).
    """
    ratings = list(ratings)
    if not ratings:
        return 0, 0
    return sum(ratings) / len(ratings), len(ratings)


class ReviewService:
    """
    Service class for appending reviews and maintaining rating statistics.

    The product's average and count are recomputed from every stored review
    on each insertion so they cannot drift from the review collection.
    """

    def __init__(self, db: Session, cache: CacheService = None):
        self.db = db
        self.products = ProductService(db, cache or cache_service)

    def add_review(self, product_id: str, reviewer: Reviewer, review_data: ReviewCreate) -> Review:
        """
        Add a review to a product.

        Raises:
            NotFoundError: If the product doesn't exist
            ConflictError: If the reviewer already reviewed this product
        """
        product = self.products.get_by_id(product_id)

        already_reviewed = any(r.user == reviewer.id for r in product.reviews)
        if already_reviewed:
            raise ConflictError("Product already reviewed")

        review = Review(
            user=reviewer.id,
            name=reviewer.name,
            rating=review_data.rating,
            title=review_data.title,
            comment=review_data.comment,
        )
        product.reviews.append(review)
        self._update_rating(product)

        try:
            self.db.commit()
        except IntegrityError as e:
            # A concurrent request stored a review for the same user first
            self.db.rollback()
            logger.warning(f"Duplicate review rejected for product #{product.id}: {e.orig}")
            raise ConflictError("Product already reviewed") from e
        except Exception as e:
            self.db.rollback()
            logger.error(f"Error saving review for product #{product.id}: {e}")
            raise

        self.db.refresh(review)
        self.products.invalidate_cache(product.id)
        logger.info(
            f"Review #{review.id} added to product #{product.id} "
            f"(average {product.rating_average:.2f} over {product.rating_count})"
        )

        return review

    def _update_rating(self, product: Product) -> None:
        average, count = summarize_ratings(r.rating for r in product.reviews)
        product.rating_average = average
        product.rating_count = count
