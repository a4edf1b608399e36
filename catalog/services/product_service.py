from sqlalchemy.orm import Session
from sqlalchemy.exc import IntegrityError
from sqlalchemy import or_
from typing import Optional, List, Tuple
import math
import logging

from catalog.exceptions import ConflictError, NotFoundError
from catalog.models.product import Product
from catalog.models.review import Review  # noqa: F401  (registers the reviews mapper)
from catalog.schemas.product import ProductCreate, ProductUpdate, ProductResponse
from catalog.utils.cache import CacheService, cache_service

logger = logging.getLogger(__name__)

PAGE_SIZE = 10
TOP_PRODUCTS_LIMIT = 5

# Largest value a 64-bit integer primary key can hold
MAX_ID = 2 ** 63 - 1

# Fields copied on update only when the supplied value is truthy
TRUTHY_UPDATE_FIELDS = ("name", "description", "price", "category", "brand", "stock")


def parse_product_id(product_id: str) -> int:
    """
    Convert a path identifier to a primary key.

    Malformed identifiers are reported exactly like missing ones.
    """
    if not (product_id.isascii() and product_id.isdigit()):
        raise NotFoundError("Resource not found")
    value = int(product_id)
    if value < 1 or value > MAX_ID:
        raise NotFoundError("Resource not found")
    return value


def coerce_page_number(page_number: Optional[str]) -> int:
    """Page numbers default to 1 when absent, non-numeric or non-positive."""
    if page_number is None:
        return 1
    try:
        value = float(page_number)
    except ValueError:
        return 1
    if math.isnan(value) or math.isinf(value) or value < 1:
        return 1
    return int(value)


def escape_like(keyword: str) -> str:
    """Escape LIKE wildcards so the keyword matches as a literal substring."""
    return keyword.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def serialize_product(product: Product) -> dict:
    """JSON-ready representation used for responses and the cache."""
    return ProductResponse.model_validate(product).model_dump(mode="json", by_alias=True)


class ProductService:
    """
    Service class for Product CRUD operations.

    This service handles:
    - Listing products with keyword search and pagination
    - Reading products (with caching)
    - Creating, updating and deleting products
    - The top-rated listing
    - Cache invalidation
    """

    CACHE_PREFIX = "product"
    TOP_KEY = "top"

    def __init__(self, db: Session, cache: CacheService = None):
        self.db = db
        self.cache = cache or cache_service

    def get_all(
        self,
        keyword: Optional[str] = None,
        page_number: Optional[str] = None,
    ) -> Tuple[List[Product], int, int, int]:
        """
        Get one page of products, newest first.

        Args:
            keyword: Optional case-insensitive substring of name or description
            page_number: Raw page number from the query string

        Returns:
            Tuple of (products list, total count, page, total pages)
        """
        page = coerce_page_number(page_number)
        query = self.db.query(Product)

        # Apply search filter if provided
        if keyword:
            pattern = f"%{escape_like(keyword)}%"
            query = query.filter(
                or_(
                    Product.name.ilike(pattern, escape="\\"),
                    Product.description.ilike(pattern, escape="\\"),
                )
            )

        total = query.count()
        total_pages = math.ceil(total / PAGE_SIZE)

        offset = (page - 1) * PAGE_SIZE
        if offset >= total:
            # Past the last page; also keeps huge offsets away from the database
            return [], total, page, total_pages

        products = (
            query.order_by(Product.created_at.desc(), Product.id.desc())
            .offset(offset)
            .limit(PAGE_SIZE)
            .all()
        )

        return products, total, page, total_pages

    def get_by_id(self, product_id: str) -> Product:
        """
        Get a product by ID from the database.

        Raises:
            NotFoundError: If the identifier is malformed or unknown
        """
        pk = parse_product_id(product_id)
        product = self.db.query(Product).filter(Product.id == pk).first()

        if not product:
            raise NotFoundError("Product not found")

        return product

    def get_detail(self, product_id: str) -> dict:
        """
        Get product details from cache or database.

        Returns a dictionary suitable for the API response and caches it
        on a miss.
        """
        pk = parse_product_id(product_id)
        cached = self.cache.get(self.CACHE_PREFIX, str(pk))
        if cached:
            return cached

        product_dict = serialize_product(self.get_by_id(product_id))
        self.cache.set(self.CACHE_PREFIX, str(pk), product_dict)
        return product_dict

    def create(self, product_data: ProductCreate) -> Product:
        """
        Create a new product.

        Raises:
            ConflictError: If a product with the same name exists
            IntegrityError: If a concurrent insert claimed the name first
        """
        existing = self.db.query(Product.id).filter(Product.name == product_data.name).first()
        if existing:
            raise ConflictError("Product already exists")

        product = Product(
            name=product_data.name,
            description=product_data.description,
            price=product_data.price,
            category=product_data.category,
            brand=product_data.brand,
            stock=product_data.stock,
            images=[image.model_dump() for image in product_data.images],
            rating_average=0,
            rating_count=0,
        )
        product.refresh_stock_status()

        self.db.add(product)
        self._commit()
        self.db.refresh(product)

        self.invalidate_cache()
        logger.info(f"Product #{product.id} '{product.name}' created")

        return product

    def update(self, product_id: str, product_data: ProductUpdate) -> Product:
        """
        Update an existing product.

        Name, description, price, category, brand and stock are replaced only
        when the new value is truthy, so zero stock or an empty string keeps
        the stored value. Images are replaced whenever the field is sent.
        """
        product = self.get_by_id(product_id)

        for field in TRUTHY_UPDATE_FIELDS:
            value = getattr(product_data, field)
            if value:
                setattr(product, field, value)

        if "images" in product_data.model_fields_set:
            images = product_data.images or []
            product.images = [image.model_dump() for image in images]

        product.refresh_stock_status()

        self._commit()
        self.db.refresh(product)

        self.invalidate_cache(product.id)
        logger.info(f"Product #{product.id} updated")

        return product

    def delete(self, product_id: str) -> None:
        """Permanently delete a product and its reviews."""
        product = self.get_by_id(product_id)
        pk = product.id

        self.db.delete(product)
        self._commit()

        self.invalidate_cache(pk)
        logger.info(f"Product #{pk} deleted")

    def get_top_rated(self) -> List[dict]:
        """Get the highest rated products, best average first."""
        cached = self.cache.get(self.CACHE_PREFIX, self.TOP_KEY)
        if cached is not None:
            return cached

        products = (
            self.db.query(Product)
            .order_by(
                Product.rating_average.desc(),
                Product.rating_count.desc(),
                Product.created_at.desc(),
            )
            .limit(TOP_PRODUCTS_LIMIT)
            .all()
        )
        top = [serialize_product(p) for p in products]
        self.cache.set(self.CACHE_PREFIX, self.TOP_KEY, top)
        return top

    def _commit(self) -> None:
        try:
            self.db.commit()
        except IntegrityError as e:
            self.db.rollback()
            logger.warning(f"Integrity error writing product: {e.orig}")
            raise
        except Exception as e:
            self.db.rollback()
            logger.error(f"Error writing product: {e}")
            raise

    def invalidate_cache(self, product_id: int = None) -> None:
        """Invalidate cached details for a product and the top-rated list."""
        keys = [self.TOP_KEY]
        if product_id is not None:
            keys.append(str(product_id))
        self.cache.delete(self.CACHE_PREFIX, *keys)
