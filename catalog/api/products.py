from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session
from typing import Optional

from catalog.api.deps import get_current_user
from catalog.database import get_db
from catalog.services.product_service import ProductService
from catalog.services.review_service import Reviewer, ReviewService
from catalog.schemas.product import (
    ProductCreate,
    ProductUpdate,
    ProductEnvelope,
    ProductListEnvelope,
    TopProductsEnvelope,
    MessageEnvelope,
)
from catalog.schemas.review import ReviewCreate

router = APIRouter(prefix="/products", tags=["Products"])


@router.get(
    "",
    response_model=ProductListEnvelope,
    summary="List products",
    description="Get a page of products (10 per page), newest first, with optional keyword search."
)
def list_products(
    keyword: Optional[str] = Query(None, description="Case-insensitive match on name or description"),
    page_number: Optional[str] = Query(None, alias="pageNumber", description="Page number, defaults to 1"),
    db: Session = Depends(get_db)
):
    """Get paginated list of products."""
    service = ProductService(db)
    products, total, page, total_pages = service.get_all(keyword, page_number)

    return {
        "success": True,
        "count": total,
        "page": page,
        "pages": total_pages,
        "data": products,
    }


@router.post(
    "",
    response_model=ProductEnvelope,
    status_code=status.HTTP_201_CREATED,
    summary="Create a new product",
    description="Create a product. Names must be unique."
)
def create_product(
    product_data: ProductCreate,
    db: Session = Depends(get_db)
):
    """
    Create a new product.

    - **name**: Product name, unique, at most 100 characters (required)
    - **description**: At most 1000 characters (required)
    - **price**: Non-negative price (required)
    - **category**: electronics, clothing, books, home, beauty, sports or other (required)
    - **brand**, **stock**, **images**: optional
    """
    service = ProductService(db)
    product = service.create(product_data)
    return {"success": True, "data": product}


# Registered before /{product_id} so "top" is not taken for an identifier
@router.get(
    "/top",
    response_model=TopProductsEnvelope,
    summary="Top-rated products",
    description="Get up to five products with the highest average rating."
)
def get_top_products(db: Session = Depends(get_db)):
    """Get the top-rated products. Results are cached in Redis."""
    service = ProductService(db)
    return {"success": True, "data": service.get_top_rated()}


@router.get(
    "/{product_id}",
    response_model=ProductEnvelope,
    summary="Get product by ID",
    description="Get detailed information about a product, including its reviews."
)
def get_product(
    product_id: str,
    db: Session = Depends(get_db)
):
    """
    Get a product by ID.

    This endpoint uses Redis caching for improved performance.
    """
    service = ProductService(db)
    return {"success": True, "data": service.get_detail(product_id)}


@router.put(
    "/{product_id}",
    response_model=ProductEnvelope,
    summary="Update a product",
    description="Update product details. Only provided, non-empty fields are updated."
)
def update_product(
    product_id: str,
    product_data: ProductUpdate,
    db: Session = Depends(get_db)
):
    """
    Update a product.

    Partial updates are supported. Zero or empty values leave the stored
    value unchanged, except for images which are replaced whenever sent.
    """
    service = ProductService(db)
    product = service.update(product_id, product_data)
    return {"success": True, "data": product}


@router.delete(
    "/{product_id}",
    response_model=MessageEnvelope,
    summary="Delete a product",
    description="Delete a product and its reviews. Associated cache is also cleared."
)
def delete_product(
    product_id: str,
    db: Session = Depends(get_db)
):
    """Delete a product."""
    service = ProductService(db)
    service.delete(product_id)
    return {"success": True, "message": "Product removed successfully"}


@router.post(
    "/{product_id}/reviews",
    response_model=MessageEnvelope,
    status_code=status.HTTP_201_CREATED,
    summary="Review a product",
    description="Add the caller's review. Each user may review a product once."
)
def create_product_review(
    product_id: str,
    review_data: ReviewCreate,
    user: Reviewer = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """
    Add a review.

    - **rating**: 1 to 5 (required)
    - **title**, **comment**: optional
    """
    service = ReviewService(db)
    service.add_review(product_id, user, review_data)
    return {"success": True, "message": "Review added successfully"}
