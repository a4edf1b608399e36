"""Tests for the service layer helpers and caching behaviour."""
import json
from datetime import datetime, timezone
from unittest.mock import MagicMock

import pytest
from sqlalchemy import insert
from sqlalchemy.exc import IntegrityError

from catalog.exceptions import ConflictError, NotFoundError
from catalog.models.review import Review
from catalog.schemas.product import ProductCreate, ProductUpdate
from catalog.schemas.review import ReviewCreate
from catalog.services.product_service import (
    ProductService,
    coerce_page_number,
    escape_like,
    parse_product_id,
)
from catalog.services.review_service import Reviewer, ReviewService, summarize_ratings
from catalog.utils.cache import CacheService


def widget(**overrides):
    data = {"name": "Widget", "description": "A widget", "price": 9.99, "category": "other", "stock": 5}
    data.update(overrides)
    return ProductCreate(**data)


@pytest.fixture
def redis_mock():
    client = MagicMock()
    client.get.return_value = None
    return client


@pytest.fixture
def cache(redis_mock):
    return CacheService(client=redis_mock, ttl=60, enabled=True)


def test_summarize_ratings():
    assert summarize_ratings([]) == (0, 0)
    assert summarize_ratings([4]) == (4, 1)
    assert summarize_ratings([4, 2]) == (3, 2)
    assert summarize_ratings([5, 4, 4]) == (pytest.approx(13 / 3), 3)


@pytest.mark.parametrize(
    "raw, page",
    [(None, 1), ("", 1), ("abc", 1), ("0", 1), ("-2", 1), ("nan", 1), ("inf", 1), ("3", 3), ("2.7", 2)],
)
def test_coerce_page_number(raw, page):
    assert coerce_page_number(raw) == page


def test_parse_product_id():
    assert parse_product_id("12") == 12
    for bad in ("", "abc", "1e3", "-4", "0", str(2 ** 63), "\u0661", "\u0661\u0662"):
        with pytest.raises(NotFoundError) as exc_info:
            parse_product_id(bad)
        assert exc_info.value.message == "Resource not found"


def test_escape_like():
    assert escape_like("50%_off\\") == "50\\%\\_off\\\\"


def test_create_sets_derived_fields(db_session, cache):
    service = ProductService(db_session, cache)

    product = service.create(widget(stock=0))

    assert product.id is not None
    assert product.in_stock is False
    assert product.rating == {"average": 0, "count": 0}
    assert product.reviews == []


def test_create_duplicate_name_raises_conflict(db_session, cache):
    service = ProductService(db_session, cache)
    service.create(widget())

    with pytest.raises(ConflictError):
        service.create(widget(description="Second"))


def test_update_keeps_falsy_values(db_session, cache):
    service = ProductService(db_session, cache)
    product = service.create(widget(stock=5, brand="Acme"))

    updated = service.update(str(product.id), ProductUpdate(stock=0, brand="", name=""))

    assert updated.stock == 5
    assert updated.brand == "Acme"
    assert updated.name == "Widget"


def test_update_images_null_clears(db_session, cache):
    service = ProductService(db_session, cache)
    product = service.create(widget(images=[{"url": "/a.jpg"}]))

    updated = service.update(str(product.id), ProductUpdate(images=None))

    assert updated.images == []


def test_get_detail_uses_cache(db_session, cache, redis_mock):
    service = ProductService(db_session, cache)
    product = service.create(widget())

    detail = service.get_detail(str(product.id))

    assert detail["name"] == "Widget"
    assert detail["inStock"] is True
    key, ttl, payload = redis_mock.setex.call_args.args
    assert key == f"product:{product.id}"
    assert ttl == 60
    assert json.loads(payload)["name"] == "Widget"

    redis_mock.get.return_value = json.dumps({"name": "From cache"})
    assert service.get_detail(str(product.id)) == {"name": "From cache"}


def test_mutations_invalidate_cache(db_session, cache, redis_mock):
    service = ProductService(db_session, cache)
    product = service.create(widget())
    redis_mock.delete.assert_called_with("product:top")

    service.update(str(product.id), ProductUpdate(price=12))
    redis_mock.delete.assert_called_with("product:top", f"product:{product.id}")

    ReviewService(db_session, cache).add_review(str(product.id), Reviewer("A", "Ann"), ReviewCreate(rating=4))
    redis_mock.delete.assert_called_with("product:top", f"product:{product.id}")

    service.delete(str(product.id))
    redis_mock.delete.assert_called_with("product:top", f"product:{product.id}")


def test_cache_failures_fall_back_to_database(db_session, redis_mock):
    import redis

    redis_mock.get.side_effect = redis.ConnectionError("down")
    redis_mock.setex.side_effect = redis.ConnectionError("down")
    service = ProductService(db_session, CacheService(client=redis_mock, enabled=True))
    product = service.create(widget())

    assert service.get_detail(str(product.id))["name"] == "Widget"
    assert service.get_top_rated()[0]["name"] == "Widget"


def test_disabled_cache_never_touches_redis(redis_mock):
    cache = CacheService(client=redis_mock, enabled=False)

    assert cache.get("product", "1") is None
    assert cache.set("product", "1", {}) is False
    assert cache.delete("product", "1") is False
    redis_mock.get.assert_not_called()
    redis_mock.setex.assert_not_called()
    redis_mock.delete.assert_not_called()


def test_add_review_recomputes_rating(db_session, cache):
    product = ProductService(db_session, cache).create(widget())
    service = ReviewService(db_session, cache)

    service.add_review(str(product.id), Reviewer("A", "Ann"), ReviewCreate(rating=4))
    service.add_review(str(product.id), Reviewer("B", "Bob"), ReviewCreate(rating=2))

    db_session.refresh(product)
    assert product.rating == {"average": 3, "count": 2}
    assert [r.name for r in product.reviews] == ["Ann", "Bob"]

    with pytest.raises(ConflictError):
        service.add_review(str(product.id), Reviewer("A", "Ann"), ReviewCreate(rating=1))

    db_session.refresh(product)
    assert product.rating == {"average": 3, "count": 2}
    assert len(product.reviews) == 2


def test_add_review_unique_constraint_backstop(db_session, cache):
    """A review stored by a concurrent request is caught at commit time."""
    # Keep the loaded review collection stale, as a concurrent writer would
    db_session.expire_on_commit = False
    product = ProductService(db_session, cache).create(widget())
    assert product.reviews == []

    db_session.execute(
        insert(Review.__table__).values(
            product_id=product.id,
            user_id="A",
            name="Ann",
            rating=5,
            created_at=datetime.now(timezone.utc),
        )
    )
    db_session.commit()

    with pytest.raises(ConflictError) as exc_info:
        ReviewService(db_session, cache).add_review(str(product.id), Reviewer("A", "Ann"), ReviewCreate(rating=1))

    assert exc_info.value.message == "Product already reviewed"
    assert isinstance(exc_info.value.__cause__, IntegrityError)

    db_session.refresh(product)
    assert product.rating == {"average": 0, "count": 0}
    assert [(r.user, r.rating) for r in db_session.query(Review).all()] == [("A", 5)]
