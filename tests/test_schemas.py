from datetime import datetime, timedelta, timezone

import pytest
from bson import ObjectId
from pydantic import ValidationError

from schemas import (
    ComboCreate,
    ContactStatusUpdate,
    OrderCreate,
    compute_combo_price,
    normalize_combo,
    normalize_product,
    slugify,
)


@pytest.mark.parametrize("name,slug", [
    ("Royal Teak Sofa", "royal-teak-sofa"),
    ("  Oak -- Dining   Table!! ", "oak-dining-table"),
    ("L-Shaped Sofa (3+2)", "l-shaped-sofa-3-2"),
    ("Chair 2024", "chair-2024"),
    ("Café Chair", "caf-chair"),
])
def test_slugify(name, slug):
    assert slugify(name) == slug


def test_slugify_is_idempotent():
    slug = slugify("King Size Bed / Storage")
    assert slugify(slug) == slug
    assert slugify("King Size Bed / Storage") == slug


def test_slugify_symbols_only_gives_empty_slug():
    assert slugify("!!! ???") == ""
    assert slugify("---") == ""


def test_combo_price():
    assert compute_combo_price(1000, 20) == 800.0
    assert compute_combo_price(1000, 0) == 1000
    assert compute_combo_price(999.99, 100) == 0
    assert compute_combo_price(None, 20) is None
    assert compute_combo_price(1000, None) is None


def test_normalize_product_only_reslugs_on_name_change():
    current = {"name": "Oak Table", "slug": "oak-table"}
    assert "slug" not in normalize_product({"price": 10}, current)
    assert "slug" not in normalize_product({"name": "Oak Table"}, current)
    assert normalize_product({"name": "Walnut Table"}, current)["slug"] == "walnut-table"
    assert normalize_product({"name": "New Bed"})["slug"] == "new-bed"


def test_normalize_combo_merges_with_stored_values():
    current = {"original_price": 2000, "discount_percentage": 10, "combo_price": 1800}
    assert normalize_combo({"discount_percentage": 25}, current)["combo_price"] == 1500
    assert normalize_combo({"original_price": 1000}, current)["combo_price"] == 900
    assert "combo_price" not in normalize_combo({"name": "x"}, {})


def test_combo_needs_two_products():
    with pytest.raises(ValidationError) as exc:
        ComboCreate(
            name="Living Room Set",
            description="Sofa only",
            products=[{"product": str(ObjectId())}],
            discount_percentage=10,
            original_price=100,
        )
    assert exc.value.errors()[0]["loc"] == ("products",)


def test_combo_discount_range_and_product_ids():
    base = dict(name="Set", description="Two items", original_price=100,
                products=[{"product": str(ObjectId())}, {"product": str(ObjectId()), "quantity": 2}])
    assert ComboCreate(discount_percentage=100, **base).products[0].quantity == 1
    with pytest.raises(ValidationError):
        ComboCreate(discount_percentage=101, **base)
    with pytest.raises(ValidationError):
        ComboCreate(discount_percentage=10, **dict(base, products=[{"product": "nope"}, {"product": "nah"}]))


def test_combo_valid_until_stored_as_naive_utc():
    ist = timezone(timedelta(hours=5, minutes=30))
    combo = ComboCreate(
        name="Set", description="d", original_price=100, discount_percentage=5,
        products=[{"product": str(ObjectId())}, {"product": str(ObjectId())}],
        valid_until=datetime(2030, 1, 1, 5, 30, tzinfo=ist),
    )
    assert combo.valid_until == datetime(2030, 1, 1, 0, 0)


def test_order_needs_items():
    with pytest.raises(ValidationError):
        OrderCreate(
            order_type="buy_now",
            customer={"name": "Asha", "phone": "98765", "address": "MG Road"},
            items=[],
            total_amount=0,
        )


def test_contact_status_cannot_be_set_to_replied():
    assert ContactStatusUpdate(status="resolved").status == "resolved"
    with pytest.raises(ValidationError):
        ContactStatusUpdate(status="replied")
