"""HTTP surface: routing, auth, status codes and error bodies."""
import uuid

from conftest import auth_headers
from sqlalchemy.exc import OperationalError

from storefront.models.user import User

API = "/api/v1"


def test_health(client):
    response = client.get("/")

    assert response.status_code == 200
    assert response.json()["status"] == "ok"


def test_catalog_query_uses_camel_case_params(client, make_product):
    for price in (5.0, 15.0, 25.0, 35.0):
        make_product(price=price)

    response = client.get(
        f"{API}/products",
        params={"minPrice": "10", "maxPrice": "30", "sortBy": "price", "sortOrder": "desc", "limit": "1"},
    )

    body = response.json()
    assert response.status_code == 200
    assert [p["price"] for p in body["products"]] == [25.0]
    assert body["pagination"]["total_items"] == 2
    assert body["pagination"]["has_next_page"] is True


def test_malformed_query_values_are_not_errors(client, make_product):
    make_product()

    response = client.get(f"{API}/products", params={"page": "x", "minPrice": "cheap"})

    assert response.status_code == 200
    assert len(response.json()["products"]) == 1


def test_product_detail_includes_rating_summary(client, make_product, make_user):
    product = make_product()
    client.post(
        f"{API}/products/{product.id}/reviews",
        json={"rating": 4, "comment": "Nice"},
        headers=auth_headers(make_user()),
    )

    response = client.get(f"{API}/products/{product.id}")

    body = response.json()
    assert response.status_code == 200
    assert body["rating"] == 4.0
    assert body["review_count"] == 1
    assert body["rating_summary"]["distribution"]["4"] == 1
    assert body["images"] == []


def test_inactive_product_is_not_found(client, make_product):
    product = make_product(is_active=False)

    response = client.get(f"{API}/products/{product.id}")

    assert response.status_code == 404
    assert response.json()["detail"]["reason"] == "product_not_found"


def test_review_requires_sign_in(client, make_product):
    product = make_product()

    response = client.post(
        f"{API}/products/{product.id}/reviews", json={"rating": 5, "comment": "Great"}
    )

    assert response.status_code == 401


def test_review_submit_and_duplicate(client, make_product, make_user):
    product = make_product()
    headers = auth_headers(make_user(name="Bea"))
    url = f"{API}/products/{product.id}/reviews"

    created = client.post(url, json={"rating": 5, "comment": "Great"}, headers=headers)
    duplicate = client.post(url, json={"rating": 1, "comment": "Changed my mind"}, headers=headers)
    listing = client.get(url)

    assert created.status_code == 201
    assert created.json()["author_name"] == "Bea"
    assert duplicate.status_code == 409
    assert duplicate.json()["detail"]["reason"] == "duplicate_review"
    assert listing.json()["pagination"]["total_items"] == 1


def test_review_validation_reasons(client, make_product, make_user):
    product = make_product()
    headers = auth_headers(make_user())
    url = f"{API}/products/{product.id}/reviews"

    bad_rating = client.post(url, json={"rating": 9, "comment": "x"}, headers=headers)
    no_comment = client.post(url, json={"rating": 3, "comment": "  "}, headers=headers)

    assert bad_rating.status_code == 400
    assert bad_rating.json()["detail"]["reason"] == "invalid_rating"
    assert no_comment.status_code == 400
    assert no_comment.json()["detail"]["reason"] == "empty_comment"


def test_invalid_token_is_rejected(client):
    response = client.get(f"{API}/users/me", headers={"Authorization": "Bearer nope"})

    assert response.status_code == 401


def test_cart_round_trip(client, make_product, make_user):
    headers = auth_headers(make_user())
    lamp = make_product(price=12.0, stock=3)

    added = client.post(f"{API}/cart", json={"product_id": str(lamp.id), "quantity": 2}, headers=headers)
    again = client.post(f"{API}/cart", json={"product_id": str(lamp.id), "quantity": 2}, headers=headers)
    patched = client.patch(f"{API}/cart/{lamp.id}", json={"quantity": 1}, headers=headers)
    fetched = client.get(f"{API}/cart", headers=headers)
    removed = client.delete(f"{API}/cart/{lamp.id}", headers=headers)

    assert added.status_code == 200
    assert added.json()["total_price"] == 24.0
    assert again.json()["items"][0]["quantity"] == 3
    assert patched.json()["items"][0]["quantity"] == 1
    assert fetched.json()["total_quantity"] == 1
    assert removed.json()["items"] == []


def test_cart_errors_carry_reasons(client, make_product, make_user):
    headers = auth_headers(make_user())
    sold_out = make_product(stock=0)

    zero = client.post(f"{API}/cart", json={"product_id": str(sold_out.id), "quantity": 0}, headers=headers)
    empty = client.post(f"{API}/cart", json={"product_id": str(sold_out.id)}, headers=headers)
    missing = client.patch(f"{API}/cart/{uuid.uuid4()}", json={"quantity": 2}, headers=headers)

    assert zero.status_code == 400
    assert zero.json()["detail"]["reason"] == "invalid_quantity"
    assert empty.status_code == 409
    assert empty.json()["detail"]["reason"] == "out_of_stock"
    assert missing.status_code == 404
    assert missing.json()["detail"]["reason"] == "item_not_in_cart"


def test_cart_is_for_customers_only(client, make_user):
    anonymous = client.get(f"{API}/cart")
    admin = client.get(f"{API}/cart", headers=auth_headers(make_user(role="admin")))

    assert anonymous.status_code == 401
    assert admin.status_code == 403


def test_reconcile_endpoint(client, make_product, make_user):
    headers = auth_headers(make_user())
    lamp = make_product(price=12.0, stock=5)
    client.post(f"{API}/cart", json={"product_id": str(lamp.id), "quantity": 1}, headers=headers)
    payload = {
        "items": [{"product_id": str(lamp.id), "quantity": 2, "price": 12.0}],
        "merge_token": "session-42",
    }

    first = client.post(f"{API}/cart/reconcile", json=payload, headers=headers)
    replay = client.post(f"{API}/cart/reconcile", json=payload, headers=headers)

    assert first.status_code == 200
    assert first.json()["cart"]["items"][0]["quantity"] == 3
    assert replay.json()["already_applied"] is True
    assert replay.json()["cart"]["items"][0]["quantity"] == 3


def test_admin_creates_product_with_generated_slug(client, make_user):
    payload = {"name": "Trail Runner 2", "price": 89.9, "category": "Clothes/Shoes", "stock": 4}

    created = client.post(f"{API}/products", json=payload, headers=auth_headers(make_user(role="admin")))
    second = client.post(f"{API}/products", json=payload, headers=auth_headers(make_user(role="admin")))
    forbidden = client.post(f"{API}/products", json=payload, headers=auth_headers(make_user()))

    assert created.status_code == 201
    assert created.json()["slug"] == "trail-runner-2"
    assert created.json()["rating"] == 0
    assert second.json()["slug"] == "trail-runner-2-2"
    assert forbidden.status_code == 403


def test_hero_image_upload(client, make_product, make_user, monkeypatch):
    product = make_product()
    uploaded = {}

    def fake_upload(path, data):
        uploaded[path] = data
        return f"https://cdn.example.com/{path}"

    monkeypatch.setattr("storefront.services.product_service.upload_to_storage", fake_upload)

    response = client.post(
        f"{API}/products/{product.id}/hero-image",
        files={"file": ("hero.png", b"\x89PNG fake", "image/png")},
        headers=auth_headers(make_user(role="admin")),
    )

    assert response.status_code == 200
    assert response.json()["hero_image_url"].endswith(f"products/{product.id}/hero.png")
    assert uploaded == {f"products/{product.id}/hero.png": b"\x89PNG fake"}


def test_me_is_provisioned_on_first_request(client, session):
    stranger = User(id=uuid.uuid4(), email="newbie@example.com", name="", role="user")

    me = client.get(f"{API}/users/me", headers=auth_headers(stranger))
    renamed = client.patch(f"{API}/users/me", json={"name": "Nova"}, headers=auth_headers(stranger))

    assert me.status_code == 200
    assert me.json()["name"] == "newbie"
    assert me.json()["role"] == "user"
    assert renamed.json()["name"] == "Nova"
    assert session.get(User, stranger.id).name == "Nova"


def test_storage_outage_is_503(client, monkeypatch):
    def broken(*args, **kwargs):
        raise OperationalError("SELECT products", {}, Exception("connection refused"))

    monkeypatch.setattr("storefront.routers.products.service.search_products", broken)

    response = client.get(f"{API}/products")

    assert response.status_code == 503
    assert response.json()["detail"]["reason"] == "storage_unavailable"


def test_admin_deletes_reviewed_product(client, make_product, make_user):
    product = make_product()
    shopper = make_user()
    client.post(
        f"{API}/products/{product.id}/reviews",
        json={"rating": 3, "comment": "Fine"},
        headers=auth_headers(shopper),
    )
    client.post(f"{API}/cart", json={"product_id": str(product.id)}, headers=auth_headers(shopper))

    deleted = client.delete(f"{API}/products/{product.id}", headers=auth_headers(make_user(role="admin")))

    assert deleted.status_code == 204
    assert client.get(f"{API}/products/{product.id}").status_code == 404
    assert client.get(f"{API}/cart", headers=auth_headers(shopper)).json()["items"] == []


def test_review_without_rating_is_invalid_rating(client, make_product, make_user):
    product = make_product()

    response = client.post(
        f"{API}/products/{product.id}/reviews",
        json={"comment": "Forgot the stars"},
        headers=auth_headers(make_user()),
    )

    assert response.status_code == 400
    assert response.json()["detail"]["reason"] == "invalid_rating"


def test_absurd_page_number_is_an_empty_page(client, make_product):
    make_product()

    response = client.get(f"{API}/products", params={"page": "99999999999999999999"})

    assert response.status_code == 200
    assert response.json()["products"] == []
    assert response.json()["pagination"]["total_items"] == 1
