"""
Test checkout session creation.

Service-level validation plus the POST /checkout contract.
"""
import pytest

from techforge.core.errors import UpstreamError, ValidationError
from techforge.models.plan import Plan


@pytest.mark.parametrize("plan, price", [("starter", "price_starter"), ("pro", "price_pro"), ("agency", "price_agency")])
def test_start_checkout_for_each_plan(services, gateway, plan, price):
    url = services.checkout.start_checkout(plan, "user_a", "a@x.com", ref="AFF1")

    assert url == gateway.url
    call = gateway.calls[-1]
    assert call["price_id"] == price
    assert call["customer_email"] == "a@x.com"
    assert call["success_url"] == "https://shop.example.com/?success=1"
    assert call["cancel_url"] == "https://shop.example.com/?canceled=1"
    assert call["metadata"] == {"plan": plan, "user_id": "user_a", "ref": "AFF1"}


@pytest.mark.parametrize("plan", ["free", "enterprise", "", None])
def test_invalid_plan(services, gateway, plan):
    with pytest.raises(ValidationError) as excinfo:
        services.checkout.start_checkout(plan, "user_a", "a@x.com")
    assert excinfo.value.message == "Invalid plan"
    assert gateway.calls == []


@pytest.mark.parametrize("user_id, email", [(None, "a@x.com"), ("user_a", None), ("user_a", "  ")])
def test_missing_user(services, gateway, user_id, email):
    with pytest.raises(ValidationError) as excinfo:
        services.checkout.start_checkout("pro", user_id, email)
    assert excinfo.value.message == "Missing user"
    assert gateway.calls == []


def test_unpriced_plan_is_invalid(services):
    services.checkout.price_map["agency"] = None
    with pytest.raises(ValidationError):
        services.checkout.start_checkout("agency", "user_a", "a@x.com")


def test_checkout_creates_free_profile(services):
    services.checkout.start_checkout("pro", "user_a", "New@X.com")

    profile = services.profiles.get("new@x.com")
    assert profile.plan == Plan.FREE
    assert profile.user_id == "user_a"


def test_checkout_never_downgrades_existing_profile(services):
    services.profiles.upsert("a@x.com", plan=Plan.AGENCY, user_id="user_a")

    services.checkout.start_checkout("starter", "user_a", "a@x.com")

    assert services.profiles.get("a@x.com").plan == Plan.AGENCY


def test_gateway_failure_propagates(services, gateway):
    gateway.error = UpstreamError("stripe", "card_declined")
    with pytest.raises(UpstreamError):
        services.checkout.start_checkout("pro", "user_a", "a@x.com")


def test_post_checkout(client, gateway):
    response = client.post(
        "/checkout",
        json={"plan": "pro", "user_id": "user_a", "email": "a@x.com", "ref": "AFF1"},
    )

    assert response.status_code == 200
    assert response.json() == {"url": gateway.url}
    assert gateway.calls[0]["metadata"]["plan"] == "pro"


def test_post_checkout_invalid_plan(client):
    response = client.post("/checkout", json={"plan": "gold", "user_id": "user_a", "email": "a@x.com"})

    assert response.status_code == 400
    body = response.json()
    assert body["error"]["code"] == "invalid_plan"
    assert body["detail"] == "Invalid plan"


def test_post_checkout_missing_user(client):
    response = client.post("/checkout", json={"plan": "pro"})

    assert response.status_code == 400
    assert response.json()["detail"] == "Missing user"


def test_post_checkout_malformed_body_is_400(client):
    response = client.post("/checkout", content=b"not json", headers={"Content-Type": "application/json"})
    assert response.status_code == 400
    assert response.json()["error"]["code"] == "validation_error"


def test_post_checkout_gateway_failure_is_opaque(client, gateway):
    gateway.error = UpstreamError("stripe", "sk_live_secret leaked in message")

    response = client.post("/checkout", json={"plan": "pro", "user_id": "user_a", "email": "a@x.com"})

    assert response.status_code == 500
    body = response.json()
    assert body["error"]["code"] == "upstream_error"
    assert body["detail"] == "Upstream service failure"
    assert "sk_live" not in response.text
