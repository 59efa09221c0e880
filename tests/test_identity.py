"""
Identity resolution and guest session endpoints
"""

from storefront.api.v1.payments.razorpay_client import hmac_sha256_hex
from storefront.api.v1.session.dependencies import Identity, resolve_identity
from storefront.core.config import settings
from storefront.core.security import SecurityUtils


class TestResolveIdentity:
    def test_bearer_identity_wins_over_guest_id(self):
        identity = resolve_identity({"sub": "user-1", "email": "a@example.com"}, "guest-1")

        assert identity.user_id == "user-1"
        assert identity.guest_id is None
        assert identity.is_authenticated
        assert identity.owner_key == "user:user-1"

    def test_guest_id_used_without_claims(self):
        identity = resolve_identity(None, "guest-1")

        assert identity == Identity(guest_id="guest-1")
        assert not identity.is_authenticated
        assert identity.owner_key == "guest:guest-1"

    def test_nothing_resolves_to_none(self):
        assert resolve_identity(None, None) is None
        assert resolve_identity({}, None) is None

    def test_invalid_token_has_no_claims(self):
        assert SecurityUtils.access_claims("not-a-jwt") is None

    def test_guest_ids_are_unique(self):
        assert SecurityUtils.generate_guest_id() != SecurityUtils.generate_guest_id()


async def test_cart_requires_some_identity(client):
    response = await client.get("/api/v1/cart")

    assert response.status_code == 401
    assert response.json()["error"]["code"] == "UNAUTHENTICATED"


async def test_guest_session_sets_cookie(client):
    response = await client.post("/api/v1/guest/session")

    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert body["guestId"]
    assert f"guest_id={body['guestId']}" in response.headers["set-cookie"]


async def test_invalid_token_falls_back_to_guest(client, make_product, add_to_cart, guest_headers):
    product = await make_product()
    await add_to_cart(guest_headers("guest-9"), product)

    headers = {"Authorization": "Bearer garbage", **guest_headers("guest-9")}
    response = await client.get("/api/v1/cart", headers=headers)

    assert response.status_code == 200
    assert response.json()["totalItems"] == 1


async def test_bearer_and_guest_carts_are_separate(
    client, make_product, add_to_cart, user_headers, guest_headers
):
    product = await make_product()
    await add_to_cart(guest_headers("guest-1"), product, quantity=3)

    headers = {**user_headers("user-1"), **guest_headers("guest-1")}
    response = await client.get("/api/v1/cart", headers=headers)

    assert response.status_code == 200
    assert response.json()["items"] == []


async def test_merge_requires_sign_in(client, guest_headers):
    response = await client.post("/api/v1/session/merge", headers=guest_headers())

    assert response.status_code == 401


async def test_merge_moves_guest_cart_and_addresses(
    client, make_product, add_to_cart, create_address, user_headers, guest_headers
):
    tee = await make_product("Tee", "500.00")
    cap = await make_product("Cap", "200.00")
    await add_to_cart(user_headers("user-1"), tee, quantity=1)
    await add_to_cart(guest_headers("guest-1"), tee, quantity=3)
    await add_to_cart(guest_headers("guest-1"), cap, quantity=2)
    await create_address(guest_headers("guest-1"))

    headers = {**user_headers("user-1"), **guest_headers("guest-1")}
    response = await client.post("/api/v1/session/merge", headers=headers)

    assert response.status_code == 200
    body = response.json()
    assert body["mergedItems"] == 2
    assert body["movedAddresses"] == 1

    cart = (await client.get("/api/v1/cart", headers=user_headers("user-1"))).json()
    quantities = {item["productName"]: item["quantity"] for item in cart["items"]}
    assert quantities == {"Tee": 3, "Cap": 2}

    guest_cart = (await client.get("/api/v1/cart", headers=guest_headers("guest-1"))).json()
    assert guest_cart["items"] == []

    addresses = (await client.get("/api/v1/addresses", headers=user_headers("user-1"))).json()
    assert len(addresses) == 1


async def test_pending_guest_order_finalizes_after_merge(
    client, make_product, add_to_cart, create_address, user_headers, guest_headers
):
    guest = guest_headers("guest-1")
    await add_to_cart(guest, await make_product("Tee", "500.00"), quantity=2)
    address = await create_address(guest)
    checkout = (await client.post(
        "/api/v1/checkout",
        json={"addressId": address["id"], "paymentMethod": "upi"},
        headers=guest,
    )).json()

    merged = await client.post(
        "/api/v1/session/merge", headers={**user_headers("user-1"), **guest}
    )
    assert merged.json()["mergedItems"] == 1

    gateway_order_id = checkout["razorpayOrderId"]
    response = await client.post(
        "/api/v1/payments/verify",
        json={
            "razorpay_order_id": gateway_order_id,
            "razorpay_payment_id": "pay_1",
            "razorpay_signature": hmac_sha256_hex(
                settings.RAZORPAY_KEY_SECRET, f"{gateway_order_id}|pay_1"
            ),
        },
    )

    assert response.status_code == 200
    cart = (await client.get("/api/v1/cart", headers=user_headers("user-1"))).json()
    assert cart["items"] == []
