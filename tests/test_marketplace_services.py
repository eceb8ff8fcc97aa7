"""Wardrobe, collection, creator, payment and shipping services over SQLite."""

from __future__ import annotations

import sys
from datetime import timedelta
from pathlib import Path

import pytest

sys.path.append(str(Path(__file__).resolve().parents[1]))

from logic.errors import (
    ForbiddenError,
    NotFoundError,
    QuotaExceededError,
    StateConflictError,
    ValidationFailure,
)
from logic.pseudonym import actor_pseudonym
from logic.validation import (
    CollectionCreate,
    CollectionItemAdd,
    CreatorProfileInput,
    PaymentConfirm,
    PaymentIntentCreate,
    PayoutCreate,
    PromotionCreate,
    ShippingAddressInput,
    ShippingLabelInput,
    SwapCreate,
    WardrobeFilters,
    WardrobeItemCreate,
    WardrobeItemUpdate,
)
from models.shipment import ShipmentStatus
from models.tiers import MembershipTier
from models.wardrobe_item import HistoryType, ItemStatus

ADDRESS = {"name": "Sam", "line1": "1 Main St", "city": "Austin", "state": "tx", "postal_code": "73301"}


def _item(exchange, owner, **overrides):
    fields = {"title": "Silk scarf", "category": "ACCESSORY", "size": "OS", "condition": "LIKE_NEW"}
    fields.update(overrides)
    return exchange.wardrobe.create_item(owner, WardrobeItemCreate(**fields))


def test_create_item_records_pseudonymous_upload(exchange, make_user) -> None:
    owner = make_user("owner")
    item = _item(exchange, owner, images=["https://example.com/a.jpg", "https://example.com/b.jpg"])
    assert item.primary_image.url == "https://example.com/a.jpg"
    assert [entry.type for entry in item.history] == [HistoryType.UPLOAD]
    assert item.history[0].actor_ref == actor_pseudonym(owner.id, "test-secret")


def test_wardrobe_item_limit_for_basic_tier(exchange, make_user) -> None:
    owner = make_user("owner")
    for n in range(50):
        _item(exchange, owner, title=f"Scarf {n}")
    with pytest.raises(QuotaExceededError) as excinfo:
        _item(exchange, owner, title="One too many")
    assert excinfo.value.extra["limit"] == 50


def test_basic_members_cannot_sell(exchange, make_user) -> None:
    owner = make_user("owner")
    with pytest.raises(ForbiddenError):
        _item(exchange, owner, available_for_sale=True, sale_price_cents=2500)
    item = _item(exchange, owner)
    with pytest.raises(ForbiddenError):
        exchange.wardrobe.update_item(owner, item.id, WardrobeItemUpdate(available_for_sale=True, sale_price_cents=10))


def test_list_filters_and_search(exchange, make_user) -> None:
    owner = make_user("owner")
    _item(exchange, owner, title="Red scarf", brand="Acme")
    _item(exchange, owner, title="Boots", category="SHOES", description="Waterproof ACME leather")
    _item(exchange, owner, title="Hat", available_for_swap=False)

    found = exchange.wardrobe.list_items(owner, WardrobeFilters(search="acme"))
    assert sorted(item.title for item in found) == ["Boots", "Red scarf"]
    shoes = exchange.wardrobe.list_items(owner, WardrobeFilters(category="SHOES"))
    assert [item.title for item in shoes] == ["Boots"]
    unlisted = exchange.wardrobe.list_items(owner, WardrobeFilters(available_for_swap=False))
    assert [item.title for item in unlisted] == ["Hat"]


def test_item_visibility_and_ownership(exchange, make_user) -> None:
    owner = make_user("owner")
    other = make_user("other")
    listed = _item(exchange, owner)
    hidden = _item(exchange, owner, available_for_swap=False)

    assert exchange.wardrobe.get_item(other, listed.id).id == listed.id
    with pytest.raises(NotFoundError):
        exchange.wardrobe.get_item(other, hidden.id)
    with pytest.raises(ForbiddenError):
        exchange.wardrobe.update_item(other, listed.id, WardrobeItemUpdate(title="Mine now"))
    with pytest.raises(NotFoundError):
        exchange.wardrobe.delete_item(other, hidden.id)


def test_updates_and_deletes_use_service_clock(exchange, make_user, clock) -> None:
    owner = make_user("owner")
    item = _item(exchange, owner)

    clock.advance(days=3)
    updated = exchange.wardrobe.update_item(owner, item.id, WardrobeItemUpdate(title="Silk square"))
    assert updated.updated_at == clock.now

    clock.advance(hours=1)
    exchange.wardrobe.delete_item(owner, item.id)
    deleted = exchange.wardrobe_store.get_item(item.id)
    assert deleted.status is ItemStatus.DELETED
    assert deleted.updated_at == clock.now


def test_soft_delete_refused_while_on_loan(exchange, make_user) -> None:
    owner = make_user("owner")
    requester = make_user("requester")
    item = _item(exchange, owner)
    exchange.swaps.create_swap(requester, SwapCreate(item_id=item.id, delivery_method="PICKUP"))
    with pytest.raises(StateConflictError):
        exchange.wardrobe.delete_item(owner, item.id)

    spare = _item(exchange, owner, title="Spare")
    exchange.wardrobe.delete_item(owner, spare.id)
    assert exchange.wardrobe_store.get_item(spare.id).status is ItemStatus.DELETED
    assert spare.id not in {i.id for i in exchange.wardrobe.list_items(owner, WardrobeFilters())}
    with pytest.raises(NotFoundError):
        exchange.wardrobe.get_item(owner, spare.id)


def test_stale_credit_check_cannot_overspend(exchange, make_user) -> None:
    user = make_user("stylist")
    exchange.user_store.set_gemini_key(user.id, "AIzaTestKey123")
    for _ in range(9):
        exchange.user_store.consume_ai_credit(user.id, exchange.clock())
    stale = exchange.user_store.get_user(user.id)
    # Another request spends the last credit after this one passed its check.
    exchange.user_store.consume_ai_credit(user.id, exchange.clock())

    with pytest.raises(QuotaExceededError):
        exchange.ai.analyze(stale, {"image_url": "https://example.com/a.jpg"})
    assert exchange.user_store.get_user(user.id).ai_credits_used == 10
    with pytest.raises(QuotaExceededError):
        exchange.user_store.consume_ai_credit(user.id, exchange.clock())


def test_collections_order_duplicates_and_privacy(exchange, make_user) -> None:
    owner = make_user("owner")
    other = make_user("other")
    first, second = _item(exchange, owner, title="A"), _item(exchange, owner, title="B")
    private = exchange.collections.create_collection(owner, CollectionCreate(name="Summer"))
    public = exchange.collections.create_collection(owner, CollectionCreate(name="Show", is_public=True))

    assert exchange.collections.add_item(owner, private.id, CollectionItemAdd(item_id=first.id)).order == 1
    assert exchange.collections.add_item(owner, private.id, CollectionItemAdd(item_id=second.id)).order == 2
    with pytest.raises(ValidationFailure):
        exchange.collections.add_item(owner, private.id, CollectionItemAdd(item_id=first.id))

    with pytest.raises(NotFoundError):
        exchange.collections.get_collection(other, private.id)
    assert exchange.collections.get_collection(other, public.id).name == "Show"
    with pytest.raises(NotFoundError):
        exchange.collections.delete_collection(other, public.id)

    exchange.collections.remove_item(owner, private.id, first.id)
    with pytest.raises(NotFoundError):
        exchange.collections.remove_item(owner, private.id, first.id)
    exchange.collections.create_collection(owner, CollectionCreate(name="Third"))
    with pytest.raises(QuotaExceededError):
        exchange.collections.create_collection(owner, CollectionCreate(name="Fourth"))


def _seller(exchange, make_user, tier=MembershipTier.PRO):
    seller = make_user("seller", tier)
    profile = exchange.creators.save_profile(seller, CreatorProfileInput(store_name="Closet Co"))
    return seller, profile


def test_creator_profile_requires_selling_tier(exchange, make_user) -> None:
    with pytest.raises(ForbiddenError):
        exchange.creators.save_profile(make_user("basic"), CreatorProfileInput(store_name="Nope"))
    seller, profile = _seller(exchange, make_user)
    updated = exchange.creators.save_profile(seller, CreatorProfileInput(store_name="Closet Co 2"))
    assert updated.id == profile.id and updated.store_name == "Closet Co 2"


def test_promotion_cap_and_unique_codes(exchange, make_user, clock) -> None:
    seller, _ = _seller(exchange, make_user, MembershipTier.STANDARD)
    for code in ("SPRING", "SUMMER", "AUTUMN"):
        exchange.creators.create_promotion(
            seller, PromotionCreate(title=code, code=code.lower(), discount_type="PERCENTAGE", discount_value=10)
        )
    assert {p.code for p in exchange.creators.list_promotions(seller)} == {"SPRING", "SUMMER", "AUTUMN"}
    with pytest.raises(QuotaExceededError):
        exchange.creators.create_promotion(
            seller, PromotionCreate(title="Winter", code="WINTER", discount_type="FIXED_AMOUNT", discount_value=5)
        )


def test_duplicate_promotion_code_rejected(exchange, make_user, clock) -> None:
    seller, _ = _seller(exchange, make_user)
    payload = PromotionCreate(title="Sale", code="SALE10", discount_type="PERCENTAGE", discount_value=10)
    exchange.creators.create_promotion(seller, payload)
    with pytest.raises(ValidationFailure):
        exchange.creators.create_promotion(seller, payload)


def test_expired_promotions_leave_storefront(exchange, make_user, clock) -> None:
    seller, profile = _seller(exchange, make_user)
    exchange.creators.create_promotion(
        seller,
        PromotionCreate(
            title="Flash",
            code="FLASH",
            discount_type="PERCENTAGE",
            discount_value=20,
            expires_at=clock.now + timedelta(days=1),
        ),
    )
    assert [p.code for p in exchange.creators.storefront(profile.id)["promotions"]] == ["FLASH"]
    clock.advance(days=2)
    assert exchange.creators.storefront(profile.id)["promotions"] == []


def test_storefront_requires_storefront_tier(exchange, make_user) -> None:
    _, profile = _seller(exchange, make_user, MembershipTier.STANDARD)
    with pytest.raises(NotFoundError):
        exchange.creators.storefront(profile.id)
    with pytest.raises(NotFoundError):
        exchange.creators.storefront("missing")


def test_purchase_flow_records_sale_and_earnings(exchange, make_user) -> None:
    seller, profile = _seller(exchange, make_user)
    buyer = make_user("buyer")
    item = _item(exchange, seller, available_for_sale=True, sale_price_cents=10000)

    with pytest.raises(ValidationFailure):
        exchange.payments.create_intent(buyer, PaymentIntentCreate(item_id=item.id))

    onboarding = exchange.creators.start_onboarding(seller)
    assert onboarding["url"].startswith("https://")
    assert exchange.creators.account_status(seller)["status"] == "connected"

    with pytest.raises(ValidationFailure):
        exchange.payments.create_intent(seller, PaymentIntentCreate(item_id=item.id))
    intent = exchange.payments.create_intent(buyer, PaymentIntentCreate(item_id=item.id))
    assert intent["amount_cents"] == 10000
    assert intent["platform_fee_cents"] == 1000
    assert intent["creator_fee_cents"] == 1000
    assert intent["seller_receives_cents"] == 8000
    again = exchange.payments.create_intent(buyer, PaymentIntentCreate(item_id=item.id))
    assert again["payment_intent_id"] == intent["payment_intent_id"]

    confirm = PaymentConfirm(item_id=item.id, payment_intent_id=intent["payment_intent_id"])
    with pytest.raises(ValidationFailure):
        exchange.payments.confirm_sale(buyer, confirm)
    exchange.payment_provider.settle(intent["payment_intent_id"])
    sold = exchange.payments.confirm_sale(buyer, confirm)
    assert sold.status is ItemStatus.SOLD
    sale = [entry for entry in sold.history if entry.type is HistoryType.SALE][0]
    assert sale.amount_cents == 10000
    assert sale.actor_ref == actor_pseudonym(buyer.id, "test-secret")

    earnings = exchange.creators.earnings(seller)
    assert earnings["earnings"]["total_gross_cents"] == 10000
    assert earnings["earnings"]["total_net_cents"] == 8000
    assert earnings["earnings"]["formatted"]["total_net"] == "$80.00"
    assert exchange.creator_store.get_profile(profile.id).total_sales == 1


def test_payouts_are_idempotent(exchange, make_user) -> None:
    seller, _ = _seller(exchange, make_user)
    with pytest.raises(ValidationFailure):
        exchange.creators.create_payout(seller, PayoutCreate(amount_cents=500))
    exchange.creators.start_onboarding(seller)
    first = exchange.creators.create_payout(seller, PayoutCreate(amount_cents=500), "payout-1")
    again = exchange.creators.create_payout(seller, PayoutCreate(amount_cents=500), "payout-1")
    assert first.id == again.id
    assert [p.id for p in exchange.creators.list_payouts(seller)] == [first.id]


def test_label_and_tracking(exchange, make_user) -> None:
    owner = make_user("owner")
    other = make_user("other")
    item = _item(exchange, owner, weight_oz=20)
    to_address = ShippingAddressInput(**{**ADDRESS, "state": "OK"})

    label = ShippingLabelInput(item_id=item.id, rate_id="ups_ground", to_address=to_address)
    with pytest.raises(ValidationFailure):
        exchange.shipping.create_label(owner, label)
    with pytest.raises(ForbiddenError):
        exchange.shipping.create_label(other, label)

    exchange.users.set_shipping_address(owner, ShippingAddressInput(**ADDRESS))
    owner = exchange.user_store.get_user(owner.id)
    shipment = exchange.shipping.create_label(owner, label)
    assert shipment.status is ShipmentStatus.LABEL_CREATED
    assert shipment.tracking_number.startswith("1Z")
    assert shipment.from_address.state == "TX"
    assert shipment.estimated_delivery.weekday() < 5
    assert exchange.shipping.create_label(owner, label).id == shipment.id

    tracked = exchange.shipping.track(owner, shipment.tracking_number)
    assert tracked["shipment"].status is ShipmentStatus.OUT_FOR_DELIVERY
    assert len(tracked["events"]) == 3
    with pytest.raises(NotFoundError):
        exchange.shipping.track(other, shipment.tracking_number)
