"""FastAPI server exposing the Wardrobe Exchange API."""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from fastapi import Body, Depends, FastAPI, Header, Query, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from exchange_app.app import ExchangeApp
from exchange_app.logging_config import get_logger, log_event, request_context
from logic.errors import MarketplaceError
from logic.validation import (
    AIConsentInput,
    CollectionCreate,
    CollectionItemAdd,
    CollectionUpdate,
    CreatorProfileInput,
    GeminiKeyInput,
    MessageCreate,
    PaymentConfirm,
    PaymentIntentCreate,
    PayoutCreate,
    PromotionCreate,
    ShippingAddressInput,
    ShippingLabelInput,
    ShippingRatesInput,
    SwapActionInput,
    SwapCreate,
    UserProfileUpdate,
    WardrobeFilters,
    WardrobeItemCreate,
    WardrobeItemUpdate,
    validation_failure,
)
from models.user import User
from models.wardrobe_item import ClothingCategory, ItemStatus

LOGGER = get_logger(__name__)
CORRELATION_HEADER = "x-correlation-id"


def ok(status_code: int = 200, **payload: Any) -> JSONResponse:
    return JSONResponse(status_code=status_code, content=jsonable_encoder({"success": True, **payload}))


def exchange(request: Request) -> ExchangeApp:
    return request.app.state.exchange


def current_user(request: Request) -> User:
    """Authenticate every non-public route through the configured identity provider."""

    return exchange(request).authenticate(request.headers)


def _action(request: Request) -> str:
    """Name of the handler the router matched, e.g. ``update_swap``."""

    endpoint = request.scope.get("endpoint")
    return getattr(endpoint, "__name__", "unrouted")


def _register_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(MarketplaceError)
    async def marketplace_error(request: Request, exc: MarketplaceError) -> JSONResponse:
        level = logging.ERROR if exc.status_code >= 500 else logging.INFO
        log_event(
            LOGGER,
            level,
            "request_failed",
            action=_action(request),
            status_code=exc.status_code,
            error_type=type(exc).__name__,
        )
        return JSONResponse(
            status_code=exc.status_code,
            content=jsonable_encoder({"success": False, "error": exc.message, **exc.extra}),
        )

    @app.exception_handler(RequestValidationError)
    async def request_validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
        log_event(LOGGER, logging.INFO, "request_invalid", action=_action(request))
        payload = validation_failure("Invalid request", exc.errors())
        return JSONResponse(status_code=400, content=jsonable_encoder(payload))

    @app.exception_handler(Exception)
    async def unexpected_error(request: Request, exc: Exception) -> JSONResponse:
        log_event(
            LOGGER,
            logging.ERROR,
            "request_crashed",
            action=_action(request),
            # Runs after the request scope has closed.
            method=request.method,
            route=request.url.path,
            error_type=type(exc).__name__,
            exc_info=exc,
        )
        content: Dict[str, Any] = {"success": False, "error": "Internal server error"}
        if exchange(request).config.is_development:
            content["details"] = str(exc)
        return JSONResponse(status_code=500, content=content)


def _register_user_routes(app: FastAPI) -> None:
    @app.get("/api/users/me")
    def get_me(user: User = Depends(current_user)) -> JSONResponse:
        return ok(user=user.private_view())

    @app.patch("/api/users/me")
    def update_me(
        body: UserProfileUpdate, request: Request, user: User = Depends(current_user)
    ) -> JSONResponse:
        return ok(user=exchange(request).users.update_profile(user, body).private_view())

    @app.put("/api/users/me/shipping-address")
    def put_shipping_address(
        body: ShippingAddressInput, request: Request, user: User = Depends(current_user)
    ) -> JSONResponse:
        updated = exchange(request).users.set_shipping_address(user, body)
        return ok(shipping_address=updated.shipping_address)

    @app.get("/api/users/limits")
    def get_limits(request: Request, user: User = Depends(current_user)) -> JSONResponse:
        return ok(**exchange(request).users.usage(user))

    @app.get("/api/users/gemini-key")
    def get_gemini_key(request: Request, user: User = Depends(current_user)) -> JSONResponse:
        return ok(**exchange(request).users.gemini_key_status(user))

    @app.post("/api/users/gemini-key")
    def post_gemini_key(
        body: GeminiKeyInput, request: Request, user: User = Depends(current_user)
    ) -> JSONResponse:
        return ok(**exchange(request).users.set_gemini_key(user, body))

    @app.delete("/api/users/gemini-key")
    def delete_gemini_key(request: Request, user: User = Depends(current_user)) -> JSONResponse:
        return ok(**exchange(request).users.delete_gemini_key(user))

    @app.get("/api/users/ai-consent")
    def get_ai_consent(request: Request, user: User = Depends(current_user)) -> JSONResponse:
        return ok(**exchange(request).users.ai_consent(user))

    @app.post("/api/users/ai-consent")
    def post_ai_consent(
        body: AIConsentInput, request: Request, user: User = Depends(current_user)
    ) -> JSONResponse:
        return ok(**exchange(request).users.set_ai_consent(user, body))


def _register_wardrobe_routes(app: FastAPI) -> None:
    @app.get("/api/wardrobe")
    def list_wardrobe(
        request: Request,
        category: Optional[ClothingCategory] = None,
        status: Optional[ItemStatus] = None,
        available_for_swap: Optional[bool] = None,
        search: Optional[str] = None,
        user: User = Depends(current_user),
    ) -> JSONResponse:
        filters = WardrobeFilters(
            category=category, status=status, available_for_swap=available_for_swap, search=search
        )
        return ok(items=exchange(request).wardrobe.list_items(user, filters))

    @app.post("/api/wardrobe")
    def create_wardrobe_item(
        body: WardrobeItemCreate, request: Request, user: User = Depends(current_user)
    ) -> JSONResponse:
        return ok(201, item=exchange(request).wardrobe.create_item(user, body))

    @app.get("/api/wardrobe/{item_id}")
    def get_wardrobe_item(item_id: str, request: Request, user: User = Depends(current_user)) -> JSONResponse:
        return ok(item=exchange(request).wardrobe.get_item(user, item_id))

    @app.patch("/api/wardrobe/{item_id}")
    def update_wardrobe_item(
        item_id: str, body: WardrobeItemUpdate, request: Request, user: User = Depends(current_user)
    ) -> JSONResponse:
        return ok(item=exchange(request).wardrobe.update_item(user, item_id, body))

    @app.delete("/api/wardrobe/{item_id}")
    def delete_wardrobe_item(
        item_id: str, request: Request, user: User = Depends(current_user)
    ) -> JSONResponse:
        exchange(request).wardrobe.delete_item(user, item_id)
        return ok()


def _register_collection_routes(app: FastAPI) -> None:
    @app.get("/api/collections")
    def list_collections(request: Request, user: User = Depends(current_user)) -> JSONResponse:
        return ok(collections=exchange(request).collections.list_collections(user))

    @app.post("/api/collections")
    def create_collection(
        body: CollectionCreate, request: Request, user: User = Depends(current_user)
    ) -> JSONResponse:
        return ok(201, collection=exchange(request).collections.create_collection(user, body))

    @app.get("/api/collections/{collection_id}")
    def get_collection(
        collection_id: str, request: Request, user: User = Depends(current_user)
    ) -> JSONResponse:
        return ok(collection=exchange(request).collections.get_collection(user, collection_id))

    @app.patch("/api/collections/{collection_id}")
    def update_collection(
        collection_id: str, body: CollectionUpdate, request: Request, user: User = Depends(current_user)
    ) -> JSONResponse:
        updated = exchange(request).collections.update_collection(user, collection_id, body)
        return ok(collection=updated)

    @app.delete("/api/collections/{collection_id}")
    def delete_collection(
        collection_id: str, request: Request, user: User = Depends(current_user)
    ) -> JSONResponse:
        exchange(request).collections.delete_collection(user, collection_id)
        return ok()

    @app.post("/api/collections/{collection_id}/items")
    def add_collection_item(
        collection_id: str, body: CollectionItemAdd, request: Request, user: User = Depends(current_user)
    ) -> JSONResponse:
        entry = exchange(request).collections.add_item(user, collection_id, body)
        return ok(201, collection_item=entry)

    @app.delete("/api/collections/{collection_id}/items/{item_id}")
    def remove_collection_item(
        collection_id: str, item_id: str, request: Request, user: User = Depends(current_user)
    ) -> JSONResponse:
        exchange(request).collections.remove_item(user, collection_id, item_id)
        return ok()


def _register_swap_routes(app: FastAPI) -> None:
    @app.get("/api/swaps")
    def list_swaps(
        request: Request,
        direction: str = Query("all", alias="type"),
        status: Optional[str] = None,
        user: User = Depends(current_user),
    ) -> JSONResponse:
        return ok(swaps=exchange(request).swaps.list_swaps(user, direction, status))

    @app.post("/api/swaps")
    def create_swap(body: SwapCreate, request: Request, user: User = Depends(current_user)) -> JSONResponse:
        return ok(201, swap=exchange(request).swaps.create_swap(user, body))

    @app.get("/api/swaps/{swap_id}")
    def get_swap(swap_id: str, request: Request, user: User = Depends(current_user)) -> JSONResponse:
        return ok(swap=exchange(request).swaps.get_swap(user, swap_id))

    @app.patch("/api/swaps/{swap_id}")
    def update_swap(
        swap_id: str, body: SwapActionInput, request: Request, user: User = Depends(current_user)
    ) -> JSONResponse:
        return ok(swap=exchange(request).swaps.apply_action(user, swap_id, body.action))

    @app.get("/api/swaps/{swap_id}/messages")
    def list_swap_messages(
        swap_id: str, request: Request, user: User = Depends(current_user)
    ) -> JSONResponse:
        return ok(messages=exchange(request).swaps.list_messages(user, swap_id))

    @app.post("/api/swaps/{swap_id}/messages")
    def post_swap_message(
        swap_id: str, body: MessageCreate, request: Request, user: User = Depends(current_user)
    ) -> JSONResponse:
        return ok(201, message=exchange(request).swaps.post_message(user, swap_id, body))


def _register_ai_routes(app: FastAPI) -> None:
    # Raw bodies: key and credit checks must run before input validation.
    @app.get("/api/ai/credits")
    def get_ai_credits(request: Request, user: User = Depends(current_user)) -> JSONResponse:
        return ok(credits=exchange(request).ai.credits(user))

    @app.post("/api/ai/analyze")
    def analyze_image(
        request: Request,
        body: Optional[Dict[str, Any]] = Body(None),
        user: User = Depends(current_user),
    ) -> JSONResponse:
        return ok(**exchange(request).ai.analyze(user, body))

    @app.get("/api/ai/recommendations")
    def get_recommendations(request: Request, user: User = Depends(current_user)) -> JSONResponse:
        return ok(**exchange(request).ai.recommendations(user))

    @app.post("/api/ai/try-on")
    def try_on(
        request: Request,
        body: Optional[Dict[str, Any]] = Body(None),
        user: User = Depends(current_user),
    ) -> JSONResponse:
        return ok(**exchange(request).ai.try_on(user, body))


def _register_creator_routes(app: FastAPI) -> None:
    @app.get("/api/creator/profile")
    def get_creator_profile(request: Request, user: User = Depends(current_user)) -> JSONResponse:
        return ok(profile=exchange(request).creators.get_profile(user))

    @app.post("/api/creator/profile")
    def save_creator_profile(
        body: CreatorProfileInput, request: Request, user: User = Depends(current_user)
    ) -> JSONResponse:
        return ok(profile=exchange(request).creators.save_profile(user, body))

    @app.get("/api/creator/promotions")
    def list_promotions(request: Request, user: User = Depends(current_user)) -> JSONResponse:
        return ok(promotions=exchange(request).creators.list_promotions(user))

    @app.post("/api/creator/promotions")
    def create_promotion(
        body: PromotionCreate, request: Request, user: User = Depends(current_user)
    ) -> JSONResponse:
        return ok(201, promotion=exchange(request).creators.create_promotion(user, body))

    @app.post("/api/creator/stripe/onboard")
    def stripe_onboard(request: Request, user: User = Depends(current_user)) -> JSONResponse:
        return ok(**exchange(request).creators.start_onboarding(user))

    @app.get("/api/creator/stripe/status")
    def stripe_status(request: Request, user: User = Depends(current_user)) -> JSONResponse:
        return ok(**exchange(request).creators.account_status(user))

    @app.get("/api/creator/earnings")
    def earnings(request: Request, user: User = Depends(current_user)) -> JSONResponse:
        return ok(**exchange(request).creators.earnings(user))

    @app.get("/api/creator/payout")
    def list_payouts(request: Request, user: User = Depends(current_user)) -> JSONResponse:
        return ok(payouts=exchange(request).creators.list_payouts(user))

    @app.post("/api/creator/payout")
    def create_payout(
        body: PayoutCreate,
        request: Request,
        idempotency_key: Optional[str] = Header(None),
        user: User = Depends(current_user),
    ) -> JSONResponse:
        payout = exchange(request).creators.create_payout(user, body, idempotency_key)
        return ok(201, payout=payout)

    @app.get("/api/store/{creator_id}")
    def storefront(creator_id: str, request: Request) -> JSONResponse:
        return ok(**exchange(request).creators.storefront(creator_id))


def _register_commerce_routes(app: FastAPI) -> None:
    @app.post("/api/payments/create-intent")
    def create_payment_intent(
        body: PaymentIntentCreate, request: Request, user: User = Depends(current_user)
    ) -> JSONResponse:
        return ok(**exchange(request).payments.create_intent(user, body))

    @app.post("/api/payments/confirm")
    def confirm_payment(
        body: PaymentConfirm, request: Request, user: User = Depends(current_user)
    ) -> JSONResponse:
        return ok(item=exchange(request).payments.confirm_sale(user, body))

    @app.post("/api/shipping/rates")
    def shipping_rates(
        body: ShippingRatesInput, request: Request, user: User = Depends(current_user)
    ) -> JSONResponse:
        return ok(rates=exchange(request).shipping.rates(body))

    @app.post("/api/shipping/label")
    def shipping_label(
        body: ShippingLabelInput, request: Request, user: User = Depends(current_user)
    ) -> JSONResponse:
        return ok(201, shipment=exchange(request).shipping.create_label(user, body))

    @app.get("/api/shipping/track/{tracking_number}")
    def track_shipment(
        tracking_number: str, request: Request, user: User = Depends(current_user)
    ) -> JSONResponse:
        return ok(**exchange(request).shipping.track(user, tracking_number))


def create_app(exchange_app: ExchangeApp | None = None) -> FastAPI:
    """Build the ASGI app around an exchange container (a fresh one by default)."""

    container = exchange_app or ExchangeApp()
    app = FastAPI(title="Wardrobe Exchange", version="0.1.0")
    app.state.exchange = container

    @app.middleware("http")
    async def correlation_middleware(request: Request, call_next):
        with request_context(
            request.headers.get(CORRELATION_HEADER), method=request.method, route=request.url.path
        ) as scope:
            response = await call_next(request)
            response.headers[CORRELATION_HEADER] = scope.correlation_id
            return response

    @app.get("/healthz")
    def healthcheck() -> dict:
        """Lightweight readiness probe."""

        return {
            "status": "ok",
            "service": "wardrobe-exchange",
            "environment": container.config.environment or "production",
        }

    _register_error_handlers(app)
    _register_user_routes(app)
    _register_wardrobe_routes(app)
    _register_collection_routes(app)
    _register_swap_routes(app)
    _register_ai_routes(app)
    _register_creator_routes(app)
    _register_commerce_routes(app)
    return app


def get_app() -> FastAPI:
    """Expose a FastAPI instance for ASGI servers."""

    return create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("server.api:get_app", factory=True, host="0.0.0.0", port=8080, reload=False)
