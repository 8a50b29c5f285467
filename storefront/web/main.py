from __future__ import annotations

import logging
import uuid
from pathlib import Path
from typing import Any, Dict, Optional

from fastapi import Depends, FastAPI, Header, Request, Response
from fastapi.responses import FileResponse, JSONResponse

from storefront.db.sqlite import init_db
from storefront.errors import AuthError, NotFoundError, PermissionDenied, StoreError, ValidationError
from storefront.services import auth
from storefront.services.cart import CartItem, CartStore
from storefront.services.catalog import category_service, product_service
from storefront.services.customers import customer_service
from storefront.services.marketing import marketing_service
from storefront.services.orders import CheckoutFlow, order_service
from storefront.services.receipt_pdf import generate_receipt_pdf
from storefront.services.storage import LocalStorage
from storefront.services.wishlist import WishlistItem, WishlistStore
from storefront.utils.formatters import display_price, parse_price
from storefront.web.schemas import (
    BannerIn,
    CampaignIn,
    CampaignPreviewIn,
    CartItemIn,
    CheckoutInfoIn,
    CouponIn,
    CouponPreviewIn,
    CustomerIn,
    CustomerStatusIn,
    LoginIn,
    OrderNoteIn,
    OrderStatusIn,
    PlaceOrderIn,
    ProductIn,
    QuantityIn,
    RefundIn,
    SignupIn,
    SocialLoginIn,
    TrackingIn,
    VisibilityIn,
    WishlistItemIn,
)

logger = logging.getLogger(__name__)

CLIENT_COOKIE = "client_id"

app = FastAPI(title="Storefront API")


@app.on_event("startup")
def _startup() -> None:
    init_db()


@app.exception_handler(StoreError)
async def _store_error(request: Request, exc: StoreError) -> JSONResponse:
    body: Dict[str, Any] = {"detail": exc.message}
    if isinstance(exc, AuthError):
        body["code"] = exc.code
    return JSONResponse(status_code=exc.status_code, content=body)


# ---------------- dependencies ----------------

def get_client_id(request: Request, response: Response) -> str:
    client_id = request.headers.get("X-Client-Id") or request.cookies.get(CLIENT_COOKIE)
    if not client_id:
        client_id = uuid.uuid4().hex
        response.set_cookie(CLIENT_COOKIE, client_id, httponly=True, samesite="lax", max_age=60 * 60 * 24 * 365)
    return client_id


def get_storage(client_id: str = Depends(get_client_id)) -> LocalStorage:
    return LocalStorage(client_id)


def get_cart(storage: LocalStorage = Depends(get_storage)) -> CartStore:
    return CartStore(storage)


def get_wishlist(storage: LocalStorage = Depends(get_storage)) -> WishlistStore:
    return WishlistStore(storage)


def _bearer(authorization: Optional[str]) -> Optional[str]:
    if authorization and authorization.lower().startswith("bearer "):
        return authorization[7:].strip()
    return None


def get_current_user(authorization: Optional[str] = Header(None)) -> Optional[Dict[str, Any]]:
    return auth.get_current_user(_bearer(authorization))


def require_user(user: Optional[Dict[str, Any]] = Depends(get_current_user)) -> Dict[str, Any]:
    if user is None:
        raise AuthError("auth/session-expired", auth.friendly_message("auth/session-expired"))
    return user


def require_admin(user: Dict[str, Any] = Depends(require_user)) -> Dict[str, Any]:
    if not user["is_admin"]:
        raise PermissionDenied("Admin access required")
    return user


def _product_or_404(product_id: str) -> Dict[str, Any]:
    product = product_service.get_product_by_id(product_id)
    if product is None or not product.get("is_published", True):
        raise NotFoundError(f"Product {product_id} not found in catalog")
    return product


def _unit_price(product: Dict[str, Any]) -> float:
    return parse_price(product.get("sale_price") or product["price"])


def _checkout_view(cart: CartStore, flow: CheckoutFlow) -> Dict[str, Any]:
    try:
        totals, coupon = order_service.quote(cart.state, flow.coupon_code)
    except ValidationError as e:
        totals, coupon = order_service.quote(cart.state)
        coupon = {"error": e.message}
    return {"checkout": flow.to_dict(), "cart": cart.state.to_dict(), "totals": totals, "coupon": coupon}


@app.get("/health")
def health() -> Dict[str, str]:
    return {"status": "ok"}


# ---------------- catalog ----------------

@app.get("/products")
def products(category: Optional[str] = None):
    if category:
        return [p for p in product_service.get_products_by_category(category) if p.get("is_published", True)]
    return product_service.get_published_products()


@app.get("/products/featured")
def featured_products(count: int = 3):
    return product_service.get_featured_products(count)


@app.get("/products/{product_id}")
def product_detail(product_id: str):
    return _product_or_404(product_id)


@app.get("/search")
def search(q: str = ""):
    return [p for p in product_service.search_products(q) if p.get("is_published", True)]


@app.get("/categories")
def categories():
    return category_service.get_all_categories()


@app.get("/categories/available")
def available_categories():
    return category_service.get_available_categories()


@app.get("/categories/{category_id}")
def category_detail(category_id: int):
    category = category_service.get_category_by_id(category_id)
    if category is None:
        raise NotFoundError(f"Category {category_id} not found")
    return category


@app.get("/banners")
def banners(position: Optional[str] = None):
    return marketing_service.get_active_banners(position)


# ---------------- cart ----------------

@app.get("/cart")
def cart_show(cart: CartStore = Depends(get_cart)):
    return cart.state.to_dict()


@app.post("/cart/items")
def cart_add(body: CartItemIn, cart: CartStore = Depends(get_cart)):
    product = _product_or_404(body.id)
    if body.size and body.size not in product["sizes"]:
        raise ValidationError(f"Size {body.size} is not available for {product['title']}")
    state = cart.add_item(
        CartItem(
            id=product["id"],
            title=product["title"],
            price=_unit_price(product),
            image=product["image"],
            category=product["category"] or None,
            quantity=body.quantity,
            size=body.size,
        )
    )
    return state.to_dict()


@app.patch("/cart/items/{item_id}")
def cart_update_quantity(item_id: str, body: QuantityIn, cart: CartStore = Depends(get_cart)):
    if cart.state.find(item_id) is None:
        raise NotFoundError(f"Item {item_id} not found in cart")
    return cart.update_quantity(item_id, body.quantity).to_dict()


@app.delete("/cart/items/{item_id}")
def cart_remove(item_id: str, cart: CartStore = Depends(get_cart)):
    if cart.state.find(item_id) is None:
        raise NotFoundError(f"Item {item_id} not found in cart")
    return cart.remove_item(item_id).to_dict()


@app.delete("/cart")
def cart_clear(cart: CartStore = Depends(get_cart)):
    return cart.clear_cart().to_dict()


# ---------------- wishlist ----------------

def _wishlist_item(product: Dict[str, Any]) -> WishlistItem:
    return WishlistItem(
        id=product["id"],
        title=product["title"],
        price=display_price(_unit_price(product)),
        image=product["image"],
        category=product["category"],
    )


@app.get("/wishlist")
def wishlist_show(wishlist: WishlistStore = Depends(get_wishlist)):
    return wishlist.state.to_dict()


@app.post("/wishlist/items")
def wishlist_add(body: WishlistItemIn, wishlist: WishlistStore = Depends(get_wishlist)):
    return wishlist.add_item(_wishlist_item(_product_or_404(body.id))).to_dict()


@app.post("/wishlist/items/{item_id}/toggle")
def wishlist_toggle(item_id: str, wishlist: WishlistStore = Depends(get_wishlist)):
    item = wishlist.get(item_id) or _wishlist_item(_product_or_404(item_id))
    state = wishlist.toggle_wishlist(item)
    return {**state.to_dict(), "in_wishlist": wishlist.is_in_wishlist(item_id)}


@app.post("/wishlist/items/{item_id}/move-to-cart")
def wishlist_move_to_cart(
    item_id: str,
    wishlist: WishlistStore = Depends(get_wishlist),
    cart: CartStore = Depends(get_cart),
):
    cart_state = wishlist.move_to_cart(item_id, cart)
    return {"cart": cart_state.to_dict(), "wishlist": wishlist.state.to_dict()}


@app.delete("/wishlist/items/{item_id}")
def wishlist_remove(item_id: str, wishlist: WishlistStore = Depends(get_wishlist)):
    if not wishlist.is_in_wishlist(item_id):
        raise NotFoundError(f"Item {item_id} not found in wishlist")
    return wishlist.remove_item(item_id).to_dict()


@app.delete("/wishlist")
def wishlist_clear(wishlist: WishlistStore = Depends(get_wishlist)):
    return wishlist.clear_wishlist().to_dict()


# ---------------- checkout ----------------

@app.get("/checkout")
def checkout_show(cart: CartStore = Depends(get_cart), storage: LocalStorage = Depends(get_storage)):
    return _checkout_view(cart, CheckoutFlow(storage))


@app.post("/checkout/coupon")
def checkout_coupon(body: CouponPreviewIn, cart: CartStore = Depends(get_cart)):
    if not cart.state.items:
        raise ValidationError("Your cart is empty")
    totals, coupon = order_service.quote(cart.state, body.code)
    return {"totals": totals, "coupon": coupon}


@app.post("/checkout/info")
def checkout_info(body: CheckoutInfoIn, cart: CartStore = Depends(get_cart), storage: LocalStorage = Depends(get_storage)):
    if not cart.state.items:
        raise ValidationError("Your cart is empty")
    flow = CheckoutFlow(storage)
    info = body.model_dump(exclude={"coupon_code"})
    if body.coupon_code:
        order_service.quote(cart.state, body.coupon_code)
    flow.submit_info(info, body.coupon_code)
    return _checkout_view(cart, flow)


@app.post("/checkout/back")
def checkout_back(cart: CartStore = Depends(get_cart), storage: LocalStorage = Depends(get_storage)):
    flow = CheckoutFlow(storage)
    step = flow.back()
    view = _checkout_view(cart, flow)
    view["redirect"] = "/cart" if step is None else None
    return view


@app.post("/checkout")
def checkout_place(
    body: Optional[PlaceOrderIn] = None,
    cart: CartStore = Depends(get_cart),
    storage: LocalStorage = Depends(get_storage),
    user: Optional[Dict[str, Any]] = Depends(get_current_user),
):
    flow = CheckoutFlow(storage)
    order = order_service.place_order(cart, flow, user=user, payment_method=body.payment_method if body else "card")
    return {"order": order, "checkout": flow.to_dict()}


@app.post("/checkout/reset")
def checkout_reset(storage: LocalStorage = Depends(get_storage)):
    flow = CheckoutFlow(storage)
    flow.reset()
    return flow.to_dict()


# ---------------- auth ----------------

@app.post("/auth/signup")
def auth_signup(body: SignupIn):
    if body.confirm_password is not None and body.confirm_password != body.password:
        raise ValidationError("Passwords do not match")
    token, user = auth.sign_up(body.email, body.password, body.display_name)
    return {"token": token, "user": user}


@app.post("/auth/login")
def auth_login(body: LoginIn):
    token, user = auth.login(body.email, body.password)
    return {"token": token, "user": user}


@app.post("/auth/social")
def auth_social(body: SocialLoginIn):
    token, user = auth.login_with_provider(body.provider, body.uid, body.email, body.display_name, body.photo_url)
    return {"token": token, "user": user}


@app.post("/auth/logout")
def auth_logout(authorization: Optional[str] = Header(None)):
    token = _bearer(authorization)
    if token:
        auth.logout(token)
    return {"ok": True}


@app.get("/auth/me")
def auth_me(user: Dict[str, Any] = Depends(require_user)):
    return user


@app.get("/account/orders")
def account_orders(user: Dict[str, Any] = Depends(require_user)):
    return order_service.get_orders_by_user(user["id"])


@app.get("/account/orders/{order_id}/receipt")
def account_order_receipt(order_id: str, user: Dict[str, Any] = Depends(require_user)):
    order = order_service.get_order_by_id(order_id)
    if order is None or order.get("user_id") != user["id"]:
        raise NotFoundError(f"Order with ID {order_id} not found")
    p = Path(generate_receipt_pdf(order))
    return FileResponse(str(p), filename=p.name, media_type="application/pdf")


# ---------------- admin: products ----------------

@app.get("/admin/products")
def admin_products(_: Dict[str, Any] = Depends(require_admin)):
    return product_service.get_all_products()


@app.post("/admin/products", status_code=201)
def admin_product_create(body: ProductIn, _: Dict[str, Any] = Depends(require_admin)):
    return {"id": product_service.create_product(body.model_dump(exclude_unset=True))}


@app.put("/admin/products/{product_id}")
def admin_product_update(product_id: str, body: ProductIn, _: Dict[str, Any] = Depends(require_admin)):
    product_service.update_product(product_id, body.model_dump(exclude_unset=True))
    return {"ok": True}


@app.patch("/admin/products/{product_id}/visibility")
def admin_product_visibility(product_id: str, body: VisibilityIn, _: Dict[str, Any] = Depends(require_admin)):
    product_service.toggle_product_visibility(product_id, body.is_published)
    return {"ok": True}


@app.delete("/admin/products/{product_id}")
def admin_product_delete(product_id: str, _: Dict[str, Any] = Depends(require_admin)):
    product_service.delete_product(product_id)
    return {"ok": True}


# ---------------- admin: marketing ----------------

@app.get("/admin/coupons")
def admin_coupons(_: Dict[str, Any] = Depends(require_admin)):
    return marketing_service.get_all_coupons()


@app.post("/admin/coupons", status_code=201)
def admin_coupon_create(body: CouponIn, _: Dict[str, Any] = Depends(require_admin)):
    return {"id": marketing_service.create_coupon(body.model_dump(exclude_unset=True))}


@app.get("/admin/coupons/{coupon_id}")
def admin_coupon_detail(coupon_id: str, _: Dict[str, Any] = Depends(require_admin)):
    coupon = marketing_service.get_coupon_by_id(coupon_id)
    if coupon is None:
        raise NotFoundError(f"Coupon with ID {coupon_id} not found")
    return coupon


@app.put("/admin/coupons/{coupon_id}")
def admin_coupon_update(coupon_id: str, body: CouponIn, _: Dict[str, Any] = Depends(require_admin)):
    marketing_service.update_coupon(coupon_id, body.model_dump(exclude_unset=True))
    return {"ok": True}


@app.delete("/admin/coupons/{coupon_id}")
def admin_coupon_delete(coupon_id: str, _: Dict[str, Any] = Depends(require_admin)):
    marketing_service.delete_coupon(coupon_id)
    return {"ok": True}


@app.get("/admin/campaigns")
def admin_campaigns(_: Dict[str, Any] = Depends(require_admin)):
    return marketing_service.get_all_email_campaigns()


@app.post("/admin/campaigns", status_code=201)
def admin_campaign_create(body: CampaignIn, _: Dict[str, Any] = Depends(require_admin)):
    return {"id": marketing_service.create_email_campaign(body.model_dump(exclude_unset=True))}


@app.put("/admin/campaigns/{campaign_id}")
def admin_campaign_update(campaign_id: str, body: CampaignIn, _: Dict[str, Any] = Depends(require_admin)):
    marketing_service.update_email_campaign(campaign_id, body.model_dump(exclude_unset=True))
    return {"ok": True}


@app.delete("/admin/campaigns/{campaign_id}")
def admin_campaign_delete(campaign_id: str, _: Dict[str, Any] = Depends(require_admin)):
    marketing_service.delete_email_campaign(campaign_id)
    return {"ok": True}


@app.post("/admin/campaigns/{campaign_id}/preview")
def admin_campaign_preview(campaign_id: str, body: CampaignPreviewIn, _: Dict[str, Any] = Depends(require_admin)):
    campaign = marketing_service.get_email_campaign_by_id(campaign_id)
    if campaign is None:
        raise NotFoundError(f"Email campaign with ID {campaign_id} not found")
    rendered = marketing_service.render_campaign(campaign, body.context)
    return {**rendered, "recipients": marketing_service.resolve_audience(campaign)}


@app.get("/admin/banners")
def admin_banners(_: Dict[str, Any] = Depends(require_admin)):
    return marketing_service.get_all_banners()


@app.post("/admin/banners", status_code=201)
def admin_banner_create(body: BannerIn, _: Dict[str, Any] = Depends(require_admin)):
    return {"id": marketing_service.create_banner(body.model_dump(exclude_unset=True))}


@app.put("/admin/banners/{banner_id}")
def admin_banner_update(banner_id: str, body: BannerIn, _: Dict[str, Any] = Depends(require_admin)):
    marketing_service.update_banner(banner_id, body.model_dump(exclude_unset=True))
    return {"ok": True}


@app.delete("/admin/banners/{banner_id}")
def admin_banner_delete(banner_id: str, _: Dict[str, Any] = Depends(require_admin)):
    marketing_service.delete_banner(banner_id)
    return {"ok": True}


# ---------------- admin: orders ----------------

@app.get("/admin/orders")
def admin_orders(status: Optional[str] = None, _: Dict[str, Any] = Depends(require_admin)):
    if status:
        return order_service.get_orders_by_status(status)
    return order_service.get_all_orders()


@app.get("/admin/orders/{order_id}")
def admin_order_detail(order_id: str, _: Dict[str, Any] = Depends(require_admin)):
    order = order_service.get_order_by_id(order_id)
    if order is None:
        raise NotFoundError(f"Order with ID {order_id} not found")
    return order


@app.patch("/admin/orders/{order_id}/status")
def admin_order_status(order_id: str, body: OrderStatusIn, _: Dict[str, Any] = Depends(require_admin)):
    order_service.update_order_status(order_id, body.status, body.tracking_number)
    return order_service.get_order_by_id(order_id)


@app.patch("/admin/orders/{order_id}/tracking")
def admin_order_tracking(order_id: str, body: TrackingIn, _: Dict[str, Any] = Depends(require_admin)):
    order_service.update_tracking_number(order_id, body.tracking_number)
    return order_service.get_order_by_id(order_id)


@app.post("/admin/orders/{order_id}/refund")
def admin_order_refund(order_id: str, body: RefundIn, _: Dict[str, Any] = Depends(require_admin)):
    return order_service.process_refund(order_id, body.amount)


@app.post("/admin/orders/{order_id}/notes", status_code=201)
def admin_order_note(order_id: str, body: OrderNoteIn, admin: Dict[str, Any] = Depends(require_admin)):
    return order_service.add_order_note(order_id, body.text, admin["email"])


@app.get("/admin/orders/{order_id}/receipt", response_class=FileResponse)
def admin_order_receipt(order_id: str, _: Dict[str, Any] = Depends(require_admin)):
    order = order_service.get_order_by_id(order_id)
    if order is None:
        raise NotFoundError(f"Order with ID {order_id} not found")
    p = Path(generate_receipt_pdf(order))
    return FileResponse(str(p), filename=p.name, media_type="application/pdf")


# ---------------- admin: customers ----------------

@app.get("/admin/customers")
def admin_customers(_: Dict[str, Any] = Depends(require_admin)):
    return customer_service.get_all_customers()


@app.get("/admin/customers/high-value")
def admin_customers_high_value(limit: int = 10, _: Dict[str, Any] = Depends(require_admin)):
    return customer_service.get_high_value_customers(limit)


@app.get("/admin/customers/recent")
def admin_customers_recent(limit: int = 10, _: Dict[str, Any] = Depends(require_admin)):
    return customer_service.get_recent_customers(limit)


@app.get("/admin/customers/{customer_id}")
def admin_customer_detail(customer_id: str, _: Dict[str, Any] = Depends(require_admin)):
    customer = customer_service.get_customer_by_id(customer_id)
    if customer is None:
        raise NotFoundError(f"Customer with ID {customer_id} not found")
    return customer


@app.patch("/admin/customers/{customer_id}")
def admin_customer_update(customer_id: str, body: CustomerIn, _: Dict[str, Any] = Depends(require_admin)):
    return customer_service.update_customer(customer_id, body.model_dump(exclude_unset=True))


@app.patch("/admin/customers/{customer_id}/status")
def admin_customer_status(customer_id: str, body: CustomerStatusIn, _: Dict[str, Any] = Depends(require_admin)):
    return customer_service.update_customer_status(customer_id, body.status)
