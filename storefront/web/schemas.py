from __future__ import annotations

from typing import List, Literal, Optional

from pydantic import BaseModel, Field


class CartItemIn(BaseModel):
    id: str
    quantity: int = Field(1, ge=1)
    size: Optional[str] = None


class QuantityIn(BaseModel):
    quantity: int


class WishlistItemIn(BaseModel):
    id: str


class SignupIn(BaseModel):
    email: str
    password: str
    confirm_password: Optional[str] = None
    display_name: str


class LoginIn(BaseModel):
    email: str
    password: str


class SocialLoginIn(BaseModel):
    provider: str
    uid: str
    email: str
    display_name: str = ""
    photo_url: str = ""


class CheckoutInfoIn(BaseModel):
    first_name: str
    last_name: str
    email: str
    address: str
    city: str
    zip_code: str
    country: str
    coupon_code: Optional[str] = None


class PlaceOrderIn(BaseModel):
    payment_method: str = "card"


class CouponPreviewIn(BaseModel):
    code: str


class ProductIn(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None
    price: Optional[str] = None
    image: Optional[str] = None
    category: Optional[str] = None
    featured: Optional[bool] = None
    inventory: Optional[int] = None
    sizes: Optional[List[str]] = None
    tags: Optional[List[str]] = None
    sale_price: Optional[str] = None
    is_published: Optional[bool] = None


class VisibilityIn(BaseModel):
    is_published: bool


class CouponIn(BaseModel):
    code: Optional[str] = None
    type: Optional[Literal["percentage", "fixed", "free_shipping"]] = None
    value: Optional[float] = None
    min_purchase: Optional[float] = None
    max_uses: Optional[int] = None
    valid_from: Optional[str] = None
    valid_to: Optional[str] = None
    is_active: Optional[bool] = None
    products: Optional[List[str]] = None
    categories: Optional[List[str]] = None


class CampaignIn(BaseModel):
    name: Optional[str] = None
    subject: Optional[str] = None
    content: Optional[str] = None
    audience: Optional[str] = None
    custom_audience: Optional[List[str]] = None
    scheduled_date: Optional[str] = None
    sent_date: Optional[str] = None
    status: Optional[str] = None
    open_rate: Optional[float] = None
    click_rate: Optional[float] = None


class CampaignPreviewIn(BaseModel):
    context: dict = Field(default_factory=dict)


class BannerIn(BaseModel):
    title: Optional[str] = None
    image: Optional[str] = None
    link: Optional[str] = None
    position: Optional[str] = None
    start_date: Optional[str] = None
    end_date: Optional[str] = None
    is_active: Optional[bool] = None


class OrderStatusIn(BaseModel):
    status: str
    tracking_number: Optional[str] = None


class OrderNoteIn(BaseModel):
    text: str


class TrackingIn(BaseModel):
    tracking_number: str


class RefundIn(BaseModel):
    amount: Optional[float] = None


class CustomerIn(BaseModel):
    display_name: Optional[str] = None
    photo_url: Optional[str] = None
    phone: Optional[str] = None
    shipping_address: Optional[dict] = None


class CustomerStatusIn(BaseModel):
    status: str
