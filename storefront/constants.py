COLLECTIONS = {
    "PRODUCTS": "products",
    "CATEGORIES": "categories",
    "COUPONS": "coupons",
    "CAMPAIGNS": "emailCampaigns",
    "BANNERS": "banners",
    "ORDERS": "orders",
    "USERS": "users",
}

# local storage keys, one JSON list each
CART_STORAGE_KEY = "cart_items"
WISHLIST_STORAGE_KEY = "wishlist_items"

DEFAULT_SIZES = ["S", "M", "L", "XL"]

CATEGORY_AVAILABLE = "available"
CATEGORY_COMING_SOON = "coming-soon"

COUPON_PERCENTAGE = "percentage"
COUPON_FIXED = "fixed"
COUPON_FREE_SHIPPING = "free_shipping"
COUPON_TYPES = (COUPON_PERCENTAGE, COUPON_FIXED, COUPON_FREE_SHIPPING)

CAMPAIGN_AUDIENCES = ("all", "new_customers", "returning_customers", "inactive", "custom")
CAMPAIGN_STATUSES = ("draft", "scheduled", "sent", "cancelled")

BANNER_POSITIONS = ("home_hero", "home_middle", "sidebar", "category_top", "custom")

ORDER_STATUSES = ("pending", "processing", "shipped", "delivered", "cancelled", "refunded", "completed")
PAYMENT_STATUSES = ("pending", "paid", "failed", "refunded")

ROLE_CUSTOMER = "customer"
ROLE_ADMIN = "admin"
DEFAULT_PERMISSIONS = ["view"]

AUTH_PROVIDERS = ("google",)

# login throttling
MAX_FAILED_LOGINS = 5
FAILED_LOGIN_WINDOW_MINUTES = 15

CUSTOMER_ACTIVE = "active"
CUSTOMER_STATUSES = (CUSTOMER_ACTIVE, "suspended", "banned")
