from oohunt.db.models.contact import ContactMessage, ContactStatus, Subscription, SubscriptionSource
from oohunt.db.models.favorite import Favorite
from oohunt.db.models.page import Page, PageStatus
from oohunt.db.models.product import Product
from oohunt.db.models.taxonomy import ContentCategory, ContentTag

__all__ = [
    "ContactMessage",
    "ContactStatus",
    "ContentCategory",
    "ContentTag",
    "Favorite",
    "Page",
    "PageStatus",
    "Product",
    "Subscription",
    "SubscriptionSource",
]
