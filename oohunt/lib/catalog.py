"""Client for the external product catalog API.

The catalog owns product listings and search; this service forwards
normalized queries and reshapes the answers. One client (and its connection
pool) lives for the lifetime of the application.
"""

import logging
import random
import re
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

import httpx

from oohunt.config import CatalogConfig
from oohunt.lib import observability
from oohunt.lib.exceptions import NotFoundError, UpstreamError, ValidationError

logger = logging.getLogger(__name__)

NUMERIC_PARAMS = frozenset({"page", "page_size", "min_price", "max_price", "min_discount"})
BOOLEAN_PARAMS = frozenset({"is_prime_only"})
ASIN_PATTERN = re.compile(r"[A-Z0-9]{10}")


@dataclass
class CatalogPage:
    items: list[dict[str, Any]] = field(default_factory=list)
    total: int = 0
    page: int = 1
    page_size: int = 10

    def to_payload(self) -> dict[str, Any]:
        return {"items": self.items, "total": self.total, "page": self.page, "page_size": self.page_size}


def _number(value: str) -> int | float | None:
    try:
        number = float(value)
    except ValueError:
        return None
    if number != number or number in (float("inf"), float("-inf")):
        return None
    return int(number) if number.is_integer() else number


def normalize_params(params: Mapping[str, str]) -> dict[str, Any]:
    """Coerce catalog query parameters to the types the catalog expects.

    Numeric parameters that do not parse are dropped, ``is_prime_only`` becomes
    a boolean, ``limit`` is renamed to ``page_size`` and empty values vanish.
    """
    normalized: dict[str, Any] = {}
    for key, value in params.items():
        if value is None or value == "":
            continue
        if key in NUMERIC_PARAMS:
            number = _number(value)
            if number is not None:
                normalized[key] = number
        elif key in BOOLEAN_PARAMS:
            normalized[key] = value == "true"
        elif key != "limit":
            normalized[key] = value

    if params.get("limit"):
        page_size = _number(params["limit"])
        if page_size is not None:
            normalized["page_size"] = page_size

    return normalized


def parse_catalog_page(body: Any) -> CatalogPage:
    """Accept either ``{"data": {...}}`` or the flat listing shape."""
    if not isinstance(body, dict):
        raise UpstreamError("Product catalog returned an unexpected response")
    data = body.get("data") if isinstance(body.get("data"), dict) else body
    return CatalogPage(
        items=data.get("items") or [],
        total=data.get("total") or 0,
        page=data.get("page") or 1,
        page_size=data.get("page_size") or 10,
    )


def normalize_asin(asin: str) -> str:
    asin = asin.upper()
    if not ASIN_PATTERN.fullmatch(asin):
        raise ValidationError("Invalid ASIN format. ASIN must be 10 alphanumeric characters.")
    return asin


# Featured and hero selection

FEATURED_POOL_QUERIES = (
    {"page_size": 200, "min_discount": 10, "product_type": "all", "sort_by": "random", "sort_order": "desc"},
    {"page_size": 50, "min_discount": 10, "product_type": "all", "sort_by": "discount", "sort_order": "desc"},
    {"page_size": 50, "product_type": "all", "sort_by": "discount", "sort_order": "desc"},
)

HERO_PAGE_SPREAD = 50
HERO_QUERY = {
    "page_size": 50,
    "min_price": 3,
    "max_price": 700,
    "min_discount": 20,
    "is_prime_only": True,
    "product_type": "all",
    "sort_by": "discount",
    "sort_order": "desc",
}

FALLBACK_PROMO_CARDS = (
    {
        "id": 1,
        "title": "Flash Sale",
        "description": "Kitchen Appliances Promotion",
        "discount": "Up to 70% OFF",
        "ctaText": "Shop Now",
        "link": "/category/kitchen-appliances",
        "brand": "Kitchen Appliances",
        "productId": "fallback-product-1",
    },
    {
        "id": 2,
        "title": "New Arrivals",
        "description": "Smart Home Device Specials",
        "discount": "15% OFF First Order",
        "ctaText": "Learn More",
        "link": "/category/smart-home",
        "brand": "Smart Home",
        "productId": "fallback-product-2",
    },
    {
        "id": 3,
        "title": "Member Exclusive",
        "description": "Electronics Coupon Deal",
        "discount": "Extra 10% OFF",
        "ctaText": "Get Coupon",
        "link": "/coupons/electronics",
        "brand": "Electronics",
        "productId": "fallback-product-3",
    },
)


@dataclass
class HeroProducts:
    products: list[dict[str, Any]]
    promo_cards: list[dict[str, Any]]
    fallback: bool = False

    def to_payload(self) -> dict[str, Any]:
        return {"products": self.products, "promoCards": self.promo_cards}


def quarter_hour_seed(now: datetime) -> int:
    return now.year * 1_000_000 + now.month * 10_000 + now.day * 100 + now.hour * 4 + now.minute // 15


def minute_seed(now: datetime) -> int:
    return now.year * 10_000_000 + now.month * 100_000 + now.day * 1_000 + now.hour * 100 + now.minute


def discount_weight(product: Mapping[str, Any]) -> int:
    discount = product.get("discount")
    if not isinstance(discount, (int, float)):
        return 1
    if discount >= 30:
        return 3
    if discount >= 20:
        return 2
    return 1


def weighted_shuffle(items: list[dict[str, Any]], seed: int) -> list[dict[str, Any]]:
    """Seeded Fisher-Yates pass where each swap is biased by discount weight."""
    rng = random.Random(seed)
    shuffled = list(items)
    for i in range(len(shuffled) - 1, 0, -1):
        j = rng.randrange(i + 1)
        weight_i, weight_j = discount_weight(shuffled[i]), discount_weight(shuffled[j])
        if rng.random() * (weight_i + weight_j) < weight_j:
            shuffled[i], shuffled[j] = shuffled[j], shuffled[i]
    return shuffled


def _display_number(value: Any) -> str:
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def promo_card(card_id: int, product: Mapping[str, Any]) -> dict[str, Any]:
    offers = product.get("offers")
    offer = offers[0] if isinstance(offers, list) and offers and isinstance(offers[0], dict) else {}
    is_coupon = bool(offer.get("coupon_type") and offer.get("coupon_value"))

    if is_coupon:
        value = _display_number(offer["coupon_value"])
        discount = f"${value} Coupon" if offer["coupon_type"] == "fixed" else f"{value}% Coupon"
    elif offer.get("savings_percentage"):
        discount = f"{_display_number(offer['savings_percentage'])}% OFF"
    else:
        discount = ""

    description = " · ".join(part for part in (product.get("brand"), product.get("binding")) if part)

    return {
        "id": card_id,
        "title": product.get("title"),
        "description": description,
        "discount": discount,
        "ctaText": "Get Coupon" if is_coupon else "Shop Now",
        "link": product.get("url"),
        "image": product.get("main_image"),
        "brand": product.get("brand"),
        "productId": product.get("asin"),
    }


class CatalogClient:
    def __init__(self, config: CatalogConfig, transport: httpx.AsyncBaseTransport | None = None) -> None:
        headers = {"Accept": "application/json"}
        if config.api_key:
            headers["X-API-Key"] = config.api_key

        self._client = httpx.AsyncClient(
            base_url=config.base_url.rstrip("/"),
            headers=headers,
            timeout=config.timeout,
            transport=transport,
        )

    async def close(self) -> None:
        await self._client.aclose()

    async def list_products(self, params: Mapping[str, str]) -> CatalogPage:
        body = await self._get("/products/list", normalize_params(params))
        return parse_catalog_page(body)

    async def search_products(self, params: Mapping[str, str]) -> CatalogPage:
        body = await self._get("/search/products", normalize_params(params))
        return parse_catalog_page(body)

    async def get_product(self, asin: str) -> dict[str, Any]:
        """Fetch one product by ASIN.

        Raises:
            ValidationError: the ASIN is malformed
            NotFoundError: the catalog has no such product
            UpstreamError: the catalog is unreachable or failed
        """
        return await self._get(f"/products/{normalize_asin(asin)}", {}, not_found="Product not found")

    async def count_products(self, product_groups: str | None = None) -> int:
        """Total number of catalog products, optionally within some product groups."""
        params: dict[str, Any] = {"page": 1, "page_size": 1}
        if product_groups:
            params["product_groups"] = product_groups
        return parse_catalog_page(await self._get("/products/list", params)).total

    async def featured_products(self, limit: int = 4, now: datetime | None = None) -> list[dict[str, Any]]:
        """A rotating pick of discounted products.

        The pool query widens step by step until something comes back. The
        pick is stable for a quarter hour and leans toward bigger discounts.
        """
        items: list[dict[str, Any]] = []
        for params in FEATURED_POOL_QUERIES:
            items = parse_catalog_page(await self._get("/products/list", params)).items
            if items:
                break
        return weighted_shuffle(items, quarter_hour_seed(now or datetime.now(UTC)))[:limit]

    async def hero_products(self, limit: int = 3, now: datetime | None = None) -> HeroProducts:
        """Products and promo cards for the home page hero, stable for a minute.

        An unavailable catalog yields the static fallback cards instead of an
        error so the hero always renders.
        """
        rng = random.Random(minute_seed(now or datetime.now(UTC)))
        params = {**HERO_QUERY, "page": rng.randint(1, HERO_PAGE_SPREAD)}
        try:
            items = parse_catalog_page(await self._get("/products/list", params)).items
        except UpstreamError:
            logger.warning("Hero products unavailable, serving fallback promo cards")
            return HeroProducts(products=[], promo_cards=[dict(card) for card in FALLBACK_PROMO_CARDS], fallback=True)

        items = list(items)
        rng.shuffle(items)
        products = items[:limit]
        return HeroProducts(
            products=products,
            promo_cards=[promo_card(index, product) for index, product in enumerate(products, start=1)],
        )

    async def _get(self, path: str, params: dict[str, Any], not_found: str | None = None) -> Any:
        try:
            with observability.span("catalog {path}", path=path, params=params):
                response = await self._client.get(path, params=params)
        except httpx.HTTPError as exc:
            logger.warning("Catalog request %s failed: %s", path, exc)
            raise UpstreamError() from exc

        if response.status_code == 404 and not_found is not None:
            raise NotFoundError(not_found)

        try:
            response.raise_for_status()
            return response.json()
        except httpx.HTTPStatusError as exc:
            logger.warning("Catalog request %s returned %s", path, response.status_code)
            raise UpstreamError() from exc
        except ValueError as exc:
            logger.warning("Catalog request %s returned invalid JSON", path)
            raise UpstreamError() from exc
