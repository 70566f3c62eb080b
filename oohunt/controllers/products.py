"""Product endpoints: the CMS product picker and the external catalog proxy."""

from typing import Annotated, Any

from litestar import Controller, Request, get, post
from litestar.datastructures import State
from litestar.di import Provide
from litestar.params import Parameter
from litestar.status_codes import HTTP_200_OK
from sqlalchemy.ext.asyncio import AsyncSession

from oohunt.auth.guards import Permission, auth_guard
from oohunt.auth.roles import MANAGE_PRODUCTS
from oohunt.db.filters import Pagination, ProductFilter, product_sort
from oohunt.db.schemas import ProductInput
from oohunt.db.services import product_service
from oohunt.lib.catalog import CatalogClient
from oohunt.lib.responses import ok
from oohunt.lib.revalidation import PRODUCTS

FEATURED_LIMIT_MAX = 50
HERO_LIMIT_MAX = 10


def provide_catalog(state: State) -> CatalogClient:
    return state.catalog


class CmsProductController(Controller):
    """Products stored alongside CMS content, for linking from pages."""

    path = "/api/cms/products"

    @get("/", cache=True, opt={"cache_tags": (PRODUCTS,)})
    async def picker(
        self,
        db_session: AsyncSession,
        search: str | None = None,
        category: str | None = None,
        page: int = 1,
        limit: int = 20,
        sort_by: Annotated[str, Parameter(query="sortBy")] = "createdAt",
        sort_order: Annotated[str, Parameter(query="sortOrder")] = "desc",
    ) -> dict[str, Any]:
        result = await product_service.search_products(
            db_session,
            ProductFilter.from_query(search=search, category=category),
            Pagination(page=page, limit=limit),
            product_sort(sort_by, sort_order),
        )
        items = [product_service.to_picker_item(product).model_dump(mode="json") for product in result.items]
        return ok(result.payload("products", items))

    @post("/", guards=[auth_guard, Permission(MANAGE_PRODUCTS)], status_code=HTTP_200_OK)
    async def create_product(self, db_session: AsyncSession, data: ProductInput) -> dict[str, Any]:
        product = await product_service.create_product(db_session, data)
        return ok(product_service.to_picker_item(product).model_dump(mode="json"), message="Product created")


class CatalogController(Controller):
    """Pass-through to the external product catalog with normalized queries."""

    path = "/api"
    dependencies = {"catalog": Provide(provide_catalog, sync_to_thread=False)}

    @get("/products/list", cache=True, opt={"cache_tags": (PRODUCTS,)})
    async def list_products(self, request: Request, catalog: CatalogClient) -> dict[str, Any]:
        result = await catalog.list_products(dict(request.query_params))
        return ok(result.to_payload())

    @get("/search/products", cache=True, opt={"cache_tags": (PRODUCTS,)})
    async def search_products(self, request: Request, catalog: CatalogClient) -> dict[str, Any]:
        result = await catalog.search_products(dict(request.query_params))
        return ok(result.to_payload())

    @get("/products/count", cache=True, opt={"cache_tags": (PRODUCTS,)})
    async def count_products(
        self,
        catalog: CatalogClient,
        product_groups: str | None = None,
    ) -> dict[str, Any]:
        return ok({"total": await catalog.count_products(product_groups)})

    @get("/products/featured", cache=900, opt={"cache_tags": (PRODUCTS,)})
    async def featured_products(
        self,
        catalog: CatalogClient,
        limit: Annotated[int, Parameter(ge=1, le=FEATURED_LIMIT_MAX)] = 4,
    ) -> dict[str, Any]:
        return ok(await catalog.featured_products(limit))

    @get("/products/hero", cache=60, opt={"cache_tags": (PRODUCTS,)})
    async def hero_products(
        self,
        catalog: CatalogClient,
        limit: Annotated[int, Parameter(ge=1, le=HERO_LIMIT_MAX)] = 3,
    ) -> dict[str, Any]:
        """Hero products plus promo cards. Falls back to static cards with ``status: false``."""
        result = await catalog.hero_products(limit)
        if result.fallback:
            return {"status": False, "data": result.to_payload(), "message": "Failed to fetch hero products"}
        return ok(result.to_payload())

    @get("/products/{asin:str}", cache=True, opt={"cache_tags": (PRODUCTS,)})
    async def get_product(self, catalog: CatalogClient, asin: str) -> dict[str, Any]:
        return ok(await catalog.get_product(asin))
