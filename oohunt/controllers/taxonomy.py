"""Tag and category API.

Reads are public and cached; writes require content management rights.
"""

from typing import Annotated, Any

from litestar import Controller, delete, get, post, put
from litestar.params import Parameter
from litestar.status_codes import HTTP_200_OK
from sqlalchemy.ext.asyncio import AsyncSession

from oohunt.auth.guards import Permission, auth_guard
from oohunt.auth.roles import MANAGE_CONTENT
from oohunt.db.filters import CategoryFilter, Pagination, TagFilter, parse_id
from oohunt.db.schemas import CategoryOut, TagOut, TaxonomyInput, dump
from oohunt.db.services import taxonomy_service
from oohunt.db.services.taxonomy_service import CATEGORIES, TAG_LIST_LIMIT, TAGS, CountedTerm
from oohunt.lib.responses import ok
from oohunt.lib.revalidation import CMS_TAXONOMY

CACHE_OPT = {"cache_tags": (CMS_TAXONOMY,)}


def _tag_payload(counted: CountedTerm) -> dict[str, Any]:
    return {**dump(TagOut, counted.term), "postCount": counted.post_count}


def _category_payload(counted: CountedTerm) -> dict[str, Any]:
    return {**dump(CategoryOut, counted.term), "postCount": counted.post_count}


class TagController(Controller):
    path = "/api/cms/tags"

    @get("/", cache=True, opt=CACHE_OPT)
    async def list_tags(
        self,
        db_session: AsyncSession,
        search: str | None = None,
        limit: Annotated[int, Parameter(ge=1, le=TAG_LIST_LIMIT)] = TAG_LIST_LIMIT,
    ) -> dict[str, Any]:
        result = await taxonomy_service.list_tags(db_session, TagFilter.from_query(search), limit=limit)
        return ok({"tags": [_tag_payload(tag) for tag in result.items], "totalItems": result.total_items})

    @get("/slug/{slug:str}", cache=True, opt=CACHE_OPT)
    async def get_tag_by_slug(self, db_session: AsyncSession, slug: str) -> dict[str, Any]:
        tag = await taxonomy_service.get_term_by_slug(db_session, TAGS, slug)
        return ok(_tag_payload(await taxonomy_service.with_post_count(db_session, TAGS, tag)))

    @get("/{tag_id:str}", cache=True, opt=CACHE_OPT)
    async def get_tag(self, db_session: AsyncSession, tag_id: str) -> dict[str, Any]:
        tag = await taxonomy_service.get_term(db_session, TAGS, parse_id(tag_id, "tag id"))
        return ok(_tag_payload(await taxonomy_service.with_post_count(db_session, TAGS, tag)))

    @post("/", guards=[auth_guard, Permission(MANAGE_CONTENT)], status_code=HTTP_200_OK)
    async def create_tag(self, db_session: AsyncSession, data: TaxonomyInput) -> dict[str, Any]:
        tag = await taxonomy_service.create_tag(db_session, data)
        return ok({**dump(TagOut, tag), "postCount": 0}, message="Tag created")

    @put("/{tag_id:str}", guards=[auth_guard, Permission(MANAGE_CONTENT)])
    async def update_tag(self, db_session: AsyncSession, tag_id: str, data: TaxonomyInput) -> dict[str, Any]:
        tag = await taxonomy_service.update_tag(db_session, parse_id(tag_id, "tag id"), data)
        counted = await taxonomy_service.with_post_count(db_session, TAGS, tag)
        return ok(_tag_payload(counted), message="Tag updated")

    @delete("/{tag_id:str}", guards=[auth_guard, Permission(MANAGE_CONTENT)], status_code=HTTP_200_OK)
    async def delete_tag(self, db_session: AsyncSession, tag_id: str) -> dict[str, Any]:
        await taxonomy_service.delete_tag(db_session, parse_id(tag_id, "tag id"))
        return ok(message="Tag deleted")


class CategoryController(Controller):
    path = "/api/cms/categories"

    @get("/", cache=True, opt=CACHE_OPT)
    async def list_categories(
        self,
        db_session: AsyncSession,
        search: str | None = None,
        parent_id: Annotated[str | None, Parameter(query="parentId")] = None,
        page: int = 1,
        limit: int = TAG_LIST_LIMIT,
    ) -> dict[str, Any]:
        """Categories with post counts.

        ``parentId=null`` restricts to top-level categories; any other value
        restricts to that parent's children.
        """
        result = await taxonomy_service.list_categories(
            db_session,
            CategoryFilter.from_query(search=search, parent_id=parent_id),
            Pagination(page=page, limit=limit),
        )
        return ok(result.payload("categories", [_category_payload(item) for item in result.items]))

    @get("/slug/{slug:str}", cache=True, opt=CACHE_OPT)
    async def get_category_by_slug(self, db_session: AsyncSession, slug: str) -> dict[str, Any]:
        category = await taxonomy_service.get_term_by_slug(db_session, CATEGORIES, slug)
        return ok(_category_payload(await taxonomy_service.with_post_count(db_session, CATEGORIES, category)))

    @get("/{category_id:str}", cache=True, opt=CACHE_OPT)
    async def get_category(self, db_session: AsyncSession, category_id: str) -> dict[str, Any]:
        category = await taxonomy_service.get_term(db_session, CATEGORIES, parse_id(category_id, "category id"))
        return ok(_category_payload(await taxonomy_service.with_post_count(db_session, CATEGORIES, category)))

    @post("/", guards=[auth_guard, Permission(MANAGE_CONTENT)], status_code=HTTP_200_OK)
    async def create_category(self, db_session: AsyncSession, data: TaxonomyInput) -> dict[str, Any]:
        category = await taxonomy_service.create_category(db_session, data)
        return ok({**dump(CategoryOut, category), "postCount": 0}, message="Category created")

    @put("/{category_id:str}", guards=[auth_guard, Permission(MANAGE_CONTENT)])
    async def update_category(
        self, db_session: AsyncSession, category_id: str, data: TaxonomyInput
    ) -> dict[str, Any]:
        category = await taxonomy_service.update_category(
            db_session, parse_id(category_id, "category id"), data
        )
        counted = await taxonomy_service.with_post_count(db_session, CATEGORIES, category)
        return ok(_category_payload(counted), message="Category updated")

    @delete("/{category_id:str}", guards=[auth_guard, Permission(MANAGE_CONTENT)], status_code=HTTP_200_OK)
    async def delete_category(self, db_session: AsyncSession, category_id: str) -> dict[str, Any]:
        await taxonomy_service.delete_category(db_session, parse_id(category_id, "category id"))
        return ok(message="Category deleted")
