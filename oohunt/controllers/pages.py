"""Admin API for CMS pages."""

from typing import Annotated, Any

from litestar import Controller, delete, get, post, put
from litestar.params import Parameter
from litestar.status_codes import HTTP_200_OK
from sqlalchemy.ext.asyncio import AsyncSession

from oohunt.auth.guards import Permission, auth_guard
from oohunt.auth.roles import MANAGE_CONTENT
from oohunt.db.filters import PageFilter, Pagination, page_sort, parse_id
from oohunt.db.schemas import PageAdminSummary, PageDetail, PageInput, dump
from oohunt.db.services import page_service
from oohunt.lib.responses import ok


class PageAdminController(Controller):
    path = "/api/cms/pages"

    @get("/", guards=[auth_guard, Permission(MANAGE_CONTENT)])
    async def list_pages(
        self,
        db_session: AsyncSession,
        page: int = 1,
        limit: int = 10,
        search: str | None = None,
        status: str | None = None,
        sort_by: Annotated[str, Parameter(query="sortBy")] = "updatedAt",
        sort_order: Annotated[str, Parameter(query="sortOrder")] = "desc",
    ) -> dict[str, Any]:
        """Pages in any status, filtered, sorted and paginated."""
        result = await page_service.list_pages(
            db_session,
            PageFilter.from_query(search=search, status=status),
            Pagination(page=page, limit=limit),
            page_sort(sort_by, sort_order),
        )
        return ok(result.payload("pages", [dump(PageAdminSummary, item) for item in result.items]))

    @post("/", guards=[auth_guard, Permission(MANAGE_CONTENT)], status_code=HTTP_200_OK)
    async def create_page(self, db_session: AsyncSession, data: PageInput) -> dict[str, Any]:
        page = await page_service.create_page(db_session, data)
        return ok(dump(PageDetail, page), message="Page created")

    @get("/{page_id:str}", guards=[auth_guard, Permission(MANAGE_CONTENT)])
    async def get_page(self, db_session: AsyncSession, page_id: str) -> dict[str, Any]:
        page = await page_service.get_page_by_id(db_session, parse_id(page_id, "page id"))
        return ok(dump(PageDetail, page))

    @put("/{page_id:str}", guards=[auth_guard, Permission(MANAGE_CONTENT)])
    async def update_page(self, db_session: AsyncSession, page_id: str, data: PageInput) -> dict[str, Any]:
        page = await page_service.update_page(db_session, parse_id(page_id, "page id"), data)
        return ok(dump(PageDetail, page), message="Page updated")

    @delete("/{page_id:str}", guards=[auth_guard, Permission(MANAGE_CONTENT)], status_code=HTTP_200_OK)
    async def delete_page(self, db_session: AsyncSession, page_id: str) -> dict[str, Any]:
        await page_service.delete_page(db_session, parse_id(page_id, "page id"))
        return ok(message="Page deleted")
