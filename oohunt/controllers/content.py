"""Public read API for published CMS content."""

from typing import Annotated, Any

from litestar import Controller, get
from litestar.params import Parameter
from sqlalchemy.ext.asyncio import AsyncSession

from oohunt.db.schemas import PageDetail, PageSummary, dump
from oohunt.db.services import page_service
from oohunt.lib.hooks import CONTENT_PAGE_PAYLOAD, hooks
from oohunt.lib.responses import ok
from oohunt.lib.revalidation import CMS_CONTENT


class ContentController(Controller):
    path = "/api/cms/content"

    @get("/", cache=True, opt={"cache_tags": (CMS_CONTENT,)})
    async def list_content(
        self,
        db_session: AsyncSession,
        limit: Annotated[int, Parameter(ge=1, le=100)] = 20,
    ) -> dict[str, Any]:
        """Newest published pages, without their bodies."""
        pages = await page_service.list_published_pages(db_session, limit=limit)
        return ok([dump(PageSummary, page) for page in pages])

    @get("/{slug:str}", cache=True, opt={"cache_tags": (CMS_CONTENT,)})
    async def get_content(self, db_session: AsyncSession, slug: str) -> dict[str, Any]:
        """One published page with its products embedded.

        Products that cannot be resolved are left out; the page itself is
        still served.
        """
        resolved = await page_service.get_published_page_by_slug(db_session, slug)

        payload = dump(PageDetail, resolved.page)
        payload["products"] = [product.model_dump(mode="json") for product in resolved.products]
        payload = await hooks.apply_filters(CONTENT_PAGE_PAYLOAD, payload, resolved.page)
        return ok(payload)
