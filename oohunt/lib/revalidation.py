"""Tag-based invalidation of cached public responses.

Cacheable routes declare ``opt={"cache_tags": (...)}``. The response cache key
includes the current version of each tag, so bumping a tag makes the next read
miss the cache and go to the database again.
"""

import logging
from collections import defaultdict

from litestar import Request
from litestar.config.response_cache import default_cache_key_builder

from oohunt.lib.hooks import (
    AFTER_CATEGORY_DELETE,
    AFTER_CATEGORY_SAVE,
    AFTER_PAGE_DELETE,
    AFTER_PAGE_SAVE,
    AFTER_PRODUCT_SAVE,
    AFTER_TAG_DELETE,
    AFTER_TAG_SAVE,
    HookRegistry,
    hooks,
)

logger = logging.getLogger(__name__)

CMS_CONTENT = "cms-content"
CMS_TAXONOMY = "cms-taxonomy"
PRODUCTS = "products"

_tag_versions: dict[str, int] = defaultdict(int)


def tag_version(tag: str) -> int:
    return _tag_versions[tag]


def revalidate_tag(*tags: str) -> None:
    """Invalidate every cached response carrying any of ``tags``."""
    for tag in tags:
        _tag_versions[tag] += 1
        logger.debug("Revalidated cache tag %s (version %d)", tag, _tag_versions[tag])


def cache_key_builder(request: Request) -> str:
    """Default Litestar cache key with the route's tag versions appended."""
    key = default_cache_key_builder(request)
    tags = request.route_handler.opt.get("cache_tags") or ()
    if not tags:
        return key
    versions = ",".join(f"{tag}:{_tag_versions[tag]}" for tag in sorted(tags))
    return f"{key}#{versions}"


async def _revalidate_content(*args, **kwargs) -> None:
    # Post counts depend on published pages, so taxonomy goes stale too.
    revalidate_tag(CMS_CONTENT, CMS_TAXONOMY)


async def _revalidate_taxonomy(*args, **kwargs) -> None:
    revalidate_tag(CMS_TAXONOMY)


async def _revalidate_products(*args, **kwargs) -> None:
    revalidate_tag(PRODUCTS, CMS_CONTENT)


_HOOK_HANDLERS = (
    (AFTER_PAGE_SAVE, _revalidate_content),
    (AFTER_PAGE_DELETE, _revalidate_content),
    (AFTER_TAG_SAVE, _revalidate_taxonomy),
    (AFTER_TAG_DELETE, _revalidate_taxonomy),
    (AFTER_CATEGORY_SAVE, _revalidate_taxonomy),
    (AFTER_CATEGORY_DELETE, _revalidate_taxonomy),
    (AFTER_PRODUCT_SAVE, _revalidate_products),
)


def register_revalidation_hooks(registry: HookRegistry = hooks) -> None:
    """Attach revalidation to the write hooks. Safe to call more than once."""
    for hook_name, handler in _HOOK_HANDLERS:
        registry.remove_action(hook_name, handler)
        registry.add_action(hook_name, handler, priority=100)
