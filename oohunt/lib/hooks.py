"""Action and filter hooks fired around writes and payload rendering.

Actions run callbacks for side effects (cache revalidation, mail delivery,
cleanup when an account disappears). Filters pass a value through every
registered callback and return the result.

    from oohunt.lib.hooks import hooks, action, AFTER_PAGE_SAVE

    @action(AFTER_PAGE_SAVE, priority=20)
    async def announce(page, is_new):
        ...

    await hooks.do_action(AFTER_PAGE_SAVE, page, is_new=True)
    payload = await hooks.apply_filters(CONTENT_PAGE_PAYLOAD, payload, page)

Callbacks may be sync or async. Lower priority numbers run first.
"""

import asyncio
from collections import defaultdict
from dataclasses import dataclass, field
from functools import wraps
from typing import Any, Callable, TypeVar

from oohunt.lib.observability import span

T = TypeVar("T")


@dataclass(order=True)
class HookHandler:
    priority: int
    callback: Callable = field(compare=False)

    async def call(self, *args: Any, **kwargs: Any) -> Any:
        result = self.callback(*args, **kwargs)
        if asyncio.iscoroutine(result):
            return await result
        return result


class HookRegistry:
    """Registry of named actions and filters."""

    def __init__(self) -> None:
        self._actions: dict[str, list[HookHandler]] = defaultdict(list)
        self._filters: dict[str, list[HookHandler]] = defaultdict(list)

    @staticmethod
    def _register(table: dict[str, list[HookHandler]], hook_name: str, callback: Callable, priority: int) -> None:
        table[hook_name].append(HookHandler(priority=priority, callback=callback))
        table[hook_name].sort()

    @staticmethod
    def _unregister(table: dict[str, list[HookHandler]], hook_name: str, callback: Callable) -> bool:
        handlers = table.get(hook_name, [])
        for i, handler in enumerate(handlers):
            if handler.callback is callback:
                handlers.pop(i)
                return True
        return False

    def add_action(self, hook_name: str, callback: Callable[..., Any], priority: int = 10) -> None:
        self._register(self._actions, hook_name, callback, priority)

    def add_filter(self, hook_name: str, callback: Callable[..., T], priority: int = 10) -> None:
        self._register(self._filters, hook_name, callback, priority)

    def remove_action(self, hook_name: str, callback: Callable[..., Any]) -> bool:
        """Remove an action callback. Returns True if it was registered."""
        return self._unregister(self._actions, hook_name, callback)

    def remove_filter(self, hook_name: str, callback: Callable[..., Any]) -> bool:
        """Remove a filter callback. Returns True if it was registered."""
        return self._unregister(self._filters, hook_name, callback)

    def has_action(self, hook_name: str) -> bool:
        return bool(self._actions.get(hook_name))

    def has_filter(self, hook_name: str) -> bool:
        return bool(self._filters.get(hook_name))

    async def do_action(self, hook_name: str, *args: Any, **kwargs: Any) -> None:
        """Run every action registered for ``hook_name`` in priority order.

        Exceptions raised by a callback propagate to the caller.
        """
        with span(f"hook.action:{hook_name}", hook_name=hook_name):
            for handler in list(self._actions.get(hook_name, [])):
                await handler.call(*args, **kwargs)

    async def apply_filters(self, hook_name: str, value: T, *args: Any, **kwargs: Any) -> T:
        """Thread ``value`` through every filter registered for ``hook_name``.

        Args:
            hook_name: Name of the filter hook
            value: Initial value
            *args: Extra positional arguments passed after the value
            **kwargs: Extra keyword arguments

        Returns:
            The value returned by the last filter, or ``value`` when none are registered
        """
        with span(f"hook.filter:{hook_name}", hook_name=hook_name):
            for handler in list(self._filters.get(hook_name, [])):
                value = await handler.call(value, *args, **kwargs)
            return value


hooks = HookRegistry()


def action(hook_name: str, priority: int = 10) -> Callable[[Callable], Callable]:
    """Register the decorated function as an action on the global registry."""

    def decorator(func: Callable) -> Callable:
        hooks.add_action(hook_name, func, priority)

        @wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            return func(*args, **kwargs)

        return wrapper

    return decorator


def filter(hook_name: str, priority: int = 10) -> Callable[[Callable], Callable]:
    """Register the decorated function as a filter on the global registry."""

    def decorator(func: Callable) -> Callable:
        hooks.add_filter(hook_name, func, priority)

        @wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            return func(*args, **kwargs)

        return wrapper

    return decorator


# Actions
BEFORE_PAGE_SAVE = "before_page_save"
AFTER_PAGE_SAVE = "after_page_save"
BEFORE_PAGE_DELETE = "before_page_delete"
AFTER_PAGE_DELETE = "after_page_delete"

AFTER_TAG_SAVE = "after_tag_save"
AFTER_TAG_DELETE = "after_tag_delete"
AFTER_CATEGORY_SAVE = "after_category_save"
AFTER_CATEGORY_DELETE = "after_category_delete"

AFTER_PRODUCT_SAVE = "after_product_save"

AFTER_CONTACT_SUBMIT = "after_contact_submit"
AFTER_SUBSCRIBE = "after_subscribe"

# Fired by the account system when a user is removed
USER_DELETED = "user_deleted"

# Filters
CONTENT_PAGE_PAYLOAD = "content_page_payload"
PRODUCT_REFERENCE = "product_reference"
