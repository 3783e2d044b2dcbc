"""Hooks wrapped around the river's pass, watermark and flush operations.

Operations are named ``river.<kind>.<target>``: ``river.pass.<table>``,
``river.watermark.<index>`` and ``river.flush.<index>``. Hooks see the
operation name, a dict of attributes that always carries the pass
``correlation_id``, and a callable running the rest of the chain.
"""

from __future__ import annotations

import fnmatch
import functools
from contextvars import ContextVar
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

from .correlation import get_correlation_id

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable


@runtime_checkable
class InstrumentationHook(Protocol):
    """Protocol for instrumentation hooks (logging, tracing, metrics)."""

    async def __call__(
        self,
        operation: str,
        attributes: dict[str, Any],
        next_handler: Callable[[], Awaitable[Any]],
    ) -> Any:
        """Wrap an operation; must await ``next_handler`` exactly once."""
        ...


@dataclass
class HookRegistration:
    """A hook plus the operations it applies to.

    ``operations`` holds glob patterns such as ``river.flush.*``; an empty
    list matches every operation.
    """

    hook: InstrumentationHook
    priority: int = 0
    operations: list[str] = field(default_factory=list)
    enabled: bool = True

    def matches(self, operation: str) -> bool:
        if not self.enabled:
            return False
        return not self.operations or any(
            fnmatch.fnmatchcase(operation, pattern) for pattern in self.operations
        )


class HookRegistry:
    """Ordered hooks; the lowest priority wraps outermost."""

    def __init__(self) -> None:
        self._registrations: list[HookRegistration] = []

    def register(
        self,
        hook: InstrumentationHook,
        *,
        priority: int = 0,
        operations: list[str] | None = None,
        enabled: bool = True,
    ) -> HookRegistration:
        registration = HookRegistration(
            hook, priority, list(operations or []), enabled
        )
        self._registrations.append(registration)
        self._registrations.sort(key=lambda r: r.priority)
        return registration

    async def execute_all(
        self,
        operation: str,
        attributes: dict[str, Any],
        next_handler: Callable[[], Awaitable[Any]],
    ) -> Any:
        """Await ``next_handler`` inside every hook matching ``operation``."""
        handler = next_handler
        for registration in reversed(self._registrations):
            if registration.matches(operation):
                handler = functools.partial(
                    registration.hook, operation, attributes, handler
                )
        return await handler()

    def clear(self) -> None:
        self._registrations.clear()


_hook_registry_var: ContextVar[HookRegistry | None] = ContextVar(
    "hook_registry", default=None
)


def get_hook_registry() -> HookRegistry:
    """Return the registry of the current context, creating it on first use."""
    registry = _hook_registry_var.get()
    if registry is None:
        registry = HookRegistry()
        _hook_registry_var.set(registry)
    return registry


def set_hook_registry(registry: HookRegistry) -> None:
    _hook_registry_var.set(registry)


async def instrument(
    kind: str,
    target: str,
    attributes: dict[str, Any],
    handler: Callable[[], Awaitable[Any]],
) -> Any:
    """Run ``handler`` as operation ``river.<kind>.<target>``."""
    return await get_hook_registry().execute_all(
        f"river.{kind}.{target}",
        {"correlation_id": get_correlation_id(), **attributes},
        handler,
    )
