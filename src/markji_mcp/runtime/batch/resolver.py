"""Name -> id resolution for containers (chapters) within one batch.

The cache is seeded once from a listing of existing containers. A miss
creates the container through the retry executor and caches the new id, so a
name referenced by several items is created at most once per batch.

Two concurrent first resolutions of the same uncached name can both issue a
create call. The orchestrator avoids this by resolving distinct names
serially (resolve_all) before concurrent fan-out.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Callable, Iterable

from markji_mcp.foundation.errors import BatchSetupError, Err, Ok, Result
from markji_mcp.runtime.observability import get_logger
from markji_mcp.runtime.retry import DEFAULT_POLICY, RetryPolicy, execute_with_retry

if TYPE_CHECKING:
    from collections.abc import Awaitable

log = get_logger("markji_mcp.resolver")


@dataclass(frozen=True, slots=True)
class NamedResource:
    """A container known by both id and human-chosen name."""
    id: str
    name: str


ListFn = Callable[[], "Awaitable[Iterable[NamedResource]]"]
CreateFn = Callable[[str], "Awaitable[str]"]


class ContainerResolver:
    """Batch-scoped resolver from container name to id.

    Example:
        >>> resolver = await ContainerResolver.load(
        ...     lambda: client.list_chapter_resources(deck_id),
        ...     lambda name: client.create_chapter_id(deck_id, name),
        ...     policy=policy, label="chapter",
        ... )
        >>> chapter_id = await resolver.resolve("History")
    """

    __slots__ = ("_ids", "_create", "_policy", "_created", "_label")

    def __init__(
        self,
        create: CreateFn,
        existing: Iterable[NamedResource] = (),
        *,
        policy: RetryPolicy = DEFAULT_POLICY,
        label: str = "container",
    ) -> None:
        self._create = create
        self._policy = policy
        self._label = label
        self._created: list[NamedResource] = []
        # Duplicate names: last listed wins
        self._ids: dict[str, str] = {r.name: r.id for r in existing}

    @classmethod
    async def load(
        cls,
        list_fn: ListFn,
        create: CreateFn,
        *,
        policy: RetryPolicy = DEFAULT_POLICY,
        label: str = "container",
    ) -> ContainerResolver:
        """Seed a resolver from a remote listing.

        Raises:
            BatchSetupError: the listing failed after retries
        """
        try:
            existing = await execute_with_retry(list_fn, policy, f"list {label}s")
        except Exception as exc:
            raise BatchSetupError.wrap(exc) from exc
        resolver = cls(create, existing, policy=policy, label=label)
        log.debug("resolver seeded", label=label, known=len(resolver._ids))
        return resolver

    @property
    def created(self) -> list[NamedResource]:
        """Containers created by this resolver, in creation order."""
        return list(self._created)

    def __contains__(self, name: object) -> bool:
        return name in self._ids

    async def resolve(self, name: str) -> str:
        """Id for name, creating the container on a cache miss.

        Raises the creation failure unchanged; the name then stays unresolved
        and a later call tries again.
        """
        if (cached := self._ids.get(name)) is not None:
            return cached
        new_id = await execute_with_retry(lambda: self._create(name), self._policy, f"create {self._label} {name!r}")
        self._ids[name] = new_id
        self._created.append(NamedResource(new_id, name))
        log.info(f"{self._label} created", name=name, id=new_id)
        return new_id

    async def resolve_all(self, names: Iterable[str]) -> dict[str, Result[str, Exception]]:
        """Resolve each distinct name once, serially, capturing failures per name."""
        resolved: dict[str, Result[str, Exception]] = {}
        for name in names:
            if name in resolved:
                continue
            try:
                resolved[name] = Ok(await self.resolve(name))
            except Exception as exc:
                resolved[name] = Err(exc)
        return resolved
