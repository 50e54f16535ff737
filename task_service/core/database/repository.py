"""Generic async repository with explicit session passing.

Repositories never own a transaction: they add, flush and query on the
session they are handed, and the caller decides when to commit. Anything
beyond key lookups and paginated search belongs in the feature repository.
"""

from __future__ import annotations

from dataclasses import dataclass
import logging
from typing import TYPE_CHECKING, Any, ClassVar

from sqlalchemy import Select, delete, func, inspect, select

from task_service.core.exceptions import NotFoundException
from task_service.infra.logging import get_lazy_logger

if TYPE_CHECKING:
    from collections.abc import Iterable, Sequence

    from sqlalchemy.ext.asyncio import AsyncSession
    from sqlalchemy.sql.elements import ColumnElement


@dataclass(slots=True, frozen=True)
class SearchResult[T]:
    """One page of rows plus the unpaginated total."""

    items: Sequence[T]
    total: int
    limit: int
    offset: int

    @property
    def has_next(self) -> bool:
        return self.offset + len(self.items) < self.total


class BaseRepository[T]:
    """Key lookups, paginated search, insert and delete for one mapped model.

    Subclasses may set ``not_found_type`` to give missing rows a specific
    problem type instead of the generic ``not-found``.
    """

    not_found_type: ClassVar[str] = "not-found"

    def __init__(self, model: type[T]) -> None:
        self.model = model
        name = f"task_service.repository.{model.__name__}"
        self._logger = logging.getLogger(name)
        self._lazy = get_lazy_logger(name)

    @property
    def _entity(self) -> str:
        return self.model.__name__

    def not_found(self, key: Any) -> NotFoundException:
        return NotFoundException(
            detail=f"{self._entity} {key} not found",
            type=self.not_found_type,
            extra={f"{self._entity.lower()}_id": str(key)},
        )

    async def get(self, session: AsyncSession, key: Any) -> T | None:
        instance = await session.get(self.model, key)
        self._lazy.debug(lambda: f"db.get {self._entity}({key}) found={instance is not None}")
        return instance

    async def get_or_raise(self, session: AsyncSession, key: Any) -> T:
        """Like ``get`` but raises ``NotFoundException`` for a missing row."""
        instance = await self.get(session, key)
        if instance is None:
            raise self.not_found(key)
        return instance

    async def search(
        self,
        session: AsyncSession,
        statement: Select[tuple[T]],
        *,
        limit: int = 50,
        offset: int = 0,
    ) -> SearchResult[T]:
        """Run ``statement`` for one page and count every row it matches."""
        counted = select(func.count()).select_from(statement.order_by(None).subquery())
        total = (await session.execute(counted)).scalar_one()
        rows = (await session.execute(statement.limit(limit).offset(offset))).scalars().all()

        self._lazy.debug(
            lambda: f"db.search {self._entity} offset={offset} limit={limit} -> {len(rows)}/{total}"
        )
        return SearchResult(items=rows, total=total, limit=limit, offset=offset)

    async def create(self, session: AsyncSession, instance: T) -> T:
        """Insert and refresh so server defaults and generated keys are loaded."""
        session.add(instance)
        await session.flush()
        await session.refresh(instance)
        return instance

    async def delete(self, session: AsyncSession, instance: T) -> None:
        await session.delete(instance)
        await session.flush()
        self._logger.info(
            "Row deleted",
            extra={"entity": self._entity, "id": str(getattr(instance, "id", None))},
        )

    async def delete_many(self, session: AsyncSession, keys: Iterable[Any]) -> int:
        """Delete by primary key in one statement and return the row count."""
        key_list = list(keys)
        if not key_list:
            return 0
        result = await session.execute(delete(self.model).where(self._primary_key().in_(key_list)))
        await session.flush()
        removed: int = getattr(result, "rowcount", 0) or 0
        self._logger.info(
            "Rows deleted",
            extra={"entity": self._entity, "requested": len(key_list), "deleted": removed},
        )
        return removed

    def _primary_key(self) -> ColumnElement[Any]:
        column = inspect(self.model).primary_key[0]
        return getattr(self.model, column.key)


__all__ = ["BaseRepository", "SearchResult"]
