"""Mutable query adapter over a SQLAlchemy ``Select`` of one ORM model.

The pagination pipeline works against this adapter instead of raw SQLAlchemy
so predicates can be referenced by column *name*, as they arrive in the query
string. Criteria accumulate on the adapter and are applied when the query is
executed.
"""

from __future__ import annotations

import logging
import operator as op
from collections.abc import Callable
from typing import Any, Generic, TypeVar

from pydantic import TypeAdapter
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy import Select, and_, func, inspect, or_, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.sql.elements import ColumnElement

from querypager.db.base import Base

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=Base)

_OPERATORS: dict[str, Callable[[Any, Any], ColumnElement[bool]]] = {
    "=": op.eq,
    "!=": op.ne,
    "<": op.lt,
    "<=": op.le,
    ">": op.gt,
    ">=": op.ge,
    "like": lambda column, value: column.like(value),
}

_MISSING = object()


class QueryAdapter(Generic[ModelT]):
    """Chainable where / or_where / reorder / offset / limit over ``base``.

    Unknown column names and values that cannot be coerced to the column type
    are ignored, never raised: request input only ever narrows or reorders
    the result.
    """

    def __init__(
        self,
        session: AsyncSession,
        model: type[ModelT],
        base: Select | None = None,
    ):
        self._session = session
        self._model = model
        self._base = base if base is not None else select(model)
        self._criteria: list[ColumnElement[bool]] = []
        self._order: list[ColumnElement[Any]] = []
        self._offset: int | None = None
        self._limit: int | None = None

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------

    @property
    def model(self) -> type[ModelT]:
        return self._model

    @property
    def table_name(self) -> str:
        return self._model.__table__.name

    def column(self, name: str):
        """Return the mapped attribute for ``name`` or ``None``."""
        if name not in inspect(self._model).column_attrs:
            logger.debug("Ignoring unknown column %r on %s", name, self.table_name)
            return None
        return getattr(self._model, name)

    # ------------------------------------------------------------------
    # Criteria
    # ------------------------------------------------------------------

    def _coerce(self, attr, value: Any) -> Any:
        if not isinstance(value, str):
            return value
        try:
            python_type = attr.type.python_type
        except NotImplementedError:
            return value
        if python_type is str:
            return value
        try:
            return TypeAdapter(python_type).validate_python(value)
        except PydanticValidationError:
            logger.debug("Ignoring %r: not a valid %s", value, python_type.__name__)
            return _MISSING

    def _criterion(self, column: str, operator: str, value: Any) -> ColumnElement[bool] | None:
        compare = _OPERATORS.get(operator.lower())
        attr = self.column(column)
        if compare is None or attr is None:
            return None
        if operator.lower() != "like":
            value = self._coerce(attr, value)
            if value is _MISSING:
                return None
        return compare(attr, value)

    def where(self, column: str, operator: str = "=", value: Any = _MISSING) -> QueryAdapter[ModelT]:
        """AND a ``column <operator> value`` criterion; ``where(col, value)`` means equality."""
        if value is _MISSING:
            operator, value = "=", operator
        criterion = self._criterion(column, operator, value)
        if criterion is not None:
            self._criteria.append(criterion)
        return self

    def or_where(self, column: str, operator: str = "=", value: Any = _MISSING) -> QueryAdapter[ModelT]:
        """OR a criterion with the most recently added one."""
        if value is _MISSING:
            operator, value = "=", operator
        criterion = self._criterion(column, operator, value)
        if criterion is None:
            return self
        if self._criteria:
            self._criteria[-1] = or_(self._criteria[-1], criterion)
        else:
            self._criteria.append(criterion)
        return self

    def filter(self, *expressions: ColumnElement[bool]) -> QueryAdapter[ModelT]:
        """AND raw SQLAlchemy expressions, for custom search and named filters."""
        self._criteria.extend(expressions)
        return self

    def reorder(self, column: str, direction: str = "asc") -> QueryAdapter[ModelT]:
        """Replace any previous ordering with ``column direction``."""
        attr = self.column(column)
        if attr is None:
            return self
        self._order = [attr.desc() if direction == "desc" else attr.asc()]
        return self

    def offset(self, n: int) -> QueryAdapter[ModelT]:
        self._offset = n
        return self

    def limit(self, n: int) -> QueryAdapter[ModelT]:
        self._limit = n
        return self

    # ------------------------------------------------------------------
    # Execution
    # ------------------------------------------------------------------

    def _filtered(self) -> Select:
        stmt = self._base
        if self._criteria:
            stmt = stmt.where(and_(*self._criteria))
        return stmt

    def statement(self) -> Select:
        """The full SELECT including ordering, offset and limit."""
        stmt = self._filtered()
        if self._order:
            stmt = stmt.order_by(None).order_by(*self._order)
        if self._offset is not None:
            stmt = stmt.offset(self._offset)
        if self._limit is not None:
            stmt = stmt.limit(self._limit)
        return stmt

    async def get(self) -> list[ModelT]:
        result = await self._session.execute(self.statement())
        return list(result.scalars().all())

    async def count(self) -> int:
        """Count matching rows, ignoring ordering, offset and limit."""
        count_q = select(func.count()).select_from(self._filtered().subquery())
        return (await self._session.execute(count_q)).scalar_one()
