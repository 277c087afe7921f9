"""
User-defined ordering of records.

Every ORM select of a sortable entity is ordered by the configured column.
With automatic maintenance on, the column is kept as a dense sequence
``1..N`` across the whole table: inserts append (or make room at an explicit
position), moves shift the records in between, and deletes close the gap.

Usage:
    Task.sortable_by("position")
    Task.sortable_by({"priority": "desc"}, use_automatic_maintenance=False)

    await task.move_to_top(session)

Shifts are issued as UPDATE statements against the table; instances already
loaded in the session are patched in place so they do not go stale.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from dataclasses import dataclass
from enum import StrEnum
from typing import Any, Self

import structlog
from sqlalchemy import (
    Column,
    Connection,
    Select,
    UnaryExpression,
    event,
    func,
    inspect,
    select,
    update,
)
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import Mapper, ORMExecuteState, Session, object_session
from sqlalchemy.orm.attributes import set_committed_value

from recordconcerns.concerns.lifecycle import guarded_write
from recordconcerns.core.errors import ConfigurationError, ErrorCode
from recordconcerns.db.flush import flush_state, flush_state_for
from recordconcerns.db.options import SKIP_DEFAULT_ORDER
from recordconcerns.db.schema import column_for, has_column, primary_key_filter, require_column

_log = structlog.get_logger(__name__)

CONCERN = "Sortable"
DEFAULT_FIELD = "position"

_GAPS_KEY = "sort_gaps"


class Direction(StrEnum):
    ASC = "asc"
    DESC = "desc"


@dataclass(frozen=True)
class SortConfig:
    field: str = DEFAULT_FIELD
    direction: Direction = Direction.ASC
    maintain: bool = False

    def order_clause(self, cls: type) -> UnaryExpression[Any]:
        column = getattr(cls, self.field)
        return column.desc() if self.direction is Direction.DESC else column.asc()


def _parse_field_config(field_config: str | Mapping[str, str]) -> tuple[str, str]:
    if isinstance(field_config, Mapping):
        if len(field_config) != 1:
            raise ConfigurationError(
                f"{CONCERN}: expected a single field/direction pair, got {dict(field_config)!r}",
                code=ErrorCode.CONFIG_INVALID_OPTION,
            )
        field, direction = next(iter(field_config.items()))
        return str(field), str(direction).lower()
    return str(field_config), Direction.ASC.value


def _direction(token: str) -> Direction:
    try:
        return Direction(token)
    except ValueError:
        _log.debug("sort_direction_defaulted", token=token)
        return Direction.ASC


class SortableMixin:
    """Adds a default read order and optional position maintenance."""

    @classmethod
    def sortable_by(
        cls,
        field_config: str | Mapping[str, str] = DEFAULT_FIELD,
        *,
        use_automatic_maintenance: bool = True,
    ) -> SortConfig:
        field, token = _parse_field_config(field_config)
        config = SortConfig(
            field=field,
            direction=_direction(token),
            maintain=use_automatic_maintenance,
        )
        require_column(cls, config.field, CONCERN)
        cls.__sort_config__ = config
        _log.info(
            "concern_declared",
            concern=CONCERN,
            model=cls.__name__,
            field=config.field,
            direction=config.direction.value,
            maintain=config.maintain,
        )
        return config

    @classmethod
    def sort_config(cls) -> SortConfig:
        return getattr(cls, "__sort_config__", None) or SortConfig()

    @classmethod
    def ordered(cls, stmt: Select[Any] | None = None) -> Select[Any]:
        stmt = select(cls) if stmt is None else stmt
        return stmt.order_by(cls.sort_config().order_clause(cls)).execution_options(
            skip_default_order=True
        )

    # ── Neighbours ─────────────────────────────────────────────────────── #

    @property
    def current_position(self) -> int | None:
        return getattr(self, type(self).sort_config().field)

    @property
    def is_first(self) -> bool:
        return self.current_position == 1

    async def is_last(self, session: AsyncSession) -> bool:
        position = self.current_position
        return position is not None and position == await self._bottom_position(session)

    async def higher_item(self, session: AsyncSession) -> Self | None:
        """The record directly above this one (position - 1)."""
        position = self.current_position
        if position is None or position <= 1:
            return None
        return await self._item_at(session, position - 1)

    async def lower_item(self, session: AsyncSession) -> Self | None:
        """The record directly below this one (position + 1)."""
        position = self.current_position
        if position is None:
            return None
        return await self._item_at(session, position + 1)

    async def _item_at(self, session: AsyncSession, position: int) -> Any:
        cls = type(self)
        root = inspect(cls).base_mapper.class_
        column = getattr(root, cls.sort_config().field)
        result = await session.execute(
            select(root)
            .where(column == position)
            .limit(1)
            .execution_options(include_deleted=True, skip_default_order=True)
        )
        return result.scalars().first()

    async def _bottom_position(self, session: AsyncSession) -> int:
        column = column_for(type(self), type(self).sort_config().field)
        return await session.scalar(select(func.max(column))) or 0

    # ── Moves ──────────────────────────────────────────────────────────── #

    def _can_move(self) -> bool:
        if type(self).sort_config().maintain:
            return True
        _log.debug("sort_maintenance_disabled", model=type(self).__name__)
        return False

    async def move_higher(self, session: AsyncSession) -> bool:
        """Swap with the record above. A record already on top stays put."""
        if not self._can_move():
            return False
        session.add(self)
        await session.flush()
        neighbour = await self.higher_item(session)
        if neighbour is None:
            return True
        return await self._swap(session, neighbour)

    async def move_lower(self, session: AsyncSession) -> bool:
        """Swap with the record below. A record already at the bottom stays put."""
        if not self._can_move():
            return False
        session.add(self)
        await session.flush()
        neighbour = await self.lower_item(session)
        if neighbour is None:
            return True
        return await self._swap(session, neighbour)

    async def move_to_top(self, session: AsyncSession) -> bool:
        return await self.insert_at(session, 1)

    async def move_to_bottom(self, session: AsyncSession) -> bool:
        if not self._can_move():
            return False
        session.add(self)
        await session.flush()
        return await self.insert_at(session, await self._bottom_position(session) + 1)

    async def insert_at(self, session: AsyncSession, position: int) -> bool:
        """
        Move to ``position``, shifting the records in between by one.

        A record without a position is treated as sitting just below the
        bottom, so moving it makes room for it instead of swapping.
        """
        if not self._can_move():
            return False
        session.add(self)
        await session.flush()

        cls = type(self)
        field = cls.sort_config().field
        column = column_for(cls, field)
        previous = self.current_position
        bottom = await self._bottom_position(session)
        current = bottom + 1 if previous is None else previous
        target = min(max(position, 1), max(bottom, current))
        if previous == target:
            return True

        shifted: list[Any] = []
        async with guarded_write(session, self, "reposition") as outcome:
            if target != current:
                if target < current:
                    rows = column.between(target, current - 1)
                    delta = 1
                else:
                    rows = column.between(current + 1, target)
                    delta = -1
                stmt = update(column.table).where(rows).values({column: column + delta})
                own_row = primary_key_filter(self)
                if own_row is not None:
                    stmt = stmt.where(~own_row)
                await session.execute(stmt)
                shifted = _shift_loaded(
                    session.sync_session,
                    column,
                    lambda value: _in_move_range(value, target, current),
                    delta,
                    exclude=self,
                )
            setattr(self, field, target)

        if not outcome.ok:
            # Shifted values were written as committed state; reload them
            for obj in shifted:
                session.expire(obj, [type(obj).sort_config().field])
            return False
        _log.debug(
            "record_repositioned",
            model=cls.__name__,
            from_position=previous,
            to_position=target,
        )
        return True

    async def _swap(self, session: AsyncSession, neighbour: Any) -> bool:
        field = type(self).sort_config().field
        mine = self.current_position
        theirs = getattr(neighbour, field)
        async with guarded_write(session, self, "reposition") as outcome:
            setattr(neighbour, field, mine)
            setattr(self, field, theirs)
        if outcome.ok:
            _log.debug(
                "record_repositioned",
                model=type(self).__name__,
                from_position=mine,
                to_position=theirs,
            )
        return outcome.ok


def _in_move_range(value: int, target: int, current: int) -> bool:
    """True when ``value`` lies between a move's source and destination."""
    if target < current:
        return target <= value < current
    return current < value <= target


def _shift_loaded(
    session: Session,
    column: Column[Any],
    predicate: Callable[[int], bool],
    delta: int,
    exclude: Any = None,
) -> list[Any]:
    """Mirror a positional UPDATE onto instances already in the identity map."""
    shifted = []
    deleted = session.deleted
    for obj in list(session.identity_map.values()):
        if obj is exclude or obj in deleted or not isinstance(obj, SortableMixin):
            continue
        cls = type(obj)
        field = cls.sort_config().field
        if not has_column(cls, field) or column_for(cls, field) is not column:
            continue
        value = inspect(obj).dict.get(field)
        if value is not None and predicate(value):
            set_committed_value(obj, field, value + delta)
            shifted.append(obj)
    return shifted


def _maintained_column(target: Any) -> Column[Any] | None:
    config = type(target).sort_config()
    if not config.maintain or not has_column(type(target), config.field):
        return None
    return column_for(type(target), config.field)


def _place_new_record(mapper: Mapper[Any], connection: Connection, target: Any) -> None:
    column = _maintained_column(target)
    if column is None:
        return
    field = type(target).sort_config().field
    state = flush_state_for(target)
    table_key = f"{column.table.name}.{column.name}"
    key = f"sort_next:{table_key}"
    # Rows placed earlier in this flush are not in the table yet
    placed = state.setdefault(f"sort_placed:{table_key}", [])

    next_free = state.get(key)
    if next_free is None:
        next_free = (connection.scalar(select(func.max(column))) or 0) + 1

    requested = getattr(target, field)
    if requested is None or requested >= next_free:
        position = next_free
    else:
        position = max(requested, 1)
        connection.execute(
            update(column.table).where(column >= position).values({column: column + 1})
        )
        session = object_session(target)
        if session is not None:
            _shift_loaded(session, column, lambda value: value >= position, 1, exclude=target)
        for earlier in placed:
            value = getattr(earlier, field)
            if value >= position:
                setattr(earlier, field, value + 1)
        _log.debug("positions_shifted", table=column.table.name, from_position=position, delta=1)

    setattr(target, field, position)
    placed.append(target)
    state[key] = next_free + 1


def _queue_gap(mapper: Mapper[Any], connection: Connection, target: Any) -> None:
    column = _maintained_column(target)
    if column is None:
        return
    position = inspect(target).dict.get(type(target).sort_config().field)
    if position is None:
        return
    flush_state_for(target).setdefault(_GAPS_KEY, []).append((column, position))


event.listen(SortableMixin, "before_insert", _place_new_record, propagate=True)
event.listen(SortableMixin, "after_delete", _queue_gap, propagate=True)


@event.listens_for(Session, "after_flush")
def _close_gaps(session: Session, flush_context: Any) -> None:
    gaps = flush_state(session).pop(_GAPS_KEY, None)
    if not gaps:
        return
    connection = session.connection()
    # Highest first so earlier shifts never move a gap still to be closed
    for column, position in sorted(gaps, key=lambda gap: gap[1], reverse=True):
        connection.execute(
            update(column.table).where(column > position).values({column: column - 1})
        )
        _shift_loaded(session, column, lambda value, p=position: value > p, -1)
        _log.debug("positions_shifted", table=column.table.name, from_position=position, delta=-1)


@event.listens_for(Session, "do_orm_execute")
def _apply_default_order(state: ORMExecuteState) -> None:
    if (
        not state.is_select
        or state.is_column_load
        or state.is_relationship_load
        or state.execution_options.get(SKIP_DEFAULT_ORDER, False)
    ):
        return
    statement = state.statement
    if not isinstance(statement, Select):
        return
    descriptions = statement.column_descriptions
    if not descriptions:
        return
    entity = descriptions[0].get("entity")
    if (
        not isinstance(entity, type)
        or descriptions[0].get("expr") is not entity
        or not issubclass(entity, SortableMixin)
    ):
        return
    config = entity.sort_config()
    if not has_column(entity, config.field):
        return
    state.statement = statement.order_by(config.order_clause(entity))
