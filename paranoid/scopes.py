"""
Query scopes for paranoid models.

A ``ScopedQueryFilter`` turns a model's column policy into SQL predicates:
live rows, deleted rows, and deletion-time windows. The default "live only"
scope is applied to ORM queries by a ``do_orm_execute`` listener and is
bypassed with the ``include_deleted`` execution option, never by inspecting
generated SQL.
"""

import logging
from datetime import datetime, timedelta
from typing import Any, Type, Union

from sqlalchemy import Select, event, or_, select
from sqlalchemy.orm import ORMExecuteState, Session, sessionmaker, with_loader_criteria
from sqlalchemy.sql.elements import ColumnElement

from .column import ColumnPolicy

logger = logging.getLogger(__name__)

INCLUDE_DELETED = "include_deleted"


class ScopedQueryFilter:
    """Predicates over one paranoid model's rows."""

    def __init__(self, model: Type[Any], policy: ColumnPolicy):
        self.model = model
        self.policy = policy

    @property
    def column(self) -> Any:
        return getattr(self.model, self.policy.column)

    def live_predicate(self) -> ColumnElement[bool]:
        if self.policy.is_string:
            return or_(
                self.column.is_(None), self.column != self.policy.deleted_value
            )
        return self.column.is_(None)

    def deleted_predicate(self) -> ColumnElement[bool]:
        if self.policy.is_string:
            return self.column == self.policy.deleted_value
        return self.column.is_not(None)

    def window_predicate(
        self, reference: datetime, window: timedelta
    ) -> ColumnElement[bool]:
        """Match rows deleted within ``window`` either side of ``reference``."""
        return self.column.between(reference - window, reference + window)

    def deleted_after_time(self, time: datetime) -> ColumnElement[bool]:
        return self.column > time

    def deleted_before_time(self, time: datetime) -> ColumnElement[bool]:
        return self.column < time

    def all_scope(self) -> Select[Any]:
        """All rows, live and deleted."""
        return select(self.model).execution_options(**{INCLUDE_DELETED: True})

    def live_scope(self) -> Select[Any]:
        return self.all_scope().where(self.live_predicate())

    def deleted_scope(self) -> Select[Any]:
        return self.all_scope().where(self.deleted_predicate())


def _apply_live_scope(execute_state: ORMExecuteState) -> None:
    """Add the live predicate of every paranoid model a SELECT touches."""
    if (
        not execute_state.is_select
        or execute_state.is_column_load
        or execute_state.execution_options.get(INCLUDE_DELETED, False)
    ):
        return

    criteria = []
    for mapper in execute_state.all_mappers:
        query_filter = getattr(mapper.class_, "__paranoid_filter__", None)
        if query_filter is None:
            continue
        criteria.append(
            with_loader_criteria(
                mapper.class_, query_filter.live_predicate(), include_aliases=True
            )
        )

    if criteria:
        execute_state.statement = execute_state.statement.options(*criteria)


def register_paranoid_listeners(
    target: Union[Type[Session], Session, sessionmaker] = Session
) -> None:
    """
    Install the live-only default scope on ``target``.

    Args:
        target: A Session class, Session instance or sessionmaker. Defaults to
            every ``Session``.
    """
    if not event.contains(target, "do_orm_execute", _apply_live_scope):
        event.listen(target, "do_orm_execute", _apply_live_scope)
        logger.debug(f"Installed paranoid default scope on {target!r}")


def remove_paranoid_listeners(
    target: Union[Type[Session], Session, sessionmaker] = Session
) -> None:
    """Remove the default scope installed by ``register_paranoid_listeners``."""
    if event.contains(target, "do_orm_execute", _apply_live_scope):
        event.remove(target, "do_orm_execute", _apply_live_scope)


def is_paranoid(model: Any) -> bool:
    """True if ``model`` (a class or instance) has deletion-marker support."""
    if not isinstance(model, type):
        model = type(model)
    return getattr(model, "__paranoid_filter__", None) is not None
