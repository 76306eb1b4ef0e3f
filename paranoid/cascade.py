"""
Cascade orchestration for paranoid lifecycle operations.

Walks a record's declared dependent associations, in declaration order, and
applies soft delete, purge or recovery to the related paranoid records. One
orchestrator lives for one top-level call and remembers which records it has
already visited, so cyclic association graphs terminate.
"""

import logging
from datetime import datetime, timedelta
from typing import Any, Iterator, List, Set, Tuple, Type

from sqlalchemy import Select, delete, select, update
from sqlalchemy.orm import Session
from sqlalchemy.sql.elements import ColumnElement

from .associations import DependentAssociation, DependentMode
from .registry import TypeRegistry, type_registry
from .scopes import INCLUDE_DELETED, is_paranoid

logger = logging.getLogger(__name__)


class CascadeOrchestrator:
    """Applies one lifecycle operation to a record's dependents."""

    def __init__(self, session: Session, registry: TypeRegistry = type_registry):
        self.session = session
        self.registry = registry
        self.purged: List[Any] = []
        self._visited: Set[Tuple[Type[Any], Tuple[Tuple[str, Any], ...]]] = set()

    def enter(self, record: Any) -> bool:
        """Mark ``record`` visited; False if this call already handled it."""
        key = (type(record), record.paranoid_identity())
        if key in self._visited:
            logger.debug(f"Skipping {record.paranoid_label()}: already visited")
            return False
        self._visited.add(key)
        return True

    def dependents(
        self, owner: Any
    ) -> Iterator[Tuple[DependentAssociation, Type[Any], ColumnElement[bool]]]:
        """Yield (association, target class, criterion) for cascading relations."""
        for association in type(owner).__paranoid_dependents__:
            if not association.cascades:
                continue
            target = association.target_class(owner, self.registry)
            if target is None:
                continue
            criterion = association.criterion(owner, target)
            if criterion is None:
                continue
            yield association, target, criterion

    def soft_delete(self, owner: Any, remove_non_paranoid: bool = False) -> None:
        """
        Soft delete the live dependents of ``owner``.

        Args:
            owner: Record being deleted
            remove_non_paranoid: Hard-remove dependents whose class is not
                paranoid, as an ordinary ORM destroy would
        """
        for association, target, criterion in self.dependents(owner):
            if not is_paranoid(target):
                if remove_non_paranoid:
                    self._remove(association, target, criterion)
                continue

            query_filter = target.__paranoid_filter__
            if association.dependent is DependentMode.DELETE_ALL:
                self._bulk_mark(
                    target,
                    [criterion, query_filter.live_predicate()],
                    query_filter.policy.deletion_value(),
                )
                continue

            for record in self._fetch(query_filter.live_scope().where(criterion)):
                logger.debug(
                    f"Cascading delete {owner.paranoid_label()} -> "
                    f"{record.paranoid_label()}"
                )
                record._paranoid_delete(self)

    def purge(self, owner: Any) -> None:
        """Purge every paranoid dependent of ``owner``, live or deleted."""
        for _association, target, criterion in self.dependents(owner):
            if not is_paranoid(target):
                # Left to the ORM's own relationship cascade
                continue

            scope = target.__paranoid_filter__.all_scope().where(criterion)
            for record in self._fetch(scope):
                logger.debug(
                    f"Cascading purge {owner.paranoid_label()} -> "
                    f"{record.paranoid_label()}"
                )
                record._paranoid_purge(self)

    def recover(
        self,
        owner: Any,
        reference: Any,
        window: timedelta,
        recursive: bool = True,
    ) -> None:
        """
        Recover the deleted dependents of ``owner``.

        Args:
            owner: Record being recovered
            reference: Marker value ``owner`` held before recovery
            window: Dependents deleted within this distance of ``reference``
                are recovered; ignored unless both sides use time markers
            recursive: Passed down to each individually recovered dependent
        """
        owner_policy = type(owner).__paranoid_policy__

        for association, target, criterion in self.dependents(owner):
            if not is_paranoid(target):
                continue

            query_filter = target.__paranoid_filter__
            conditions = [criterion, query_filter.deleted_predicate()]
            if (
                owner_policy.is_time
                and query_filter.policy.is_time
                and isinstance(reference, datetime)
            ):
                conditions.append(query_filter.window_predicate(reference, window))

            if association.dependent is DependentMode.DELETE_ALL:
                self._bulk_mark(target, conditions, query_filter.policy.cleared_value())
                continue

            for record in self._fetch(query_filter.all_scope().where(*conditions)):
                logger.debug(
                    f"Cascading recover {owner.paranoid_label()} -> "
                    f"{record.paranoid_label()}"
                )
                record._paranoid_recover(self, recursive, window)

    def _fetch(self, statement: Select[Any]) -> List[Any]:
        # Materialize before mutating so the cursor is not iterated mid-change
        return list(self.session.scalars(statement).unique())

    def _bulk_mark(
        self, target: Type[Any], conditions: List[ColumnElement[bool]], value: Any
    ) -> None:
        column = target.__paranoid_filter__.column
        result = self.session.execute(
            update(target)
            .where(*conditions)
            .values({column: value})
            .execution_options(synchronize_session="fetch")
        )
        logger.debug(
            f"Bulk set {target.__name__}.{column.key} = {value!r} "
            f"on {result.rowcount} row(s)"
        )

    def _remove(
        self,
        association: DependentAssociation,
        target: Type[Any],
        criterion: ColumnElement[bool],
    ) -> None:
        if association.dependent is DependentMode.DELETE_ALL:
            self.session.execute(
                delete(target)
                .where(criterion)
                .execution_options(synchronize_session="fetch")
            )
            return

        for record in self._fetch(
            select(target).where(criterion).execution_options(**{INCLUDE_DELETED: True})
        ):
            self.session.delete(record)
        self.session.flush()