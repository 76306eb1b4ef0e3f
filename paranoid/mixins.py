"""
SQLAlchemy mixin giving models paranoid (soft delete) lifecycle behaviour.

A paranoid record moves between three states. ``delete()`` writes the
deletion marker (Live -> SoftDeleted), ``recover()`` clears it again
(SoftDeleted -> Live), and ``purge()`` removes the row for good
(Live or SoftDeleted -> Purged). Each call and everything it cascades into
commits or rolls back as one unit.
"""

import logging
from datetime import datetime, timedelta
from typing import Any, Callable, Optional, Tuple

from sqlalchemy import and_, delete, event, select, update
from sqlalchemy import inspect as sa_inspect
from sqlalchemy.ext.hybrid import hybrid_property
from sqlalchemy.orm import Session, object_session
from sqlalchemy.orm.attributes import set_committed_value
from sqlalchemy.sql.elements import ColumnElement

from .cascade import CascadeOrchestrator
from .column import ColumnPolicy, ParanoidOptions
from .exceptions import (
    FrozenRecordError,
    ParanoidConfigurationError,
    RecordNotAttachedError,
)
from .hooks import DESTROY, RECOVER, SOFT_DESTROY, Hook, inherit_chains
from .registry import type_registry
from .scopes import INCLUDE_DELETED, ScopedQueryFilter
from .transaction import TransactionBoundary

logger = logging.getLogger(__name__)


class ParanoidMixin:
    """
    Mixin adding soft delete, purge and recovery to SQLAlchemy models.

    Provides:
    - ``delete()``, ``purge()`` and ``recover()`` lifecycle operations
    - Cascading of all three into declared dependent associations
    - ``before_*``/``after_*`` hook chains that can veto an operation
    - Live, deleted and all-row query scopes

    The marker column is declared by the model itself; ``__paranoid__``
    describes how to read it (defaults come from ``ParanoidConfig``).

    Usage:
        class Post(ParanoidMixin, Base):
            __tablename__ = 'posts'
            __paranoid_dependents__ = [
                DependentAssociation("comments", dependent="destroy"),
            ]

            id = Column(Integer, primary_key=True)
            deleted_at = Column(DateTime, nullable=True)
            comments = relationship("Comment")
    """

    __paranoid__: Optional[ParanoidOptions] = None
    __paranoid_dependents__: Any = ()

    def __init_subclass__(cls, **kwargs: Any) -> None:
        options = (cls.__paranoid__ or ParanoidOptions()).resolve()
        cls.__paranoid_options__ = options
        cls.__paranoid_policy__ = options.policy()
        cls.__paranoid_filter__ = ScopedQueryFilter(cls, cls.__paranoid_policy__)
        cls.__paranoid_hooks__ = inherit_chains(
            getattr(cls, "__paranoid_hooks__", None)
        )
        super().__init_subclass__(**kwargs)

        if not cls.__dict__.get("__abstract__", False):
            type_registry.register(cls.__name__, cls)

    def __setattr__(self, key: str, value: Any) -> None:
        if not key.startswith("_") and self.__dict__.get("_paranoid_frozen", False):
            raise FrozenRecordError(self._paranoid_entity_id(), key)
        super().__setattr__(key, value)

    # ------------------------------------------------------------------
    # Hook registration
    # ------------------------------------------------------------------

    @classmethod
    def _register_hook(cls, chain: str, kind: str, hook: Hook) -> Hook:
        cls.__paranoid_hooks__[chain].add(kind, hook)
        return hook

    @classmethod
    def before_soft_delete(cls, hook: Hook) -> Hook:
        """Register a hook run before a paranoid-only soft delete."""
        return cls._register_hook(SOFT_DESTROY, "before", hook)

    @classmethod
    def after_soft_delete(cls, hook: Hook) -> Hook:
        return cls._register_hook(SOFT_DESTROY, "after", hook)

    @classmethod
    def before_destroy(cls, hook: Hook) -> Hook:
        """Register a hook run before an ordinary delete or a purge."""
        return cls._register_hook(DESTROY, "before", hook)

    @classmethod
    def after_destroy(cls, hook: Hook) -> Hook:
        return cls._register_hook(DESTROY, "after", hook)

    @classmethod
    def before_recover(cls, hook: Hook) -> Hook:
        return cls._register_hook(RECOVER, "before", hook)

    @classmethod
    def after_recover(cls, hook: Hook) -> Hook:
        return cls._register_hook(RECOVER, "after", hook)

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    @property
    def paranoid_value(self) -> Any:
        return getattr(self, self.__paranoid_policy__.column)

    @paranoid_value.setter
    def paranoid_value(self, value: Any) -> None:
        setattr(self, self.__paranoid_policy__.column, value)

    @hybrid_property
    def is_deleted(self) -> bool:
        """True if the marker says this record is deleted (or purged)."""
        return self.__paranoid_policy__.is_deleted(self.paranoid_value)

    @is_deleted.expression
    def is_deleted(cls):
        return cls.__paranoid_filter__.deleted_predicate()

    @hybrid_property
    def is_destroyed(self) -> bool:
        return self.is_deleted

    @is_destroyed.expression
    def is_destroyed(cls):
        return cls.__paranoid_filter__.deleted_predicate()

    @property
    def is_purged(self) -> bool:
        """True once the row has been hard deleted."""
        if self.__dict__.get("_paranoid_frozen", False):
            return True
        return sa_inspect(self).was_deleted

    def paranoid_identity(self) -> Tuple[Tuple[str, Any], ...]:
        """Primary key as ordered (attribute name, value) pairs."""
        state = sa_inspect(self)
        mapper = state.mapper
        keys = [
            mapper.get_property_by_column(column).key
            for column in mapper.primary_key
        ]
        # Persisted identity needs no refresh, so it survives an expired row
        if state.identity is not None:
            return tuple(zip(keys, state.identity))
        return tuple((key, getattr(self, key)) for key in keys)

    def _paranoid_entity_id(self) -> str:
        return ",".join(str(value) for _, value in self.paranoid_identity())

    def paranoid_label(self) -> str:
        return f"{type(self).__name__}({self._paranoid_entity_id()})"

    @classmethod
    def identity_clause(
        cls, identity: Tuple[Tuple[str, Any], ...]
    ) -> ColumnElement[bool]:
        """WHERE clause matching every key field of ``identity`` at once."""
        return and_(*(getattr(cls, key) == value for key, value in identity))

    # ------------------------------------------------------------------
    # Public lifecycle operations
    # ------------------------------------------------------------------

    def delete(self) -> bool:
        """
        Soft delete this record and cascade to its dependents.

        Deleting a record that is already deleted purges it, unless the model
        sets ``double_tap_destroys_fully=False``.

        Returns:
            True on success, False if a hook aborted (nothing is persisted)
        """
        return self._run_lifecycle("delete", self._paranoid_delete)

    def purge(self) -> bool:
        """
        Hard delete this record and every paranoid dependent.

        Returns:
            True on success, False if a hook aborted or the row no longer exists
        """
        return self._run_lifecycle("purge", self._paranoid_purge)

    def recover(
        self,
        recursive: Optional[bool] = None,
        recovery_window: Optional[timedelta] = None,
    ) -> bool:
        """
        Clear the deletion marker, optionally recovering dependents too.

        Args:
            recursive: Recover dependents deleted alongside this record.
                Defaults to the model's ``recover_dependent_associations``.
            recovery_window: Only dependents deleted within this distance of
                this record's deletion time are recovered (time markers only).
                Defaults to the model's ``dependent_recovery_window``.

        Returns:
            True on success, False if a hook aborted or the record was purged
        """
        options = self.__paranoid_options__
        if recursive is None:
            recursive = options.recover_dependent_associations
        if recovery_window is None:
            recovery_window = options.dependent_recovery_window

        return self._run_lifecycle(
            "recover",
            lambda cascade: self._paranoid_recover(cascade, recursive, recovery_window),
        )

    def _run_lifecycle(
        self, operation: str, step: Callable[[CascadeOrchestrator], bool]
    ) -> bool:
        if self.is_purged:
            logger.warning(
                f"Cannot {operation} {type(self).__name__}: record has been purged"
            )
            return False

        session = self._paranoid_session()
        cascade = CascadeOrchestrator(session)

        def body() -> bool:
            if sa_inspect(self).pending:
                session.flush()
            elif not self._paranoid_row_exists(session):
                logger.warning(
                    f"Cannot {operation} {self.paranoid_label()}: row not found"
                )
                return False
            return step(cascade)

        succeeded = TransactionBoundary(session).run(body)
        if succeeded:
            for record in cascade.purged:
                record._paranoid_frozen = True
            logger.info(f"{operation} {self.paranoid_label()} succeeded")
        return succeeded

    def _paranoid_session(self) -> Session:
        session = object_session(self)
        if session is None:
            raise RecordNotAttachedError(type(self).__name__)
        return session

    def _paranoid_row_exists(self, session: Session) -> bool:
        """True if the row is still in the table, whatever its marker says."""
        statement = (
            select(*sa_inspect(type(self)).primary_key)
            .where(self.identity_clause(self.paranoid_identity()))
            .execution_options(**{INCLUDE_DELETED: True})
        )
        return session.execute(statement).first() is not None

    # ------------------------------------------------------------------
    # Steps, run inside an open transaction
    # ------------------------------------------------------------------

    def _paranoid_delete(self, cascade: CascadeOrchestrator) -> bool:
        options = self.__paranoid_options__

        if self.is_deleted:
            if options.double_tap_destroys_fully:
                return self._paranoid_purge(cascade)
            return True

        if not cascade.enter(self):
            return True

        policy = self.__paranoid_policy__
        session = cascade.session

        if options.dependent_destroy_paranoid_only:

            def soft_destroy() -> None:
                cascade.soft_delete(self)
                self.paranoid_value = policy.deletion_value()
                session.flush()

            self.__paranoid_hooks__[SOFT_DESTROY].run(self, soft_destroy)
            return True

        def destroy() -> None:
            cascade.soft_delete(self, remove_non_paranoid=True)
            value = policy.deletion_value()
            session.execute(
                update(type(self))
                .where(self.identity_clause(self.paranoid_identity()))
                .values({self.__paranoid_filter__.column: value})
                .execution_options(synchronize_session=False)
            )
            set_committed_value(self, policy.column, value)

        self.__paranoid_hooks__[DESTROY].run(self, destroy)
        return True

    def _paranoid_purge(self, cascade: CascadeOrchestrator) -> bool:
        if not cascade.enter(self):
            return True

        session = cascade.session
        policy = self.__paranoid_policy__

        def destroy() -> None:
            cascade.purge(self)
            session.delete(self)
            session.flush()
            set_committed_value(self, policy.column, policy.deletion_value())
            cascade.purged.append(self)

        self.__paranoid_hooks__[DESTROY].run(self, destroy)
        return True

    def _paranoid_recover(
        self,
        cascade: CascadeOrchestrator,
        recursive: bool,
        recovery_window: timedelta,
    ) -> bool:
        if not cascade.enter(self):
            return True

        policy = self.__paranoid_policy__
        session = cascade.session

        def recover() -> None:
            original_value = self.paranoid_value
            was_deleted = policy.is_deleted(original_value)
            self.paranoid_value = policy.cleared_value()
            session.flush()

            if recursive and was_deleted:
                cascade.recover(self, original_value, recovery_window, recursive)

        self.__paranoid_hooks__[RECOVER].run(self, recover)
        return True

    # ------------------------------------------------------------------
    # Class-level scopes and bulk operations
    # ------------------------------------------------------------------

    @classmethod
    def paranoid_filter(cls) -> ScopedQueryFilter:
        return cls.__paranoid_filter__

    @classmethod
    def live_predicate(cls) -> ColumnElement[bool]:
        return cls.__paranoid_filter__.live_predicate()

    @classmethod
    def deleted_predicate(cls) -> ColumnElement[bool]:
        return cls.__paranoid_filter__.deleted_predicate()

    @classmethod
    def live_scope(cls) -> Any:
        """Select live records only."""
        return cls.__paranoid_filter__.live_scope()

    @classmethod
    def deleted_scope(cls) -> Any:
        """Select soft-deleted records only."""
        return cls.__paranoid_filter__.deleted_scope()

    @classmethod
    def all_scope(cls) -> Any:
        """Select every record regardless of deletion state."""
        return cls.__paranoid_filter__.all_scope()

    @classmethod
    def deleted_inside_time_window(cls, time: datetime, window: timedelta) -> Any:
        return cls.deleted_scope().where(
            cls.__paranoid_filter__.window_predicate(time, window)
        )

    @classmethod
    def deleted_after_time(cls, time: datetime) -> Any:
        return cls.deleted_scope().where(
            cls.__paranoid_filter__.deleted_after_time(time)
        )

    @classmethod
    def deleted_before_time(cls, time: datetime) -> Any:
        return cls.deleted_scope().where(
            cls.__paranoid_filter__.deleted_before_time(time)
        )

    @classmethod
    def bulk_delete(cls, session: Session, *conditions: Any) -> int:
        """
        Soft delete every live record matching ``conditions``.

        Hooks and cascades are not run. Already deleted records are left
        untouched so they keep their original deletion time.

        Returns:
            Number of records marked deleted
        """
        marker = cls.__paranoid_filter__.column
        result = session.execute(
            update(cls)
            .where(cls.live_predicate(), *conditions)
            .values({marker: cls.__paranoid_policy__.deletion_value()})
            .execution_options(synchronize_session="fetch")
        )
        logger.info(f"Bulk deleted {result.rowcount} {cls.__name__} record(s)")
        return result.rowcount

    @classmethod
    def bulk_purge(cls, session: Session, *conditions: Any) -> int:
        """
        Hard delete every record matching ``conditions``, live or deleted.

        Hooks and cascades are not run.

        Returns:
            Number of rows removed
        """
        result = session.execute(
            delete(cls)
            .where(*conditions)
            .execution_options(synchronize_session="fetch")
        )
        logger.info(f"Bulk purged {result.rowcount} {cls.__name__} record(s)")
        return result.rowcount


def _validate_paranoid_mapping(mapper: Any, cls: Any) -> None:
    """Reject a paranoid model whose options do not match its mapping."""
    policy: ColumnPolicy = cls.__paranoid_policy__
    if policy.column not in mapper.column_attrs:
        raise ParanoidConfigurationError(
            f"{cls.__name__} declares marker column '{policy.column}' "
            "but maps no such column"
        )
    for association in cls.__paranoid_dependents__:
        association.validate_for(cls)


event.listen(
    ParanoidMixin, "mapper_configured", _validate_paranoid_mapping, propagate=True
)
