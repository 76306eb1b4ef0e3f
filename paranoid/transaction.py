"""Transaction scope around a top-level lifecycle call."""

import logging
from typing import Any, Callable

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, SessionTransaction

from .exceptions import HookAborted

logger = logging.getLogger(__name__)


class _Rollback(Exception):
    """Internal signal: the body reported failure without raising."""


class TransactionBoundary:
    """
    Commit-or-rollback scope for one delete, purge or recover call.

    Opens ``Session.begin()`` when the session is idle, or a SAVEPOINT via
    ``Session.begin_nested()`` when the caller already holds a transaction;
    in the latter case the work becomes durable when the caller commits.
    Everything cascaded from the call runs inside this one scope.
    """

    def __init__(self, session: Session):
        self.session = session

    def _begin(self) -> SessionTransaction:
        if self.session.in_transaction():
            return self.session.begin_nested()
        return self.session.begin()

    def run(self, body: Callable[[], Any]) -> bool:
        """
        Execute ``body`` atomically.

        Returns:
            False if a hook aborted or ``body`` returned False, else True

        Raises:
            SQLAlchemyError: Re-raised after rollback when persistence fails
        """
        try:
            with self._begin():
                if body() is False:
                    raise _Rollback()
        except _Rollback:
            self._expire()
            return False
        except HookAborted as e:
            logger.warning(f"Rolled back: {e}")
            self._expire()
            return False
        except SQLAlchemyError as e:
            logger.error(f"Rolled back after database error: {e}")
            self._expire()
            raise
        except Exception:
            self._expire()
            raise
        return True

    def _expire(self) -> None:
        # Changes made before the scope opened were flushed when it began,
        # so expiring cannot discard unsaved work.
        self.session.expire_all()
