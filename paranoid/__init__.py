"""
SQLAlchemy Paranoid - recoverable soft deletion for SQLAlchemy models.

Marks records deleted through a marker column instead of removing rows,
recovers them later, and cascades both operations through declared
dependent associations inside a single transaction.

Key Features
------------
* **Marker policies**: timestamp, boolean or sentinel-string deletion markers
* **Lifecycle**: ``delete()``, ``purge()`` and ``recover()`` with hook chains
* **Cascades**: ``destroy`` and ``delete_all`` dependents, polymorphic targets
* **Recovery windows**: recover only dependents deleted alongside the owner
* **Default scope**: live-only ORM queries with an explicit opt-out

Quick Start
-----------
>>> from paranoid import DependentAssociation, ParanoidMixin
>>>
>>> class Post(ParanoidMixin, Base):
...     __tablename__ = "posts"
...     __paranoid_dependents__ = [
...         DependentAssociation("comments", dependent="destroy"),
...     ]
...     id = Column(Integer, primary_key=True)
...     deleted_at = Column(DateTime)
...     comments = relationship("Comment")
>>>
>>> post.delete()       # soft deletes post and its comments
>>> post.recover()      # brings both back
>>> post.purge()        # removes the rows for good
"""

__version__ = "1.0.0"

from .associations import DependentAssociation, DependentMode
from .column import ColumnPolicy, ParanoidOptions
from .config import ColumnType, ParanoidConfig, configure, get_config, set_config
from .exceptions import (
    FrozenRecordError,
    HookAborted,
    ParanoidConfigurationError,
    ParanoidError,
    RecordNotAttachedError,
    UnknownTypeError,
)
from .hooks import HookResult
from .mixins import ParanoidMixin
from .registry import TypeRegistry, register_type, type_registry
from .scopes import (
    INCLUDE_DELETED,
    ScopedQueryFilter,
    is_paranoid,
    register_paranoid_listeners,
    remove_paranoid_listeners,
)

__all__ = [
    # Models
    "ParanoidMixin",
    "DependentAssociation",
    "DependentMode",
    "HookResult",
    # Policy and scopes
    "ColumnPolicy",
    "ColumnType",
    "ParanoidOptions",
    "ScopedQueryFilter",
    "INCLUDE_DELETED",
    "is_paranoid",
    "register_paranoid_listeners",
    "remove_paranoid_listeners",
    # Polymorphic resolution
    "TypeRegistry",
    "type_registry",
    "register_type",
    # Configuration
    "ParanoidConfig",
    "configure",
    "get_config",
    "set_config",
    # Exceptions
    "ParanoidError",
    "ParanoidConfigurationError",
    "UnknownTypeError",
    "HookAborted",
    "FrozenRecordError",
    "RecordNotAttachedError",
]
