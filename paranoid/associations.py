"""
Dependent association declarations.

A paranoid model lists the relations its lifecycle cascades into:

    class Post(ParanoidMixin, Base):
        comments = relationship("Comment", back_populates="post")
        tags = relationship("Tagging")

        __paranoid_dependents__ = [
            DependentAssociation("comments", dependent="destroy"),
            DependentAssociation("tags", dependent="delete_all"),
        ]

Polymorphic "belongs to" relations have no SQLAlchemy relationship; they name
the discriminator and foreign key attributes on the owning record instead and
the target class is looked up in the type registry.
"""

from enum import Enum
from typing import Any, Optional, Tuple, Type, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from sqlalchemy import and_
from sqlalchemy import inspect as sa_inspect
from sqlalchemy.orm import with_parent
from sqlalchemy.sql.elements import ColumnElement

from .exceptions import ParanoidConfigurationError
from .registry import TypeRegistry, type_registry


class DependentMode(str, Enum):
    """What happens to dependents when the owner is deleted."""

    DESTROY = "destroy"
    DELETE_ALL = "delete_all"
    NONE = "none"


class DependentAssociation(BaseModel):
    """One declared owner -> dependent relation and its cascade mode."""

    model_config = ConfigDict(frozen=True)

    name: str = Field(..., min_length=1)
    dependent: DependentMode = DependentMode.NONE
    polymorphic: bool = False
    foreign_type: Optional[str] = None
    foreign_key: Union[str, Tuple[str, ...], None] = None

    def __init__(self, name: str, **data: Any):
        super().__init__(name=name, **data)

    @field_validator("foreign_key")
    @classmethod
    def normalize_foreign_key(cls, v: Any) -> Any:
        if isinstance(v, str):
            return (v,)
        return v

    @model_validator(mode="after")
    def check_polymorphic(self) -> "DependentAssociation":
        if self.polymorphic and (not self.foreign_type or not self.foreign_key):
            raise ParanoidConfigurationError(
                f"Polymorphic association '{self.name}' needs foreign_type "
                "and foreign_key"
            )
        return self

    @property
    def cascades(self) -> bool:
        return self.dependent is not DependentMode.NONE

    def validate_for(self, owner: Type[Any]) -> None:
        """Check the declaration against the owner's mapping."""
        if self.polymorphic:
            for attribute in (self.foreign_type, *self.foreign_key):
                if not hasattr(owner, attribute):
                    raise ParanoidConfigurationError(
                        f"{owner.__name__} has no attribute '{attribute}' for "
                        f"polymorphic association '{self.name}'"
                    )
        elif self.name not in sa_inspect(owner).relationships:
            raise ParanoidConfigurationError(
                f"{owner.__name__} has no relationship '{self.name}'"
            )

    def target_class(
        self, owner: Any, registry: TypeRegistry = type_registry
    ) -> Optional[Type[Any]]:
        """Resolve the dependent class for ``owner``; None if nothing is linked."""
        if self.polymorphic:
            discriminator = getattr(owner, self.foreign_type)
            if not discriminator:
                return None
            return registry.resolve(discriminator)

        relationships = sa_inspect(type(owner)).relationships
        if self.name not in relationships:
            raise ParanoidConfigurationError(
                f"{type(owner).__name__} has no relationship '{self.name}'"
            )
        return relationships[self.name].mapper.class_

    def criterion(
        self, owner: Any, target: Type[Any]
    ) -> Optional[ColumnElement[bool]]:
        """WHERE clause selecting ``owner``'s dependents in ``target``."""
        if not self.polymorphic:
            return with_parent(owner, getattr(type(owner), self.name))

        values = [getattr(owner, attribute) for attribute in self.foreign_key]
        if any(value is None for value in values):
            return None

        key_columns = sa_inspect(target).primary_key
        if len(key_columns) != len(values):
            raise ParanoidConfigurationError(
                f"Association '{self.name}' gives {len(values)} key value(s) but "
                f"{target.__name__} has {len(key_columns)} primary key column(s)"
            )
        return and_(*(column == value for column, value in zip(key_columns, values)))
