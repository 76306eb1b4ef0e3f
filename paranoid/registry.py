"""Registry mapping polymorphic discriminator strings to mapped classes."""

import logging
from typing import Any, Callable, Dict, Iterator, Optional, Tuple, Type

from .exceptions import ParanoidConfigurationError, UnknownTypeError

logger = logging.getLogger(__name__)


class TypeRegistry:
    """
    Explicit discriminator -> class lookup used for polymorphic associations.

    Paranoid models register themselves under their class name when defined.
    Non-paranoid targets of a polymorphic association must be registered
    explicitly, otherwise a discriminator naming them cannot be resolved.
    """

    def __init__(self) -> None:
        self._types: Dict[str, Type[Any]] = {}

    def register(self, name: str, model: Type[Any]) -> None:
        if not name:
            raise ParanoidConfigurationError("Discriminator name must not be empty")

        existing = self._types.get(name)
        if existing is not None and existing is not model:
            logger.debug(
                f"Discriminator '{name}' rebound from "
                f"{existing.__module__}.{existing.__qualname__} to "
                f"{model.__module__}.{model.__qualname__}"
            )
        self._types[name] = model

    def unregister(self, name: str) -> None:
        self._types.pop(name, None)

    def resolve(self, name: str) -> Type[Any]:
        try:
            return self._types[name]
        except KeyError:
            raise UnknownTypeError(name) from None

    def get(self, name: str) -> Optional[Type[Any]]:
        return self._types.get(name)

    def items(self) -> Iterator[Tuple[str, Type[Any]]]:
        return iter(sorted(self._types.items()))

    def __contains__(self, name: object) -> bool:
        return name in self._types

    def __len__(self) -> int:
        return len(self._types)


type_registry = TypeRegistry()


def register_type(
    name: Optional[str] = None,
) -> Callable[[Type[Any]], Type[Any]]:
    """
    Class decorator registering a model for polymorphic resolution.

    Usage:
        @register_type("Invoice")
        class Invoice(Base):
            ...
    """

    def decorator(model: Type[Any]) -> Type[Any]:
        type_registry.register(name or model.__name__, model)
        return model

    return decorator
