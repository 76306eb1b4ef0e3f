"""Exceptions for paranoid lifecycle operations."""

from typing import Optional


class ParanoidError(Exception):
    """Base exception for paranoid operations."""

    def __init__(self, message: str, entity_id: Optional[str] = None):
        self.entity_id = entity_id
        super().__init__(message)


class ParanoidConfigurationError(ParanoidError):
    """Raised when a paranoid type is configured incorrectly."""

    def __init__(self, message: str):
        super().__init__(message)


class UnknownTypeError(ParanoidConfigurationError):
    """Raised when a polymorphic discriminator names an unregistered type."""

    def __init__(self, type_name: str):
        self.type_name = type_name
        super().__init__(f"No type registered under discriminator '{type_name}'")


class HookAborted(ParanoidError):
    """Raised when a lifecycle hook signals abort."""

    def __init__(self, chain: str, entity_id: Optional[str] = None):
        self.chain = chain
        super().__init__(
            f"{chain} hook chain aborted for entity {entity_id}",
            entity_id=entity_id,
        )


class FrozenRecordError(ParanoidError):
    """Raised when attempting to modify a purged record."""

    def __init__(self, entity_id: str, attribute: str):
        self.attribute = attribute
        super().__init__(
            f"Entity {entity_id} has been purged; cannot set '{attribute}'",
            entity_id=entity_id,
        )


class RecordNotAttachedError(ParanoidError):
    """Raised when a lifecycle operation is called on a record without a session."""

    def __init__(self, entity_id: str):
        super().__init__(
            f"Entity {entity_id} is not attached to a session",
            entity_id=entity_id,
        )
