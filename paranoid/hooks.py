"""
Lifecycle hook chains.

A chain holds ordered ``before`` and ``after`` callbacks around a lifecycle
body. A callback returning ``False`` or ``HookResult.ABORT`` stops the chain
and aborts the operation; any other return value continues.
"""

import logging
from enum import Enum
from typing import Any, Callable, Dict, Iterable, List, Optional, TypeVar, Union

from .exceptions import HookAborted

logger = logging.getLogger(__name__)

T = TypeVar("T")

Hook = Union[Callable[[Any], Any], str]

SOFT_DESTROY = "soft_destroy"
DESTROY = "destroy"
RECOVER = "recover"
CHAIN_NAMES = (SOFT_DESTROY, DESTROY, RECOVER)


class HookResult(str, Enum):
    """Explicit signals a hook may return."""

    CONTINUE = "continue"
    ABORT = "abort"


class HookChain:
    """Ordered before/after callbacks for one lifecycle operation."""

    def __init__(
        self,
        name: str,
        before: Optional[Iterable[Hook]] = None,
        after: Optional[Iterable[Hook]] = None,
    ):
        self.name = name
        self.before: List[Hook] = list(before or [])
        self.after: List[Hook] = list(after or [])

    def copy(self) -> "HookChain":
        return HookChain(self.name, self.before, self.after)

    def add(self, kind: str, hook: Hook) -> None:
        """
        Append a hook.

        Args:
            kind: "before" or "after"
            hook: Callable taking the record, or the name of a method on it
        """
        if kind == "before":
            self.before.append(hook)
        elif kind == "after":
            self.after.append(hook)
        else:
            raise ValueError(f"Hook kind must be 'before' or 'after', not {kind!r}")

    def run(self, target: Any, body: Callable[[], T]) -> T:
        """Run before hooks, ``body``, then after hooks, aborting on a veto."""
        self._run_stage(self.before, target, "before")
        result = body()
        self._run_stage(self.after, target, "after")
        return result

    def _run_stage(self, hooks: List[Hook], target: Any, stage: str) -> None:
        for hook in hooks:
            if isinstance(hook, str):
                outcome = getattr(target, hook)()
            else:
                outcome = hook(target)

            if outcome is False or outcome == HookResult.ABORT:
                logger.warning(
                    f"{stage}_{self.name} hook {_hook_name(hook)} aborted on {target!r}"
                )
                raise HookAborted(self.name, entity_id=repr(target))


def _hook_name(hook: Hook) -> str:
    if isinstance(hook, str):
        return hook
    return getattr(hook, "__qualname__", repr(hook))


def inherit_chains(parent: Optional[Dict[str, HookChain]]) -> Dict[str, HookChain]:
    """Copy a parent class's chains so subclass registrations stay local."""
    if parent is None:
        return {name: HookChain(name) for name in CHAIN_NAMES}
    return {name: chain.copy() for name, chain in parent.items()}
