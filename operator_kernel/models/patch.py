"""Patch — the minimal create/update/delete action set for one resource kind."""

from typing import Any, Optional

from pydantic import BaseModel


class Patch(BaseModel):
    """
    Output of the Convergence Contract for one resource kind.

    Only the fields relevant to the detected divergence are populated.
    An empty patch means the state already converged and no provider call
    is issued.
    """

    create_change: Optional[Any] = None
    update_change: Optional[Any] = None
    delete_change: Optional[Any] = None

    def is_empty(self) -> bool:
        return (
            _is_empty_change(self.create_change)
            and _is_empty_change(self.update_change)
            and _is_empty_change(self.delete_change)
        )


def _is_empty_change(change: Any) -> bool:
    if change is None:
        return True
    is_empty = getattr(change, "is_empty", None)
    if callable(is_empty):
        return is_empty()
    if isinstance(change, (dict, list, tuple, set, frozenset)):
        return len(change) == 0
    return False
