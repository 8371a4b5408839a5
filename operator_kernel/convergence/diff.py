"""Element-wise diff of keyed collections into a Patch."""

from typing import Any, Callable, Dict, Optional

from operator_kernel.models.patch import Patch


def _equal(a: Any, b: Any) -> bool:
    return a == b


def diff_collections(
    observed: Optional[Dict[str, Any]],
    desired: Optional[Dict[str, Any]],
    delete_orphans: bool = False,
    same: Callable[[Any, Any], bool] = _equal,
) -> Patch:
    """
    Compare two collections keyed by natural key.

    Elements only in desired go to the create set, elements in both whose
    values differ go to the update set, elements only in observed go to the
    delete set when `delete_orphans` is set. Sets are dicts ordered by key so
    the result is deterministic. Unset change fields stay None.
    """
    observed = observed or {}
    desired = desired or {}

    create = {}
    update = {}
    delete = {}

    for key in sorted(desired):
        if key not in observed:
            create[key] = desired[key]
        elif not same(observed[key], desired[key]):
            update[key] = desired[key]

    if delete_orphans:
        for key in sorted(observed):
            if key not in desired:
                delete[key] = observed[key]

    return Patch(
        create_change=create or None,
        update_change=update or None,
        delete_change=delete or None,
    )
