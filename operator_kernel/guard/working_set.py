"""
WorkingSet Guard — at most one mutated compute instance per fleet per pass.

A WorkingSet is built fresh from one snapshot of a fleet and names the single
instance the current pass may touch, together with what to do to it. A pass
never holds on to a WorkingSet after it returns.

Behavioral Contract:
- Exactly one of the four markers is set on a built WorkingSet
- None stands for an idle fleet; every accessor below accepts None
- Construction is side-effect free
- Priority: already-being-updated → update → drain/reimage
"""

import logging
from typing import Callable, Dict, Iterable, List, Optional, Set

from pydantic import BaseModel

from operator_kernel.models.compute import ScaleSetInstance

logger = logging.getLogger(__name__)


class VersionBlobEmptyError(Exception):
    """Raised when no per-instance versions are tracked yet."""
    pass


class WorkingSet(BaseModel):
    """The one instance a pass may mutate, and how."""

    instance_to_update: Optional[ScaleSetInstance] = None
    instance_to_drain: Optional[ScaleSetInstance] = None
    instance_to_reimage: Optional[ScaleSetInstance] = None
    instance_already_being_updated: Optional[ScaleSetInstance] = None


def is_wip(ws: Optional[WorkingSet]) -> bool:
    """True iff any marker is set. None is an idle fleet."""
    if ws is None:
        return False
    return (
        ws.instance_to_update is not None
        or ws.instance_to_drain is not None
        or ws.instance_to_reimage is not None
        or ws.instance_already_being_updated is not None
    )


def instance_to_update(ws: Optional[WorkingSet]) -> Optional[ScaleSetInstance]:
    return ws.instance_to_update if ws is not None else None


def instance_to_drain(ws: Optional[WorkingSet]) -> Optional[ScaleSetInstance]:
    return ws.instance_to_drain if ws is not None else None


def instance_to_reimage(ws: Optional[WorkingSet]) -> Optional[ScaleSetInstance]:
    return ws.instance_to_reimage if ws is not None else None


def instance_already_being_updated(ws: Optional[WorkingSet]) -> Optional[ScaleSetInstance]:
    return ws.instance_already_being_updated if ws is not None else None


# Builders always return a fresh WorkingSet holding only the given marker.
# `ws` is neither read nor mutated: markers never combine, so building from an
# existing set replaces it.

def with_instance_to_update(ws: Optional[WorkingSet], instance: ScaleSetInstance) -> WorkingSet:
    """Fresh WorkingSet whose only marker is `instance` as the one to update."""
    return WorkingSet(instance_to_update=instance)


def with_instance_to_drain(ws: Optional[WorkingSet], instance: ScaleSetInstance) -> WorkingSet:
    return WorkingSet(instance_to_drain=instance)


def with_instance_to_reimage(ws: Optional[WorkingSet], instance: ScaleSetInstance) -> WorkingSet:
    return WorkingSet(instance_to_reimage=instance)


def with_instance_already_being_updated(
    ws: Optional[WorkingSet], instance: ScaleSetInstance
) -> WorkingSet:
    return WorkingSet(instance_already_being_updated=instance)


def _first_in_progress(instances: Iterable[ScaleSetInstance]) -> Optional[ScaleSetInstance]:
    for instance in instances:
        if instance.in_progress():
            return instance
    return None


def _first_to_update(instances: Iterable[ScaleSetInstance]) -> Optional[ScaleSetInstance]:
    for instance in instances:
        if not instance.latest_model_applied:
            return instance
    return None


def _first_to_reimage(
    instances: Iterable[ScaleSetInstance],
    versions: Optional[Dict[str, str]],
    desired_version: str,
    name_of: Callable[[str], str],
) -> Optional[ScaleSetInstance]:
    if versions is None:
        raise VersionBlobEmptyError("no instance versions are tracked yet")

    for instance in instances:
        version = versions.get(name_of(instance.instance_id))
        # Untracked instances are left alone until they report a version
        if version is None or version == desired_version:
            continue
        return instance
    return None


def get_working_set(
    instances: List[ScaleSetInstance],
    drained: Set[str],
    versions: Optional[Dict[str, str]],
    desired_version: str,
    name_of: Callable[[str], str],
) -> Optional[WorkingSet]:
    """
    Build the WorkingSet for one fleet snapshot.

    `drained` holds node names whose drain completed, `versions` maps node
    names to the version they run, and `name_of` turns an instance ID into a
    node name. Returns None when the fleet is idle. Raises
    VersionBlobEmptyError when `versions` is None.
    """
    ws = None

    in_progress = _first_in_progress(instances)
    if in_progress is not None:
        return with_instance_already_being_updated(ws, in_progress)

    to_update = _first_to_update(instances)
    if to_update is not None:
        return with_instance_to_update(ws, to_update)

    to_reimage = _first_to_reimage(instances, versions, desired_version, name_of)
    if to_reimage is not None:
        if name_of(to_reimage.instance_id) in drained:
            return with_instance_to_reimage(ws, to_reimage)
        return with_instance_to_drain(ws, to_reimage)

    return ws


def next_instance(
    instances: List[ScaleSetInstance],
    drained: Set[str],
    versions: Optional[Dict[str, str]],
    desired_version: str,
    name_of: Callable[[str], str],
) -> Optional[WorkingSet]:
    """get_working_set, treating an untracked fleet as idle and logging the pick."""
    try:
        ws = get_working_set(instances, drained, versions, desired_version, name_of)
    except VersionBlobEmptyError:
        logger.debug("no instance versions tracked yet, fleet considered idle")
        return None

    if instance_already_being_updated(ws) is not None:
        logger.debug("instance %s is already being updated",
                     ws.instance_already_being_updated.instance_id)
    elif instance_to_update(ws) is not None:
        logger.debug("instance %s needs the latest model", ws.instance_to_update.instance_id)
    elif instance_to_drain(ws) is not None:
        logger.debug("instance %s needs to be drained", ws.instance_to_drain.instance_id)
    elif instance_to_reimage(ws) is not None:
        logger.debug("instance %s needs to be reimaged", ws.instance_to_reimage.instance_id)
    else:
        logger.debug("no instance needs to be updated")
    return ws
