"""
Node bootstrap configuration blobs.

One blob per node role lives in the cluster's storage container. Bodies are
produced by an injected renderer which receives the cluster's Encrypter, so
sensitive material inside them is encrypted with the cluster's key material.

Behavioral Contract:
- Blobs are compared by key; absent blobs are created
- A blob is updated only when its current body is non-empty and differs
- Blobs are never deleted here; teardown removes the whole storage account
- Missing key material defers the pass
- A cluster being torn down desires no blobs and never defers
- A missing storage container turns apply into a no-op until it exists
"""

import logging
from typing import Callable, Dict, Optional

from operator_kernel.config.settings import InvalidConfigError
from operator_kernel.convergence.contract import Observation, ResourceHandler
from operator_kernel.convergence.diff import diff_collections
from operator_kernel.crypto.encrypter import Encrypter
from operator_kernel.models.cluster import ClusterSpec
from operator_kernel.models.encryption import EncryptionKeyMaterial
from operator_kernel.models.patch import Patch
from operator_kernel.models.storage import ContainerObject
from operator_kernel.provider.client import BlobClient
from operator_kernel.throttling.gatekeeper import Gatekeeper

logger = logging.getLogger(__name__)

CONTAINER_NAME = "ignition"

PREFIX_MASTER = "master"
PREFIX_WORKER = "worker"

# Renders role prefix → blob body for one cluster.
BootConfigRenderer = Callable[[ClusterSpec, Encrypter], Dict[str, str]]

# Looks up a cluster's key material, None while it is not provisioned yet.
KeyMaterialSource = Callable[[str], Optional[EncryptionKeyMaterial]]


def blob_name(cluster: ClusterSpec, prefix: str) -> str:
    return f"{prefix}-{cluster.operator_version}"


def _same_object(current: ContainerObject, desired: ContainerObject) -> bool:
    # An empty current body is left alone
    return current.body == "" or current.body == desired.body


class BlobObjectHandler(ResourceHandler):
    """Keeps the node bootstrap blobs of a cluster up to date."""

    name = "blobobject"

    def __init__(
        self,
        blobs: BlobClient,
        renderer: BootConfigRenderer,
        key_material: KeyMaterialSource,
        container_name: str = CONTAINER_NAME,
        gatekeeper: Optional[Gatekeeper] = None,
    ):
        if renderer is None:
            raise InvalidConfigError("renderer must not be empty")
        if key_material is None:
            raise InvalidConfigError("key_material must not be empty")
        super().__init__(gatekeeper=gatekeeper)
        self.blobs = blobs
        self.renderer = renderer
        self.key_material = key_material
        self.container_name = container_name

    def get_current_state(self, cluster: ClusterSpec) -> Observation:
        rg = cluster.resource_group
        account = cluster.storage_account_name

        if not self.blobs.container_exists(rg, account, self.container_name):
            logger.debug("container %s/%s not found", account, self.container_name)
            return Observation.observed({})

        objects = self.blobs.list_objects(rg, account, self.container_name)
        logger.debug("found %d container objects", len(objects))
        return Observation.observed(objects)

    def get_desired_state(self, cluster: ClusterSpec) -> Observation:
        if cluster.deleted:
            return Observation.observed({})

        material = self.key_material(cluster.cluster_id)
        if material is None:
            logger.debug("encryption key material is not ready")
            logger.debug("canceling resource")
            return Observation.deferred("encryption key material is not ready")

        encrypter = Encrypter.from_key_material(material)
        bodies = self.renderer(cluster, encrypter)

        desired = {}
        for prefix in sorted(bodies):
            key = blob_name(cluster, prefix)
            desired[key] = ContainerObject(
                key=key,
                body=bodies[prefix],
                container_name=self.container_name,
                storage_account_name=cluster.storage_account_name,
            )
        return Observation.observed(desired)

    def new_update_patch(
        self,
        cluster: ClusterSpec,
        current: Dict[str, ContainerObject],
        desired: Dict[str, ContainerObject],
    ) -> Patch:
        patch = diff_collections(current, desired, delete_orphans=False, same=_same_object)
        for key in (patch.create_change or {}):
            logger.debug("container object %s should be created", key)
        for key in (patch.update_change or {}):
            logger.debug("container object %s should be updated", key)
        return patch

    def apply_create_change(self, cluster: ClusterSpec, change: Dict[str, ContainerObject]) -> None:
        self._put_all(cluster, change, "creating", "created")

    def apply_update_change(self, cluster: ClusterSpec, change: Dict[str, ContainerObject]) -> None:
        self._put_all(cluster, change, "updating", "updated")

    def _put_all(
        self,
        cluster: ClusterSpec,
        objects: Dict[str, ContainerObject],
        doing: str,
        done: str,
    ) -> None:
        if not objects:
            return

        rg = cluster.resource_group
        account = cluster.storage_account_name
        if not self.blobs.container_exists(rg, account, self.container_name):
            logger.debug("container %s/%s does not exist yet", account, self.container_name)
            logger.debug("skipped %s container objects", doing)
            return

        for key, obj in objects.items():
            logger.debug("%s container object %s", doing, key)
            self.blobs.put_object(rg, obj).result()
            logger.debug("%s container object %s", done, key)
