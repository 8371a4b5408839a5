"""Operator Kernel data models."""

from operator_kernel.models.cluster import ClusterSpec
from operator_kernel.models.compute import (
    FleetDesired,
    FleetObservation,
    ScaleSet,
    ScaleSetInstance,
)
from operator_kernel.models.encryption import EncryptionKeyMaterial, new_key_material
from operator_kernel.models.history import PassRecord
from operator_kernel.models.network import (
    ConnectionDescriptor,
    ConnectionStatus,
    ConnectionType,
    DNSRecord,
    GatewayReference,
    ProvisioningState,
    VPNConnectionPair,
)
from operator_kernel.models.patch import Patch
from operator_kernel.models.reconciler import (
    PassResult,
    ReconcileOutcome,
    ReconcilerConfig,
)
from operator_kernel.models.storage import ContainerObject

__all__ = [
    "ClusterSpec",
    "ConnectionDescriptor",
    "ConnectionStatus",
    "ConnectionType",
    "ContainerObject",
    "DNSRecord",
    "EncryptionKeyMaterial",
    "FleetDesired",
    "FleetObservation",
    "GatewayReference",
    "PassRecord",
    "PassResult",
    "Patch",
    "ProvisioningState",
    "ReconcileOutcome",
    "ReconcilerConfig",
    "ScaleSet",
    "ScaleSetInstance",
    "VPNConnectionPair",
    "new_key_material",
]
