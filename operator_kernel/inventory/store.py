"""
Cluster Inventory — the clusters the operator is responsible for.

Updated by: the API (registration, teardown requests)
Queried by: the Reconciler Loop
"""

import threading
from datetime import datetime
from typing import Dict, List, Optional

from operator_kernel.models.cluster import ClusterSpec


class ClusterInventory:
    """
    In-memory registry of cluster specs.
    Passes for different clusters may run concurrently, so access is locked.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._clusters: Dict[str, ClusterSpec] = {}

    def upsert(self, cluster: ClusterSpec) -> ClusterSpec:
        """Register a cluster or replace its spec."""
        with self._lock:
            existing = self._clusters.get(cluster.cluster_id)
            if cluster.created_at is None:
                created_at = existing.created_at if existing else datetime.utcnow()
                cluster = cluster.model_copy(update={"created_at": created_at})
            self._clusters[cluster.cluster_id] = cluster
            return cluster

    def get(self, cluster_id: str) -> Optional[ClusterSpec]:
        with self._lock:
            return self._clusters.get(cluster_id)

    def list(self) -> List[ClusterSpec]:
        """All registered clusters, ordered by ID."""
        with self._lock:
            return [self._clusters[k] for k in sorted(self._clusters)]

    def mark_deleted(self, cluster_id: str) -> Optional[ClusterSpec]:
        """Request teardown. The spec stays registered until forgotten."""
        with self._lock:
            cluster = self._clusters.get(cluster_id)
            if cluster is None:
                return None
            cluster = cluster.model_copy(update={"deleted": True})
            self._clusters[cluster_id] = cluster
            return cluster

    def remove(self, cluster_id: str) -> bool:
        with self._lock:
            return self._clusters.pop(cluster_id, None) is not None

    def __len__(self) -> int:
        with self._lock:
            return len(self._clusters)
