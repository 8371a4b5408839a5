"""
Operator Kernel API — FastAPI endpoints.

Exposes the kernel's functionality via a REST API for:
- Cluster registration and teardown requests
- Reconciler control
- Gatekeeper inspection
- Pass history queries
"""

import json
import logging
import os
from typing import Dict, List, Optional

from fastapi import FastAPI, HTTPException
from pydantic import BaseModel

from operator_kernel.config.log import setup_logging
from operator_kernel.config.settings import InvalidConfigError, OperatorConfig, load_config
from operator_kernel.convergence.contract import ResourceHandler
from operator_kernel.crypto.encrypter import Encrypter
from operator_kernel.history.store import HistoryStore
from operator_kernel.inventory.store import ClusterInventory
from operator_kernel.models.cluster import ClusterSpec
from operator_kernel.models.encryption import EncryptionKeyMaterial, new_key_material
from operator_kernel.models.reconciler import ReconcilerConfig
from operator_kernel.provider.memory import InMemoryProvider
from operator_kernel.reconciler.loop import ReconcilerLoop
from operator_kernel.resources.blobobject import PREFIX_MASTER, PREFIX_WORKER, BlobObjectHandler
from operator_kernel.resources.dnsrecord import DNSRecordHandler
from operator_kernel.resources.fleet import FleetHandler
from operator_kernel.resources.vpnconnection import VPNConnectionHandler
from operator_kernel.throttling.gatekeeper import GatekeeperRegistry

logger = logging.getLogger(__name__)

CONFIG_ENV = "OPERATOR_KERNEL_CONFIG"

GATE_COMPUTE = "compute"
GATE_NETWORK = "network"
GATE_STORAGE = "storage"


# --- Request/Response Models ---

class ClusterCreateRequest(BaseModel):
    cluster_id: str
    operator_version: str
    location: str = "westeurope"
    master_count: int = 1
    worker_count: int = 3
    dns_zone_name_servers: List[str] = []


class ReconcilerTriggerResponse(BaseModel):
    cycle_id: Optional[str]
    results: list
    pass_count: int


# --- Wiring ---

def render_boot_configs(cluster: ClusterSpec, encrypter: Encrypter) -> Dict[str, str]:
    """
    Minimal node bootstrap payloads: the cluster identity, encrypted.

    The key material never goes into the body. Nodes receive it out of band
    from the same per-cluster key material source the blob handler reads.
    """
    bodies = {}
    for role in (PREFIX_MASTER, PREFIX_WORKER):
        secret = json.dumps({"cluster_id": cluster.cluster_id, "role": role}).encode()
        bodies[role] = json.dumps({
            "role": role,
            "version": cluster.operator_version,
            "payload": encrypter.encrypt(secret).hex(),
        }, sort_keys=True)
    return bodies


def build_handlers(
    config: OperatorConfig,
    provider: InMemoryProvider,
    gatekeepers: GatekeeperRegistry,
    key_material: Dict[str, EncryptionKeyMaterial],
    instance_versions: Dict[str, Dict[str, str]],
) -> List[ResourceHandler]:
    """Resource handlers in pass order. Network kinds need host cluster settings."""
    handlers: List[ResourceHandler] = [
        BlobObjectHandler(
            blobs=provider.blobs,
            renderer=render_boot_configs,
            key_material=key_material.get,
            gatekeeper=gatekeepers.get(GATE_STORAGE),
        ),
    ]

    try:
        config.host_cluster.validate_required()
    except InvalidConfigError as e:
        logger.warning("network resources disabled: %s", e)
    else:
        handlers.append(VPNConnectionHandler(
            host_cluster=config.host_cluster,
            host_gateways=provider.host_gateways,
            host_connections=provider.host_connections,
            guest_gateways=provider.guest_gateways,
            guest_connections=provider.guest_connections,
            gatekeeper=gatekeepers.get(GATE_NETWORK),
        ))
        handlers.append(DNSRecordHandler(
            host_cluster=config.host_cluster,
            records=provider.dns_records,
            gatekeeper=gatekeepers.get(GATE_NETWORK),
        ))

    handlers.append(FleetHandler(
        scale_sets=provider.scale_sets,
        drainer=provider.drainer,
        versions=instance_versions.get,
        gatekeeper=gatekeepers.get(GATE_COMPUTE),
    ))
    return handlers


# --- Application Factory ---

def create_app(
    config: Optional[OperatorConfig] = None,
    provider: Optional[InMemoryProvider] = None,
    inventory: Optional[ClusterInventory] = None,
    history_store: Optional[HistoryStore] = None,
    gatekeepers: Optional[GatekeeperRegistry] = None,
    handlers: Optional[List[ResourceHandler]] = None,
) -> FastAPI:
    """Create and configure the FastAPI application."""

    app = FastAPI(
        title="Operator Kernel API",
        description="Cluster lifecycle operator — reconciliation kernel",
        version="0.1.0",
    )

    # Initialize components
    cfg = config or load_config(os.environ.get(CONFIG_ENV))
    setup_logging(cfg.logging.level, cfg.logging.rich_tracebacks)
    pv = provider or InMemoryProvider()
    inv = inventory or ClusterInventory()
    hs = history_store or HistoryStore(db_path=cfg.history_db_path)
    gk = gatekeepers or GatekeeperRegistry()
    key_material: Dict[str, EncryptionKeyMaterial] = {}
    instance_versions: Dict[str, Dict[str, str]] = {}

    if handlers is None:
        handlers = build_handlers(cfg, pv, gk, key_material, instance_versions)

    reconciler = ReconcilerLoop(
        inventory=inv,
        handlers=handlers,
        history=hs,
        config=cfg.reconciler,
    )

    # Store components on app state for access in endpoints
    app.state.config = cfg
    app.state.provider = pv
    app.state.inventory = inv
    app.state.history_store = hs
    app.state.gatekeepers = gk
    app.state.key_material = key_material
    app.state.instance_versions = instance_versions
    app.state.reconciler = reconciler

    # === CLUSTERS ===

    @app.post("/clusters", response_model=dict)
    def register_cluster(req: ClusterCreateRequest):
        """Register a cluster or replace its spec."""
        cluster = inv.upsert(ClusterSpec(
            cluster_id=req.cluster_id,
            operator_version=req.operator_version,
            location=req.location,
            master_count=req.master_count,
            worker_count=req.worker_count,
            dns_zone_name_servers=req.dns_zone_name_servers,
        ))
        # Key material is generated once per cluster and kept across re-registration
        if cluster.cluster_id not in key_material:
            key_material[cluster.cluster_id] = new_key_material()
        return {"id": cluster.cluster_id, "cluster": cluster.model_dump(mode="json")}

    @app.get("/clusters")
    def list_clusters():
        return [c.model_dump(mode="json") for c in inv.list()]

    @app.get("/clusters/{cluster_id}")
    def get_cluster(cluster_id: str):
        cluster = inv.get(cluster_id)
        if not cluster:
            raise HTTPException(404, "Cluster not found")
        return cluster.model_dump(mode="json")

    @app.delete("/clusters/{cluster_id}")
    def delete_cluster(cluster_id: str):
        """Request teardown. Handlers switch to their delete path on the next pass."""
        cluster = inv.mark_deleted(cluster_id)
        if not cluster:
            raise HTTPException(404, "Cluster not found")
        return {"status": "deleting", "cluster_id": cluster_id}

    # === RECONCILER ===

    @app.get("/reconciler/status")
    def reconciler_status():
        """Current reconciler loop status."""
        last_cycle_at = reconciler.last_cycle_at
        return {
            "status": reconciler.status,
            "config": reconciler.config.model_dump(),
            "handlers": [h.name for h in reconciler.handlers],
            "registered_clusters": len(inv),
            "cycles": reconciler.cycles,
            "last_cycle_id": reconciler.last_cycle_id,
            "last_cycle_at": last_cycle_at.isoformat() if last_cycle_at else None,
        }

    @app.post("/reconciler/trigger")
    def trigger_reconciliation():
        """Force a reconciliation cycle."""
        results = reconciler.reconcile_once()
        return ReconcilerTriggerResponse(
            cycle_id=reconciler.last_cycle_id,
            results=[r.to_dict() for r in results],
            pass_count=len(results),
        )

    @app.get("/reconciler/config")
    def get_reconciler_config():
        return reconciler.config.model_dump()

    @app.put("/reconciler/config")
    def update_reconciler_config(config: ReconcilerConfig):
        reconciler.config = config
        return config.model_dump()

    # === GATEKEEPERS ===

    @app.get("/gatekeepers")
    def get_gatekeepers():
        """Admission gates per call site and when they reopen."""
        return gk.snapshot()

    # === HISTORY ===

    @app.get("/history")
    def get_history(limit: int = 50):
        """Recent pass records."""
        return [r.model_dump(mode="json") for r in hs.query_recent(limit=limit)]

    @app.get("/history/verify")
    def verify_history():
        """Verify chain integrity."""
        return {
            "integrity_valid": hs.verify_chain_integrity(),
            "total_records": hs.count(),
        }

    @app.get("/history/by-cluster/{cluster_id}")
    def get_history_by_cluster(cluster_id: str):
        return [r.model_dump(mode="json") for r in hs.query_by_cluster(cluster_id)]

    @app.get("/history/{cycle_id}")
    def get_history_by_cycle(cycle_id: str):
        """All passes of one reconcile cycle."""
        records = hs.get_by_cycle(cycle_id)
        if not records:
            raise HTTPException(404, "Cycle not found")
        return [r.model_dump(mode="json") for r in records]

    return app


# Default application instance
app = create_app()
