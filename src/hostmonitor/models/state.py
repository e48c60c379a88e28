"""
VM state tracking models.
"""

from dataclasses import dataclass


@dataclass(frozen=True)
class VmInfo:
    """
    One entry of a live snapshot reported by the hypervisor probe.

    Snapshots are mappings of record id (e.g. the domain UUID) to VmInfo.
    """

    # Identifier reported to the collector in the ID field.
    id: str
    # Deployment name reported in the DEPLOY_ID field.
    name: str
    state: str


@dataclass
class VmStateRecord:
    """
    Last known state of a VM as persisted in the `states` table.
    """

    id: str
    timestamp: int
    missing: int
    state: str
    hypervisor: str
    vm_id: str = ""
    name: str = ""
