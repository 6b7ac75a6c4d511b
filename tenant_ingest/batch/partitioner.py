"""
Partitioning of a batch into per-tenant groups.
"""

from typing import Iterable

from tenant_ingest.core.models import InputRecord, TenantGroup


def partition_by_tenant(records: Iterable[InputRecord]) -> dict[str, TenantGroup]:
    """
    Group records by tenant key.

    Tenants appear in the order their key is first seen, and records keep
    their batch order inside each group. Every record lands in exactly one
    group.

    Args:
        records: Records in batch order

    Returns:
        Ordered mapping of tenant key to TenantGroup
    """
    groups: dict[str, TenantGroup] = {}
    for record in records:
        group = groups.get(record.tenant_key)
        if group is None:
            group = groups[record.tenant_key] = TenantGroup(tenant_key=record.tenant_key)
        group.records.append(record)
    return groups
