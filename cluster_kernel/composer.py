"""
Cluster Kernel — Response Composer

Builds outward JSON-ready payloads from placements and stored schools.
Pure functions: no mutation, no I/O.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from .constants import MAX_DEVICES_PER_CLUSTER, ROLE_MESSAGES
from .domain_types import (
    Cluster,
    ClusteredSchool,
    ClusterPlacement,
    DeviceRecord,
    FlatSchool,
    Placement,
)


def compose_registration(placement: Placement) -> Dict[str, Any]:
    """Payload returned to a device after POST /api/get-hosts."""
    if isinstance(placement, ClusterPlacement):
        hosts = placement.cluster.hosts
        total = placement.school.total_devices
    else:
        hosts = placement.school.hosts
        total = len(placement.school.devices)

    role = placement.role
    response: Dict[str, Any] = {
        "success": True,
        "schoolCode": placement.school_code,
        "deviceId": placement.device_id,
        "position": role.position,
        "totalDevices": total,
        "role": role.role,
        "message": ROLE_MESSAGES[role.role],
        "hostDeviceId": role.host_device_id,
        "host2DeviceId": role.host2_device_id,
        "host3DeviceId": role.host3_device_id,
        "hosts": _host_slots(hosts),
    }

    if isinstance(placement, ClusterPlacement):
        cluster = placement.cluster
        response.update({
            "clusterName": placement.cluster_name,
            "clusterNumber": cluster.cluster_number,
            "isExisting": placement.is_existing,
            "devicesInCluster": cluster.device_count,
            "clusterDevices": cluster.device_ids(),
            "frequency": cluster.frequency,
            "maxDevicesPerCluster": MAX_DEVICES_PER_CLUSTER,
        })
    return response


def compose_flat_summary(school_code: str, school: FlatSchool) -> Dict[str, Any]:
    return {
        "success": True,
        "schoolCode": school_code,
        "totalDevices": len(school.devices),
        "hosts": list(school.hosts),
        "devices": _devices(school.devices),
    }


def compose_clustered_summary(
    school_code: str, school: ClusteredSchool,
) -> Dict[str, Any]:
    clusters: List[Dict[str, Any]] = []
    for name, cluster in school.ordered_clusters():
        clusters.append({
            "clusterName": name,
            "clusterNumber": cluster.cluster_number,
            "deviceCount": cluster.device_count,
            "hosts": list(cluster.hosts),
            "devices": _devices(cluster.devices),
            "frequency": cluster.frequency,
            "isFull": cluster.is_full,
            "createdAt": cluster.created_at,
        })
    return {
        "success": True,
        "schoolCode": school_code,
        "totalDevices": school.total_devices,
        "totalClusters": len(clusters),
        "lastClusterNumber": school.last_cluster_number,
        "clusters": clusters,
    }


def compose_cluster_detail(
    school_code: str, cluster_name: str, cluster: Cluster,
) -> Dict[str, Any]:
    return {
        "success": True,
        "schoolCode": school_code,
        "clusterName": cluster_name,
        "clusterNumber": cluster.cluster_number,
        "deviceCount": cluster.device_count,
        "maxDevices": MAX_DEVICES_PER_CLUSTER,
        "isFull": cluster.is_full,
        "hosts": list(cluster.hosts),
        "devices": _devices(cluster.devices),
        "frequency": cluster.frequency,
        "createdAt": cluster.created_at,
    }


def _host_slots(hosts: List[str]) -> Dict[str, Optional[str]]:
    return {
        "host1": hosts[0] if len(hosts) > 0 else None,
        "host2": hosts[1] if len(hosts) > 1 else None,
        "host3": hosts[2] if len(hosts) > 2 else None,
    }


def _devices(devices: List[DeviceRecord]) -> List[Dict[str, str]]:
    return [
        {"deviceId": d.device_id, "registeredAt": d.registered_at}
        for d in devices
    ]
