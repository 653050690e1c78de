"""
Zone clusters: neighbouring Autocab zones that can share one Smart Pack vehicle.

The configuration is validated once when loaded (no alias may belong to two
clusters) and then passed explicitly to the aggregator.
"""

from dataclasses import dataclass
from typing import Iterable, Tuple

from staffcab.domain.errors import ZoneClusterConfigError
from staffcab.domain.models import UNKNOWN_ZONE, ZoneCluster


@dataclass(frozen=True)
class ZoneClusterConfig:
    clusters: Tuple[ZoneCluster, ...] = ()

    def __post_init__(self) -> None:
        owner_by_alias: dict[str, str] = {}
        for cluster in self.clusters:
            if not cluster.label.strip():
                raise ZoneClusterConfigError("Zone cluster label must not be empty")
            for alias in cluster.members:
                key = alias.strip().lower()
                if not key:
                    continue
                owner = owner_by_alias.get(key)
                if owner is not None and owner != cluster.label:
                    raise ZoneClusterConfigError(
                        f"Zone {alias!r} is claimed by clusters {owner!r} and {cluster.label!r}"
                    )
                owner_by_alias[key] = cluster.label

    def label_for(self, zone_name: str | None) -> str:
        return cluster_label_for(zone_name, self)


def cluster_label_for(zone_name: str | None, config: ZoneClusterConfig) -> str:
    """
    Cluster label for a raw zone name. Empty -> "(unknown)". First
    case-insensitive alias match wins; unmatched names are their own cluster.
    """
    name = (zone_name or "").strip()
    if not name:
        return UNKNOWN_ZONE
    lower = name.lower()
    for cluster in config.clusters:
        for alias in cluster.members:
            if lower == alias.strip().lower():
                return cluster.label
    return name


def load_zone_clusters(raw: Iterable[dict]) -> ZoneClusterConfig:
    """Raw [{"label": str, "zones": [str, ...]}] -> validated ZoneClusterConfig."""
    clusters: list[ZoneCluster] = []
    for i, entry in enumerate(raw):
        if not isinstance(entry, dict):
            raise ZoneClusterConfigError(f"Zone cluster #{i} must be an object")
        label = str(entry.get("label", "")).strip()
        zones = entry.get("zones", entry.get("members", []))
        if not isinstance(zones, (list, tuple)):
            raise ZoneClusterConfigError(f"Zone cluster {label!r}: zones must be a list")
        clusters.append(ZoneCluster(label=label, members=tuple(str(z) for z in zones)))
    return ZoneClusterConfig(clusters=tuple(clusters))
