"""
Smart Pack bucket aggregator. Groups stops by (date, time, zone cluster).
In-memory fold, no I/O. Stops without date or time cannot be placed and are
dropped; the caller gets the count.
"""

from typing import Iterable, List, Tuple

from staffcab.domain.models import UNKNOWN_ZONE, Bucket, Stop
from staffcab.domain.zone_clusters import ZoneClusterConfig, cluster_label_for


def aggregate_counted(
    stops: Iterable[Stop],
    direction: str,
    clusters: ZoneClusterConfig,
) -> Tuple[List[Bucket], int]:
    """Returns (buckets, skipped). Bucket order is insertion order, not final order."""
    buckets: dict[tuple[str, str, str], Bucket] = {}
    skipped = 0

    for stop in stops:
        date = (stop.pickup_date_iso or "").strip()
        time = (stop.on_off_duty_time or "").strip()
        if not date or not time:
            skipped += 1
            continue

        original_zone = (stop.zone_name or "").strip() or UNKNOWN_ZONE
        label = cluster_label_for(original_zone, clusters)
        key = (date, time, label)

        bucket = buckets.get(key)
        if bucket is None:
            bucket = Bucket(date=date, time=time, cluster_label=label, direction=direction)
            buckets[key] = bucket

        bucket.source_zones.add(original_zone)
        bucket.stops.append(stop)
        bucket.count += 1

    return list(buckets.values()), skipped


def aggregate(
    stops: Iterable[Stop],
    direction: str,
    clusters: ZoneClusterConfig,
) -> List[Bucket]:
    buckets, _ = aggregate_counted(stops, direction, clusters)
    return buckets
