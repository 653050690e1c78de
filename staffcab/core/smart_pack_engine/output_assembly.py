"""
Smart Pack output assembly. Sequence every bucket and sort the route groups
by (date, time, cluster label) for the route sheet.
"""

from typing import Iterable, List

from staffcab.core.smart_pack_engine.route_sequencer import sequence
from staffcab.domain.models import Bucket, Coordinates, RouteGroup


def finalize(buckets: Iterable[Bucket], hub: Coordinates) -> List[RouteGroup]:
    groups: List[RouteGroup] = []
    for bucket in buckets:
        ordered = sequence(bucket.stops, bucket.direction, hub)
        groups.append(
            RouteGroup(
                date=bucket.date,
                time=bucket.time,
                cluster_label=bucket.cluster_label,
                source_zones=tuple(sorted(bucket.source_zones)),
                stop_count=bucket.count,
                ordered_stops=tuple(ordered),
            )
        )
    # ISO dates and zero-padded HH:MM sort correctly as plain strings
    groups.sort(key=lambda g: (g.date, g.time, g.cluster_label))
    return groups
