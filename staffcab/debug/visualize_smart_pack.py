"""
Smart Pack visual debug. Folium only. No FastAPI. Debug-only.

Reads a CSV of stops (date, time, shift_type, lat, lng, zone, formatted),
runs the aggregator and sequencer and writes an HTML map with one coloured
polyline per route group, hospital first or last depending on direction.

    python -m staffcab.debug.visualize_smart_pack stops.csv --type start --out smart_pack.html
"""

import argparse
import csv
import logging
import webbrowser
from pathlib import Path
from typing import List

import folium

from staffcab.application.config import HOSPITAL, load_zone_cluster_config
from staffcab.core.smart_pack_engine.bucket_aggregator import aggregate_counted
from staffcab.core.smart_pack_engine.output_assembly import finalize
from staffcab.domain.booking_rules import to_float
from staffcab.domain.models import INBOUND, RouteGroup, Stop, direction_for_shift

logger = logging.getLogger(__name__)

_COLORS = [
    "red", "blue", "green", "purple", "orange", "darkred", "lightred",
    "beige", "darkblue", "darkgreen", "cadetblue", "darkpurple", "pink",
]


def load_stops_csv(path: str, shift_type: str) -> List[Stop]:
    """Rows of other shift types are ignored. Rows without lat/lng keep coordinates=None."""
    stops: List[Stop] = []
    with open(path, newline="", encoding="utf-8") as f:
        for row in csv.DictReader(f):
            row_shift = (row.get("shift_type") or "").strip().lower()
            if row_shift and row_shift != shift_type:
                continue
            lat = to_float(row.get("lat"))
            lng = to_float(row.get("lng"))
            stops.append(
                Stop(
                    coordinates=(lat, lng) if lat is not None and lng is not None else None,
                    zone_name=(row.get("zone") or "").strip(),
                    pickup_date_iso=(row.get("date") or "").strip(),
                    on_off_duty_time=(row.get("time") or "").strip(),
                    formatted=(row.get("formatted") or "").strip(),
                )
            )
    return stops


def visualize_route_groups(groups: List[RouteGroup], direction: str, hub=HOSPITAL) -> folium.Map:
    """
    Hospital (black marker), stops (numbered circles in driving order),
    one polyline per group through the hospital.
    """
    m = folium.Map(location=hub, zoom_start=12)
    folium.Marker(hub, popup="Derriford Hospital", icon=folium.Icon(color="black", icon="plus")).add_to(m)

    for i, group in enumerate(groups):
        color = _COLORS[i % len(_COLORS)]
        coords = [s.coordinates for s in group.ordered_stops if s.coordinates is not None]
        path = coords + [hub] if direction == INBOUND else [hub] + coords
        if coords:
            label = f"{group.date} {group.time} {group.cluster_label} ({group.stop_count} stops)"
            folium.PolyLine(path, color=color, weight=4, opacity=0.8, popup=label).add_to(m)
        for n, stop in enumerate(group.ordered_stops, start=1):
            if stop.coordinates is None:
                continue
            folium.CircleMarker(
                location=stop.coordinates,
                radius=6,
                color=color,
                fill=True,
                fill_opacity=0.8,
                popup=f"{n}. {stop.formatted or stop.zone_name}",
            ).add_to(m)
    return m


def main(argv=None) -> None:
    parser = argparse.ArgumentParser(description="Draw Smart Pack route groups on a map")
    parser.add_argument("csv_path")
    parser.add_argument("--type", default="start", choices=["start", "finish"])
    parser.add_argument("--clusters", default="", help="zone clusters JSON (default: built-in)")
    parser.add_argument("--out", default="smart_pack.html")
    parser.add_argument("--open", action="store_true", help="open the map in a browser")
    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")
    direction = direction_for_shift(args.type)
    stops = load_stops_csv(args.csv_path, args.type)
    buckets, skipped = aggregate_counted(stops, direction, load_zone_cluster_config(args.clusters))
    groups = finalize(buckets, HOSPITAL)
    logger.info("%d stops -> %d route groups (%d skipped)", len(stops), len(groups), skipped)

    out = Path(args.out).resolve()
    visualize_route_groups(groups, direction).save(str(out))
    logger.info("Map written to %s", out)
    if args.open:
        webbrowser.open(out.as_uri())


if __name__ == "__main__":
    main()
