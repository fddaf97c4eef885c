from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Tuple

from redis.exceptions import RedisError
from rich.console import Console
from rich.table import Table

from routista.cache.redis_client import flush_routes, get_redis
from routista.config import settings
from routista.core.engine import RoutePipeline
from routista.core.models import TRANSPORT_MODES
from routista.core.shape import extract_shape
from routista.errors import RoutistaError
from routista.imaging import load_image


def _parse_center(text: str) -> Tuple[float, float]:
    try:
        lat, lng = (float(v) for v in text.split(","))
    except ValueError:
        raise argparse.ArgumentTypeError(f"Expected LAT,LNG, got '{text}'")
    return lat, lng


def _save_json(path: Path, obj) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(obj, indent=2), encoding="utf-8")


def main() -> None:
    ap = argparse.ArgumentParser(description="Turn a shape image into a routable path")
    ap.add_argument("--image", required=True, help="Path to the shape image")
    ap.add_argument("--center", required=True, type=_parse_center, help="Area centre as LAT,LNG")
    ap.add_argument("--radius", type=float, default=1500.0, help="Area radius in metres")
    ap.add_argument("--mode", default="foot-walking", choices=TRANSPORT_MODES)
    ap.add_argument("--points", type=int, default=settings.default_num_points, help="Boundary samples")
    ap.add_argument("--out", help="Write the route as GeoJSON to this path")
    ap.add_argument("--debug", action="store_true")
    args = ap.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.debug else logging.INFO,
        format="%(asctime)s [routista] %(levelname)s %(message)s",
    )
    console = Console()

    try:
        raster = load_image(args.image, settings.max_image_dimension)
        shape = extract_shape(raster, settings, num_points=args.points)
        if shape.is_likely_noise:
            console.print("[yellow]Warning: image looks noisy, the route may not resemble a shape[/yellow]")

        pipeline = RoutePipeline.from_settings(settings)
        result = pipeline.run(shape.points, args.center, args.radius, args.mode)
    except RoutistaError as e:
        console.print(f"[red]Error:[/red] {e}")
        sys.exit(1)

    route = result.route
    table = Table(title=f"Routista: {Path(args.image).name}")
    table.add_column("Field")
    table.add_column("Value")
    table.add_row("Mode", args.mode)
    table.add_row("Components", str(shape.component_count))
    table.add_row("Threshold", f"{shape.threshold}{' (inverted)' if shape.is_inverted else ''}")
    table.add_row("Waypoints", str(result.waypoint_count))
    table.add_row("Chunks", str(route.chunk_count))
    table.add_row("Crossings fixed", str(route.crossings_corrected))
    table.add_row("Distance km", f"{route.distance_m / 1000:.2f}")
    table.add_row("Duration min", f"{route.duration_s / 60:.0f}")
    table.add_row("Cache", route.cache_status)
    table.add_row("Source", route.source)
    table.add_row("Accuracy", f"{result.accuracy:.1f}")
    console.print(table)

    if args.out:
        out = Path(args.out)
        _save_json(out, route.to_geojson())
        console.print(f"Saved: {out.resolve()}")


def flush_cache_main() -> None:
    ap = argparse.ArgumentParser(description="Delete every cached route from Redis")
    ap.add_argument("--debug", action="store_true")
    args = ap.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.debug else logging.INFO,
        format="%(asctime)s [routista] %(levelname)s %(message)s",
    )
    console = Console()

    client = get_redis(settings)
    if client is None:
        console.print("[red]Error:[/red] Redis is not configured or unreachable (set ROUTISTA_REDIS_URL)")
        sys.exit(1)

    try:
        deleted = flush_routes(client, batch_size=settings.cache_scan_count)
    except RedisError as e:
        console.print(f"[red]Failed to flush cache:[/red] {e}")
        sys.exit(1)

    if deleted == 0:
        console.print("No route cache keys found.")
    else:
        console.print(f"Deleted {deleted} route cache key(s).")


if __name__ == "__main__":
    main()
