"""CLI entrypoint."""
from __future__ import annotations

import argparse
import logging
import os
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional

from dotenv import load_dotenv as _load_dotenv

from shop_ranker import config
from shop_ranker.cache import CacheGate
from shop_ranker.feed import FeedLoadError, ShopFeed, discover_categories
from shop_ranker.geo import Coordinate
from shop_ranker.location import (
    FixedLocation,
    IpGeolocationClient,
    LocationResult,
    acquire_location,
)
from shop_ranker.models import RankingContext
from shop_ranker.pagination import PaginationCursor
from shop_ranker.reporting import (
    build_category_rows,
    build_result_rows,
    ensure_dir,
    render_summary,
    utc_now_iso,
    write_category_csv,
    write_results_csv,
    write_results_json,
    write_summary,
)
from shop_ranker.shops_client import FileShopPool, ShopPoolProvider, ShopsApiClient


def _repo_root() -> Path:
    return Path(__file__).resolve().parent


def load_env(path: str = ".env", root_dir: Optional[Path] = None) -> None:
    """Optionally load a repo-root .env file without overriding real env vars."""
    root = Path(root_dir) if root_dir else _repo_root()
    env_path = (root / path).resolve()
    if not env_path.exists():
        return
    _load_dotenv(dotenv_path=env_path, override=False)


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Rank shops by proximity and listing priority")
    source = parser.add_mutually_exclusive_group(required=True)
    source.add_argument("--pool", type=str, help="JSON file with shop records")
    source.add_argument("--api", action="store_true", help="Fetch shops from SHOPS_API_BASE_URL")
    parser.add_argument("--lat", type=float, default=None)
    parser.add_argument("--lng", type=float, default=None)
    parser.add_argument("--locate", action="store_true", help="Look up the caller location by IP")
    parser.add_argument("--ip", type=str, default="", help="IP address for --locate (default: this host)")
    parser.add_argument(
        "--locate-timeout",
        type=float,
        default=None,
        help="Seconds to wait for a location before ranking without one",
    )
    parser.add_argument("--category", type=str, default=None)
    parser.add_argument("--city", type=str, default=None)
    parser.add_argument("--search", type=str, default=None)
    parser.add_argument("--mode", choices=["ranked", "categories"], default="ranked")
    parser.add_argument("--max-categories", type=int, default=None)
    parser.add_argument("--pages", type=int, default=1, help="Pages to load (0 = until exhausted)")
    parser.add_argument("--config", type=str, default=None, help="Path to ranking_config.json")
    parser.add_argument("--out", type=str, default=None)
    parser.add_argument("-v", "--verbose", action="store_true")
    return parser.parse_args(argv)


def build_provider(args: argparse.Namespace) -> ShopPoolProvider:
    if args.pool:
        return FileShopPool(args.pool)
    base_url = os.environ.get("SHOPS_API_BASE_URL")
    if not base_url:
        raise ValueError("Missing SHOPS_API_BASE_URL in environment")
    return ShopsApiClient(base_url)


def resolve_location(args: argparse.Namespace) -> Optional[LocationResult]:
    if (args.lat is None) != (args.lng is None):
        raise ValueError("--lat and --lng must be given together")
    if args.lat is not None:
        provider = FixedLocation(Coordinate(args.lat, args.lng))
    elif args.locate:
        url = os.environ.get("GEOLOCATION_API_URL") or config.GEOLOCATION_API_URL
        provider = IpGeolocationClient(ip=args.ip, url_template=url, timeout_seconds=args.locate_timeout)
    else:
        return None
    return acquire_location(provider, args.locate_timeout)


def load_pages(feed: ShopFeed, max_pages: int) -> int:
    loaded = 0
    feed.load_next()
    loaded += 1
    while feed.has_more and (max_pages <= 0 or loaded < max_pages):
        feed.load_next()
        loaded += 1
    return loaded


def main(argv: Optional[List[str]] = None) -> int:
    args = parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(levelname)s %(name)s: %(message)s",
    )
    load_env()

    if args.config:
        if not config.load_ranking_config(args.config):
            print(f"Config file not found: {args.config}", file=sys.stderr)
            return 1
    else:
        config.load_ranking_config()

    out_dir = args.out or config.OUTPUT_DIR

    try:
        provider = build_provider(args)
        location = resolve_location(args)
        coordinate = location.coordinate if location is not None and location.ok else None
        ctx = RankingContext(coordinate=coordinate, category=args.category, locality=args.city)

        feed = ShopFeed(provider, ctx=ctx, search_text=args.search, cache=CacheGate(), cursor=PaginationCursor())
        pages = load_pages(feed, args.pages)

        ensure_dir(out_dir)
        if args.mode == "categories":
            samples = discover_categories(feed.shops, ctx, args.max_categories)
            rows = build_category_rows(samples, ctx)
            write_category_csv(f"{out_dir}/results.csv", rows)
        else:
            rows = build_result_rows(feed.items)
            write_results_csv(f"{out_dir}/results.csv", rows)
        write_results_json(f"{out_dir}/results.json", rows)

        summary: Dict[str, Any] = {
            "generated_at": utc_now_iso(),
            "mode": args.mode,
            "location": f"{coordinate.lat:.5f},{coordinate.lng:.5f}" if coordinate else None,
            "location_status": location.status if location is not None else None,
            "category": ctx.selected_category,
            "city": ctx.selected_locality,
            "search": args.search,
            "pages": pages,
            "results": len(rows),
            "with_distance": sum(1 for r in rows if r.get("distance_km") is not None),
            "has_more": feed.has_more,
            "cache": feed.cache.stats(),
            "top": rows[:10],
        }
        write_summary(f"{out_dir}/summary.txt", render_summary(summary))
    except FeedLoadError as exc:
        print(f"Could not load shops: {exc}", file=sys.stderr)
        return 2
    except Exception as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1

    if not rows:
        print(f"No shops matched. Empty results written to {out_dir}/results.csv")
    else:
        print(f"Done. {len(rows)} shops written to {out_dir}/results.csv and {out_dir}/results.json")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
