"""Output reporting helpers."""
from __future__ import annotations

import csv
import json
import os
import tempfile
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, Iterator, List, Optional, Sequence, TextIO, Tuple

from .models import RankedEntry, RankingContext, ShopRecord, shop_to_dict
from .ranking import resolve_distance_km

RESULT_FIELDS = [
    "rank",
    "key",
    "primary_id",
    "external_id",
    "name",
    "category",
    "city",
    "lat",
    "lng",
    "rating",
    "review_count",
    "is_paid",
    "is_featured",
    "distance_km",
    "distance_text",
    "eta_text",
    "source",
]

CATEGORY_FIELDS = ["category"] + RESULT_FIELDS


def ensure_dir(path: str) -> None:
    os.makedirs(path, exist_ok=True)


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).replace(microsecond=0).isoformat()


def _fsync_dir(path: str) -> None:
    try:
        dir_fd = os.open(path, os.O_DIRECTORY)
    except OSError:
        return
    try:
        os.fsync(dir_fd)
    except OSError:
        pass
    finally:
        os.close(dir_fd)


@contextmanager
def atomic_writer(
    path: str,
    mode: str = "w",
    encoding: str = "utf-8",
    newline: Optional[str] = None,
) -> Iterator[TextIO]:
    dir_path = os.path.dirname(path) or "."
    base = os.path.basename(path)
    fd, tmp_path = tempfile.mkstemp(prefix=f".{base}.", suffix=".tmp", dir=dir_path)
    try:
        with os.fdopen(fd, mode, encoding=encoding, newline=newline) as f:
            yield f
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp_path, path)
        _fsync_dir(dir_path)
    except Exception:
        try:
            os.unlink(tmp_path)
        except OSError:
            pass
        raise


def atomic_write_text(path: str, text: str) -> None:
    with atomic_writer(path, mode="w", encoding="utf-8") as f:
        f.write(text)


def build_result_rows(entries: Iterable[RankedEntry]) -> List[Dict[str, Any]]:
    rows = []
    for position, entry in enumerate(entries, start=1):
        row = shop_to_dict(entry.shop, entry.distance_km)
        row["rank"] = position
        rows.append(row)
    return rows


def build_category_rows(
    samples: Sequence[Tuple[str, ShopRecord]],
    ctx: Optional[RankingContext] = None,
) -> List[Dict[str, Any]]:
    ctx = ctx or RankingContext()
    rows = []
    for position, (category, shop) in enumerate(samples, start=1):
        row = shop_to_dict(shop, resolve_distance_km(shop, ctx))
        row["rank"] = position
        row["category"] = category
        rows.append(row)
    return rows


def _write_csv(path: str, fieldnames: List[str], rows: Iterable[Dict[str, Any]]) -> None:
    with atomic_writer(path, mode="w", encoding="utf-8", newline="") as f:
        writer = csv.DictWriter(f, fieldnames=fieldnames, extrasaction="ignore")
        writer.writeheader()
        for row in rows:
            writer.writerow(row)


def write_results_csv(path: str, rows: Iterable[Dict[str, Any]]) -> None:
    _write_csv(path, RESULT_FIELDS, rows)


def write_category_csv(path: str, rows: Iterable[Dict[str, Any]]) -> None:
    _write_csv(path, CATEGORY_FIELDS, rows)


def write_results_json(path: str, rows: Iterable[Dict[str, Any]]) -> None:
    with atomic_writer(path, mode="w", encoding="utf-8") as f:
        json.dump(list(rows), f, ensure_ascii=False, indent=2)


def write_json_object(path: str, payload: Dict[str, Any]) -> None:
    with atomic_writer(path, mode="w", encoding="utf-8") as f:
        json.dump(payload, f, ensure_ascii=False, indent=2)


def write_summary(path: str, summary_lines: List[str]) -> None:
    atomic_write_text(path, "\n".join(summary_lines))


def render_summary(summary: Dict[str, Any]) -> List[str]:
    lines = [
        f"Generated: {summary.get('generated_at') or utc_now_iso()}",
        f"Mode: {summary.get('mode')}",
        f"Location: {summary.get('location') or 'unavailable'}"
        + (f" ({summary['location_status']})" if summary.get("location_status") else ""),
        f"Category filter: {summary.get('category') or 'all'}",
        f"City filter: {summary.get('city') or 'none'}",
        f"Search: {summary.get('search') or '-'}",
        f"Pages loaded: {summary.get('pages', 0)}",
        f"Shops returned: {summary.get('results', 0)}",
        f"Shops with distance: {summary.get('with_distance', 0)}",
        f"More available: {summary.get('has_more', False)}",
    ]
    cache_stats = summary.get("cache")
    if cache_stats:
        lines.append(
            "Cache: size={size} hits={hits} misses={misses} hit_rate={hit_rate}%".format(**cache_stats)
        )
    top = summary.get("top") or []
    if top:
        lines.append("")
        lines.append("Top results:")
        for row in top:
            distance = row.get("distance_text") or "n/a"
            lines.append(
                f"  {row.get('rank')}. {row.get('name')} [{row.get('category')}] {distance}"
                + (" paid" if row.get("is_paid") else "")
                + (" featured" if row.get("is_featured") else "")
            )
    return lines
