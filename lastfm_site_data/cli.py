from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from dataclasses import replace
from pathlib import Path
from typing import Any

from .config import load_settings
from .feeds import FEEDS
from .site_data import DATA_NAMES, SiteData


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="lastfm-site-data",
        description="Fetch (or reuse cached) Last.fm feeds and write them as site data files",
    )
    parser.add_argument(
        "--feed",
        choices=[*FEEDS, "all"],
        default="all",
        help="Feed to build (default: all)",
    )
    parser.add_argument(
        "--output-dir",
        type=Path,
        default=None,
        help="Directory for <feed>.json data files; prints JSON to stdout when omitted",
    )
    parser.add_argument("--env-file", default=".env", help="Optional .env file with LASTFM_* settings")
    parser.add_argument("--cache-dir", type=Path, default=None, help="Override LASTFM_CACHE_DIR")
    parser.add_argument("--verbose", action="store_true", help="Log cache and fetch decisions")
    return parser.parse_args(argv)


def summarize(name: str, result: dict[str, Any]) -> str:
    spec = FEEDS[name]
    parts = [
        f"{name}:",
        f"items={len(result.get(spec.list_field) or [])}",
        f"fresh={str(result['cache']['fresh']).lower()}",
    ]
    warning = result["cache"].get("warning")
    if warning:
        parts.append(f"warning={warning!r}")
    if result.get("error"):
        parts.append(f"error={result['error']!r}")
    return " ".join(parts)


def write_results(results: dict[str, dict[str, Any]], output_dir: Path) -> list[Path]:
    output_dir.mkdir(parents=True, exist_ok=True)
    written: list[Path] = []
    for name, result in results.items():
        out_path = output_dir / f"{DATA_NAMES[name]}.json"
        tmp_path = out_path.with_suffix(".json.tmp")
        with tmp_path.open("w", encoding="utf-8") as handle:
            json.dump(result, handle, ensure_ascii=False, indent=2)
        tmp_path.replace(out_path)
        written.append(out_path)
    return written


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )

    settings = load_settings(env_file=args.env_file)
    if args.cache_dir is not None:
        settings = replace(settings, cache_dir=args.cache_dir)

    names = list(FEEDS) if args.feed == "all" else [args.feed]
    results = asyncio.run(SiteData(settings).all(names))

    if args.output_dir is None:
        print(json.dumps(results if len(names) > 1 else results[names[0]], ensure_ascii=False, indent=2))
        return 0

    for path in write_results(results, args.output_dir):
        print(f"Wrote {path}", file=sys.stderr)
    for name, result in results.items():
        print(summarize(name, result), file=sys.stderr)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
