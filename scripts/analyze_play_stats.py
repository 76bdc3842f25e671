#!/usr/bin/env python3
"""Analyze play statistics from the station's play log.

Prints play counts per category and the most-played files.

Usage:
    ./scripts/analyze_play_stats.py [--top N] [--category CATEGORY]
"""

import argparse
import sys
from collections import Counter
from pathlib import Path

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from radio_station.play_history import PlayEntry, PlayHistory


def summarize(entries: list[PlayEntry], top: int = 10) -> dict:
    """Aggregate plays by category and by file."""
    by_category = Counter(e.category for e in entries)
    by_file = Counter(e.rel_path for e in entries)
    titles = {e.rel_path: e.metadata.title for e in entries}

    return {
        "total": len(entries),
        "by_category": dict(by_category.most_common()),
        "top_files": [
            (rel_path, titles[rel_path], count) for rel_path, count in by_file.most_common(top)
        ],
        "unique_files": len(by_file),
    }


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Analyze station play history")
    parser.add_argument("--top", type=int, default=10)
    parser.add_argument("--category", default=None)
    args = parser.parse_args(argv)

    history = PlayHistory()
    stats = summarize(history.get_history(args.category), top=args.top)

    print(f"Play log: {history.log_path}")
    print(f"Total plays: {stats['total']} ({stats['unique_files']} unique files)")
    print()
    print("Plays by category:")
    for category, count in stats["by_category"].items():
        print(f"  {category:<10} {count:>6}")
    print()
    print(f"Top {args.top} files:")
    for rel_path, title, count in stats["top_files"]:
        print(f"  {count:>5}  {title}  ({rel_path})")
    return 0


if __name__ == "__main__":
    sys.exit(main())
