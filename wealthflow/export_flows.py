"""
wealthflow.export_flows — Write the FlowSet and its views as one JSON document.

Usage:
    python -m wealthflow.export_flows --output flows.json
    python -m wealthflow.export_flows --offline --indent 2
    python -m wealthflow.export_flows --quiet --output flows.json

Exit codes:
    0: Snapshot written (possibly fallback-backed).
    1: Output could not be written.

Output document:
    {"meta": {...}, "flows": [...], "views": {...}}
    Written to stdout when --output is omitted.
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path

from wealthflow.pipeline import load_snapshot

EXIT_OK = 0
EXIT_WRITE_FAILED = 1


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="export_flows",
        description="Fetch indicators, synthesize flows and export flows + aggregate views.",
    )
    parser.add_argument(
        "--offline",
        action="store_true",
        help="Skip the World Bank fetch; every category uses its fallback set.",
    )
    parser.add_argument(
        "--output",
        type=str,
        default=None,
        help="Output file (default: stdout).",
    )
    parser.add_argument(
        "--indent",
        type=int,
        default=None,
        help="JSON indentation (default: compact).",
    )
    parser.add_argument(
        "--quiet",
        action="store_true",
        help="No summary on stderr.",
    )
    return parser


def write_json(filepath: Path, data: object, indent: int | None = None) -> None:
    filepath.parent.mkdir(parents=True, exist_ok=True)
    with open(filepath, "w", encoding="utf-8") as fh:
        json.dump(data, fh, indent=indent, ensure_ascii=False, sort_keys=False)
        fh.write("\n")


def main(argv: list[str] | None = None) -> int:
    """Run the export. Returns exit code."""
    args = _build_parser().parse_args(argv)

    logging.basicConfig(
        level=logging.WARNING if args.quiet else logging.INFO,
        format="%(message)s",
        stream=sys.stderr,
    )

    snapshot = load_snapshot(fetch=not args.offline)
    document = snapshot.to_dict()

    if args.output is None:
        json.dump(document, sys.stdout, indent=args.indent, ensure_ascii=False)
        sys.stdout.write("\n")
    else:
        try:
            write_json(Path(args.output), document, indent=args.indent)
        except OSError as exc:
            print(f"FATAL: cannot write {args.output}: {exc}", file=sys.stderr)
            return EXIT_WRITE_FAILED

    if not args.quiet:
        views = snapshot.views
        print(f"Flows:     {len(snapshot.flows)}", file=sys.stderr)
        print(f"Fallback:  {', '.join(snapshot.fallback_categories) or 'none'}", file=sys.stderr)
        print(f"S->N:      ${views.north_south.south_to_north:,.1f}B", file=sys.stderr)
        print(f"N->S:      ${views.north_south.north_to_south:,.1f}B", file=sys.stderr)
        print(f"Hash:      {snapshot.flow_set_hash}", file=sys.stderr)
    return EXIT_OK


if __name__ == "__main__":
    sys.exit(main())
