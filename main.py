#!/usr/bin/env python3
# main.py — build one fleet report PDF from a JSON records file
from __future__ import annotations

import argparse
import json
import sys
from datetime import datetime
from pathlib import Path
from typing import Dict, List, Optional

from fleet_reports import KINDS, build_report, filter_records
from pdf_composer import ComposerError, write_pdf
from report_builder import build_report_pdf, compose_report
from report_config import configure_logging, load_config


# ---------- Small helpers ----------
def parse_filters(pairs: Optional[List[str]]) -> Dict[str, str]:
    out: Dict[str, str] = {}
    for pair in pairs or []:
        key, sep, value = pair.partition("=")
        if not sep or not key.strip():
            raise argparse.ArgumentTypeError(f"--filter expects key=value, got {pair!r}")
        out[key.strip()] = value.strip()
    return out


def read_records(path: Path, kind: str) -> list:
    data = json.loads(path.read_text(encoding="utf-8"))
    items = data.get(kind, data.get("records")) if isinstance(data, dict) else data
    if not isinstance(items, list):
        raise ValueError(f"{path}: expected a list of records")
    return items


# ---------- CLI ----------
def main(argv: Optional[List[str]] = None) -> int:
    ap = argparse.ArgumentParser(description="Generate a transport-unit PDF report from a JSON records file.")
    ap.add_argument("kind", choices=KINDS, help="Report to build")
    ap.add_argument("records", help="JSON file: a list of records or {\"<kind>\": [...]}")
    ap.add_argument("-o", "--out-dir", default=None, help="Output directory (default: config out_dir); '-' streams the PDF to stdout")
    ap.add_argument("--filter", action="append", metavar="KEY=VALUE", help="Filter as in the HTTP query string (repeatable)")
    ap.add_argument("--config", default=None, help="Path to report_config.json")
    args = ap.parse_args(argv)

    try:
        filters = parse_filters(args.filter)
    except argparse.ArgumentTypeError as e:
        ap.error(str(e))

    try:
        cfg = load_config(args.config)
        configure_logging(cfg["log_level"])
        records = filter_records(args.kind, read_records(Path(args.records), args.kind), filters, tz=cfg["timezone"])
        request = build_report(args.kind, records, filters, now=datetime.now(),
                               caps=cfg.get("budgets") or None, tz=cfg["timezone"])
        if args.out_dir == "-":
            doc = compose_report(request, institution=cfg["institution"], system_name=cfg["system_name"])
            write_pdf(doc, sys.stdout.buffer, chunk_size=int(cfg["chunk_size"]), title=request.title)
            return 0
        out_dir = Path(args.out_dir).resolve() if args.out_dir else cfg["out_dir"]
        out_dir.mkdir(parents=True, exist_ok=True)
        path = build_report_pdf(request, out_dir / request.filename,
                                institution=cfg["institution"], system_name=cfg["system_name"])
    except (ComposerError, OSError, ValueError) as e:
        print(f"ERROR: {e}", file=sys.stderr)
        return 1

    print(f"[Download the PDF](file:///{path.resolve().as_posix().lstrip('/')})")
    return 0


if __name__ == "__main__":
    sys.exit(main())
