#!/usr/bin/env python3
"""
Build a CSV score sheet for a grading workspace.

One row per result file (sorted by file name), one column per item in
assessment order, then the total and the maximum reachable score. Item
scores follow qtigrade.scoring: rubric items are scored from their met
criteria, other items from SCORE; an empty cell means "not scored".

Usage:
  python -m qtigrade.build_report workspace.yaml > report.csv

Options:
  --out FILE      Write to a file instead of stdout
"""
from __future__ import annotations

import argparse
import csv
import sys
from pathlib import Path
from typing import IO, List

from qtigrade.common import QtiError, WorkspaceError
from qtigrade.scoring import format_number, item_score, total_max_score, total_score
from qtigrade.workspace import LoadedWorkspace, load_workspace

FIXED_COLUMNS = ["file", "sourcedId", "candidate"]


def report_header(loaded: LoadedWorkspace) -> List[str]:
    return FIXED_COLUMNS + [item.identifier for item in loaded.items] + ["total", "max"]


def build_score_rows(loaded: LoadedWorkspace) -> List[List[str]]:
    max_total = format_number(total_max_score(loaded.items))
    rows: List[List[str]] = []
    for result in sorted(loaded.results, key=lambda r: r.file_name):
        row = [result.file_name, result.sourced_id, result.candidate_name]
        for item in loaded.items:
            score = item_score(item, result.item_results.get(item.identifier))
            row.append("" if score is None else format_number(score))
        row.append(format_number(total_score(loaded.items, result.item_results)))
        row.append(max_total)
        rows.append(row)
    return rows


def write_score_csv(loaded: LoadedWorkspace, out: IO[str]) -> int:
    writer = csv.writer(out, lineterminator="\n")
    writer.writerow(report_header(loaded))
    rows = build_score_rows(loaded)
    writer.writerows(rows)
    return len(rows)


def main(argv: List[str]) -> int:
    ap = argparse.ArgumentParser(argument_default=None)
    ap.add_argument("manifest", help="Path to workspace.yaml")
    ap.add_argument("--out", default=None, help="Output CSV path (default: stdout)")
    args = ap.parse_args(argv)

    try:
        loaded = load_workspace(Path(args.manifest))
    except WorkspaceError as e:
        sys.stderr.write(f"{args.manifest}: FAIL\n")
        for msg in e.errors:
            sys.stderr.write(f"  - {msg}\n")
        return 1
    except QtiError as e:
        sys.stderr.write(f"{args.manifest}: FAIL\n  - {e}\n")
        return 1

    if args.out:
        out_path = Path(args.out)
        out_path.parent.mkdir(parents=True, exist_ok=True)
        with out_path.open("w", encoding="utf-8", newline="") as f:
            n = write_score_csv(loaded, f)
        print(f"Wrote {out_path} ({n} result{'s' if n != 1 else ''})")
    else:
        write_score_csv(loaded, sys.stdout)
    return 0


if __name__ == "__main__":
    sys.exit(main(sys.argv[1:]))
