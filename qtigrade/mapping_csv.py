"""
Legacy mapping CSV: which result identifier belongs to which item.

  resultItemIdentifier,itemIdentifier
  Q1,item-1
  "Q,2",item-2

Older upload flows shipped one of these next to the result files. It is
still accepted and consulted by qtigrade.remap as an extra source.
"""

from __future__ import annotations
import csv
import io
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict

from qtigrade.common import InvalidMapping

HEADER = ("resultItemIdentifier", "itemIdentifier")


@dataclass
class MappingTable:
    result_to_item: Dict[str, str] = field(default_factory=dict)
    item_to_result: Dict[str, str] = field(default_factory=dict)

    def __len__(self) -> int:
        return len(self.result_to_item)


def _norm_header(field_name: str) -> str:
    return "".join(field_name.split())


def parse_mapping_csv(text: str) -> MappingTable:
    text = text.lstrip("\ufeff")
    rows = [row for row in csv.reader(io.StringIO(text)) if any(cell.strip() for cell in row)]
    if not rows:
        raise InvalidMapping("mapping CSV is empty")

    header = tuple(_norm_header(h) for h in rows[0][:2])
    if header != HEADER:
        raise InvalidMapping(f"mapping CSV header must be {','.join(HEADER)}, found {','.join(rows[0])}")

    table = MappingTable()
    for row in rows[1:]:
        result_id = (row[0] if len(row) > 0 else "").strip()
        item_id = (row[1] if len(row) > 1 else "").strip()
        if not result_id or not item_id:
            continue
        table.result_to_item[result_id] = item_id
        table.item_to_result[item_id] = result_id
    return table


def load_mapping_csv(path: Path) -> MappingTable:
    return parse_mapping_csv(path.read_text(encoding="utf-8-sig"))
