"""
Turn a queryCollection response into flat records.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List

from list_merge import KEY_FIELD
from notion_richtext import flatten_rich_text

log = logging.getLogger("dao-list-sync")

KEY_PREFIX = "@"

FIELD_RENAMES: Dict[str, str] = {
    "Summary/Reason for being on this list": "Summary",
}


def rename_field(name: str) -> str:
    return FIELD_RENAMES.get(name, name)


def _value(obj: Any) -> Dict[str, Any]:
    # recordMap entries are {"role": ..., "value": {...}}
    if not isinstance(obj, dict):
        return {}
    v = obj.get("value")
    return v if isinstance(v, dict) else {}


def field_names(collections: Dict[str, Any]) -> Dict[str, str]:
    """Schema key -> display name across all collections (last one wins on collisions)."""
    out: Dict[str, str] = {}
    for coll in (collections or {}).values():
        schema = _value(coll).get("schema") or {}
        for key, field in schema.items():
            name = field.get("name") if isinstance(field, dict) else None
            out[key] = rename_field(name or "")
    return out


def record_from_block(block: Dict[str, Any], names: Dict[str, str]) -> Dict[str, str]:
    record: Dict[str, str] = {}
    for key, spans in (block.get("properties") or {}).items():
        if not isinstance(spans, list):
            spans = [spans]
        record[names.get(key, key)] = flatten_rich_text(spans)
    return record


def records_from_response(resp: Dict[str, Any], *, alive_only: bool = False) -> List[Dict[str, str]]:
    """
    Pages of the queried collection(s), flattened. Only records whose
    Twitter field starts with '@' are returned.
    """
    record_map = resp.get("recordMap") or {}
    collections = record_map.get("collection") or {}
    blocks = record_map.get("block") or {}

    collection_ids = set(collections)
    names = field_names(collections)

    out: List[Dict[str, str]] = []
    skipped = 0
    for block_id, raw in blocks.items():
        block = _value(raw)
        if block.get("type") != "page" or block.get("parent_id") not in collection_ids:
            continue
        if alive_only and not block.get("alive", False):
            continue
        record = record_from_block(block, names)
        if not record.get(KEY_FIELD, "").startswith(KEY_PREFIX):
            skipped += 1
            log.debug("Dropping page %s: %s=%r", block_id, KEY_FIELD, record.get(KEY_FIELD))
            continue
        out.append(record)

    log.info("Extracted %d record(s) from %d block(s); %d without a %s handle",
             len(out), len(blocks), skipped, KEY_FIELD)
    return out
