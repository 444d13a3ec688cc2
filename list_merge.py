"""
The persisted watch list: {"entries": [{field: value, ...}, ...]}

Entries are keyed by their Twitter handle. Merging overwrites every field of a
known entry except "id" and appends unknown ones at the end.
"""

from __future__ import annotations

import json
import logging
import pathlib
from typing import Any, Dict, Iterable, List, Optional, TextIO

log = logging.getLogger("dao-list-sync")

KEY_FIELD = "Twitter"
ID_FIELD = "id"

DUPLICATE_POLICIES = ("keep", "first", "last", "merge")

Record = Dict[str, str]


class ListFileError(Exception):
    def __init__(self, path: pathlib.Path, reason: str):
        self.path = path
        self.reason = reason
        super().__init__(f"{path}: {reason}")


def merge_entries(into: Record, src: Record) -> None:
    for k, v in src.items():
        if k == ID_FIELD:
            continue
        into[k] = v


class EntryList:
    # Wrapped in an object so top-level metadata can be added later.

    def __init__(self, entries: Optional[List[Record]] = None):
        self.entries: List[Record] = entries if entries is not None else []

    def to_dict(self) -> Dict[str, Any]:
        return {"entries": self.entries}

    def update(self, incoming: Iterable[Record], *, duplicates: str = "keep") -> Dict[str, Any]:
        """
        Merge incoming records into the list in place.

        Duplicates already in the list are handled first according to the
        policy; incoming records then merge into the first entry with their key.
        Returns a summary: {"updated", "added", "duplicates", "dropped"}.
        """
        if duplicates not in DUPLICATE_POLICIES:
            raise ValueError(f"unknown duplicate policy: {duplicates!r}")

        seen = set()
        dupe_idxs: List[int] = []
        for i, e in enumerate(self.entries):
            key = e.get(KEY_FIELD)
            if key in seen:
                dupe_idxs.append(i)
            else:
                seen.add(key)

        dropped = 0
        if dupe_idxs:
            if duplicates == "keep":
                log.warning("%d duplicate %s entr%s left in place (indexes: %s)",
                            len(dupe_idxs), KEY_FIELD, "y" if len(dupe_idxs) == 1 else "ies",
                            ", ".join(str(i) for i in dupe_idxs))
            else:
                dropped = self._resolve_duplicates(dupe_idxs, duplicates)

        existing_by_key: Dict[Optional[str], Record] = {}
        for e in self.entries:
            existing_by_key.setdefault(e.get(KEY_FIELD), e)

        updated = 0
        new_entries: List[Record] = []
        for rec in incoming:
            existing = existing_by_key.get(rec.get(KEY_FIELD))
            if existing is not None:
                merge_entries(existing, rec)
                updated += 1
            else:
                new_entries.append(rec)
        self.entries.extend(new_entries)

        return {
            "updated": updated,
            "added": len(new_entries),
            "duplicates": dupe_idxs,
            "dropped": dropped,
        }

    def _resolve_duplicates(self, dupe_idxs: List[int], policy: str) -> int:
        drop = set(dupe_idxs)
        firsts: Dict[Optional[str], Record] = {}
        for i, e in enumerate(self.entries):
            if i in drop:
                continue
            firsts.setdefault(e.get(KEY_FIELD), e)

        for i in dupe_idxs:
            dupe = self.entries[i]
            first = firsts[dupe.get(KEY_FIELD)]
            if policy == "merge":
                merge_entries(first, dupe)
                if ID_FIELD not in first and ID_FIELD in dupe:
                    first[ID_FIELD] = dupe[ID_FIELD]
            elif policy == "last":
                keep_id = first.get(ID_FIELD, dupe.get(ID_FIELD))
                first.clear()
                first.update(dupe)
                if keep_id is not None:
                    first[ID_FIELD] = keep_id
                else:
                    first.pop(ID_FIELD, None)

        self.entries = [e for i, e in enumerate(self.entries) if i not in drop]
        log.info("Resolved %d duplicate entr%s (policy=%s)",
                 len(drop), "y" if len(drop) == 1 else "ies", policy)
        return len(drop)


# ---------------- File I/O ----------------

def _is_record(obj: Any) -> bool:
    return isinstance(obj, dict) and all(isinstance(k, str) and isinstance(v, str) for k, v in obj.items())


def load_list(path: pathlib.Path) -> EntryList:
    """Read the list file; a missing file is an empty list."""
    try:
        path.stat()
    except FileNotFoundError:
        log.info("List file %s does not exist, starting empty", path)
        return EntryList()
    except (OSError, ValueError) as e:
        raise ListFileError(path, f"failed to stat: {e}") from e

    try:
        with path.open("r", encoding="utf-8") as f:
            data = json.load(f)
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise ListFileError(path, f"failed to unmarshal the content: {e}") from e
    except OSError as e:
        raise ListFileError(path, f"failed to open: {e}") from e

    if not isinstance(data, dict):
        raise ListFileError(path, "expected a JSON object with an 'entries' list")
    entries = data.get("entries")
    if entries is None:
        entries = []
    if not isinstance(entries, list) or not all(_is_record(e) for e in entries):
        raise ListFileError(path, "'entries' must be a list of string-to-string objects")

    log.info("Loaded %d entr%s from %s", len(entries), "y" if len(entries) == 1 else "ies", path)
    return EntryList(entries)


def dump_list(entry_list: EntryList, stream: TextIO) -> None:
    json.dump(entry_list.to_dict(), stream, ensure_ascii=False, indent=2, sort_keys=True)
    stream.write("\n")
