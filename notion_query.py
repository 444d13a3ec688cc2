"""
Client for Notion's public queryCollection endpoint.

Env:
    NOTION_QUERY_URL            optional, defaults to the ukraine-dao.notion.site endpoint
    NOTION_SPACE_ID             optional, workspace holding the collection
    NOTION_COLLECTION_ID        optional, collection to query
    NOTION_COLLECTION_VIEW_ID   optional, view of that collection
    NOTION_CONNECT_TIMEOUT      seconds, default 15
    NOTION_READ_TIMEOUT         seconds, default 90

No retries: any failure surfaces as QueryError.
"""

from __future__ import annotations

import json
import logging
import os
import pathlib
import time
from dataclasses import dataclass
from typing import Any, Dict, Optional

import requests
from requests import Session
from urllib3.exceptions import ProtocolError

log = logging.getLogger("dao-list-sync")

DEFAULT_QUERY_URL = "https://ukraine-dao.notion.site/api/v3/queryCollection?src=reset"
DEFAULT_SPACE_ID = "3434855b-af4b-426e-80fa-4f5994281327"
DEFAULT_COLLECTION_ID = "4ddfb2b0-d852-4d08-8294-c2c227010358"
DEFAULT_COLLECTION_VIEW_ID = "a35f82d0-6dbf-46d6-9ebb-aaf1fefa57a5"

USER_AGENT = "dao-list-sync/1.0"


@dataclass
class QueryConfig:
    url: str = DEFAULT_QUERY_URL
    space_id: str = DEFAULT_SPACE_ID
    collection_id: str = DEFAULT_COLLECTION_ID
    collection_view_id: str = DEFAULT_COLLECTION_VIEW_ID
    connect_timeout: float = 15.0
    read_timeout: float = 90.0

    @classmethod
    def from_env(cls) -> "QueryConfig":
        return cls(
            url=os.getenv("NOTION_QUERY_URL", DEFAULT_QUERY_URL),
            space_id=os.getenv("NOTION_SPACE_ID", DEFAULT_SPACE_ID),
            collection_id=os.getenv("NOTION_COLLECTION_ID", DEFAULT_COLLECTION_ID),
            collection_view_id=os.getenv("NOTION_COLLECTION_VIEW_ID", DEFAULT_COLLECTION_VIEW_ID),
            connect_timeout=float(os.getenv("NOTION_CONNECT_TIMEOUT", "15")),
            read_timeout=float(os.getenv("NOTION_READ_TIMEOUT", "90")),
        )


# ---------------- Exceptions ----------------

class QueryError(Exception):
    def __init__(self, message: str, status_code: Optional[int] = None, body: Optional[str] = None):
        self.status_code = status_code
        self.body = body
        super().__init__(message)


# ---------------- Payload ----------------

def make_payload(limit: int, cfg: QueryConfig) -> Dict[str, Any]:
    return {
        "collection": {
            "id": cfg.collection_id,
            "spaceId": cfg.space_id,
        },
        "collectionView": {
            "id": cfg.collection_view_id,
            "spaceId": cfg.space_id,
        },
        "loader": {
            "type": "reducer",
            "reducers": {
                "collection_group_results": {
                    "type": "results",
                    "limit": limit,
                },
            },
            "searchQuery": "",
            "userTimeZone": "UTC",
        },
    }


def size_hint(resp: Dict[str, Any]) -> int:
    result = resp.get("result") or {}
    try:
        return int(result.get("sizeHint") or 0)
    except (TypeError, ValueError):
        return 0


# ---------------- Audit ----------------

def roll_timestamped_file(base_path: Optional[pathlib.Path]) -> Optional[pathlib.Path]:
    """
    ./audit/sync.ndjson -> ./audit/sync_YYYYMMDDTHHMMSSZ.ndjson (created empty).
    Returns None if base_path is None.
    """
    if not base_path:
        return None
    base_path = base_path.resolve()
    base_path.parent.mkdir(parents=True, exist_ok=True)
    suffix = base_path.suffix or ".ndjson"
    ts = time.strftime("%Y%m%dT%H%M%SZ", time.gmtime())
    rolled = base_path.with_name(f"{base_path.stem}_{ts}{suffix}")
    rolled.touch()
    log.info("Audit file: %s", rolled)
    return rolled


def append_audit(audit: Optional[pathlib.Path], row: Dict[str, Any]) -> None:
    if not audit:
        return
    with audit.open("a", encoding="utf-8") as f:
        f.write(json.dumps(row, ensure_ascii=False) + "\n")


# ---------------- HTTP ----------------

_session: Optional[Session] = None


def get_session() -> Session:
    global _session
    if _session is None:
        s = requests.Session()
        adapter = requests.adapters.HTTPAdapter(max_retries=0)
        s.mount("https://", adapter)
        s.mount("http://", adapter)
        _session = s
    return _session


def query_collection(
    limit: int,
    cfg: QueryConfig,
    *,
    session: Optional[Session] = None,
    audit: Optional[pathlib.Path] = None,
) -> Dict[str, Any]:
    """
    POST one queryCollection request and return the decoded response.
    Raises QueryError on transport errors, non-200 responses or bad JSON.
    """
    session = session or get_session()
    headers = {
        "Accept": "application/json",
        "Content-Type": "application/json",
        "User-Agent": USER_AGENT,
    }
    audit_row: Dict[str, Any] = {"ts": time.time(), "action": "queryCollection", "url": cfg.url, "limit": limit}

    log.info("POST %s (limit=%d)", cfg.url, limit)
    try:
        r = session.post(
            cfg.url,
            data=json.dumps(make_payload(limit, cfg)),
            headers=headers,
            timeout=(cfg.connect_timeout, cfg.read_timeout),
        )
    except (requests.RequestException, ProtocolError) as e:
        append_audit(audit, {**audit_row, "error": f"{type(e).__name__}: {e}"})
        raise QueryError(f"sending the request: {e}") from e

    if r.status_code != 200:
        body = r.text or ""
        log.error("POST %s -> HTTP %s :: %s", cfg.url, r.status_code, body[:500])
        append_audit(audit, {**audit_row, "status": r.status_code, "response": {"text_snippet": body[:500]}})
        raise QueryError(f"request failed with code {r.status_code}: {body}",
                         status_code=r.status_code, body=body)

    try:
        data = r.json()
    except ValueError as e:
        append_audit(audit, {**audit_row, "status": r.status_code, "error": "decode"})
        raise QueryError(f"decoding response: {e}", status_code=r.status_code) from e
    if not isinstance(data, dict):
        append_audit(audit, {**audit_row, "status": r.status_code, "error": "decode"})
        raise QueryError(f"decoding response: expected a JSON object, got {type(data).__name__}",
                         status_code=r.status_code)

    record_map = data.get("recordMap") or {}
    append_audit(audit, {
        **audit_row,
        "status": r.status_code,
        "response": {
            "sizeHint": size_hint(data),
            "blocks": len(record_map.get("block") or {}),
            "collections": len(record_map.get("collection") or {}),
        },
    })
    return data
