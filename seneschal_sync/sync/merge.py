"""
Last-write-wins reconciliation of a local and a remote snapshot.

Snapshots are either a list of records, an object with an ``items`` list
plus metadata, or a single object carrying its own ``updatedAt``. Records
are identified by ``id`` and ordered by ``updatedAt``.
"""

import math
import re
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, List

from ..exceptions import MergeShapeError

FRACTION_PATTERN = re.compile(r"\.(\d+)")


@dataclass
class MergeResult:
    """Merged snapshot and whether it holds changes the remote lacks."""
    merged: Any
    has_local_changes: bool


def parse_timestamp(value: Any) -> float:
    """
    Convert an ``updatedAt`` value to epoch milliseconds.

    Missing values count as the epoch. Unparseable values return NaN,
    which compares neither newer nor older than anything.
    """
    if value is None or value == "":
        return 0.0
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return float(value)
    if not isinstance(value, str):
        return math.nan

    text = value.strip()
    if text.endswith(("Z", "z")):
        text = text[:-1] + "+00:00"
    # fromisoformat before 3.11 accepts only 3 or 6 fractional digits
    text = FRACTION_PATTERN.sub(lambda m: "." + m.group(1).ljust(6, "0")[:6], text, count=1)
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        return math.nan

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.timestamp() * 1000


def _has_items(snapshot: Any) -> bool:
    return isinstance(snapshot, dict) and isinstance(snapshot.get("items"), list)


def merge_records(local: List[Dict[str, Any]], remote: List[Dict[str, Any]]) -> MergeResult:
    """
    Merge two record lists by id.

    Local records keep their order, remote-only records follow in remote
    order. Ties on ``updatedAt`` keep the local record.
    """
    merged: Dict[Any, Dict[str, Any]] = {}
    has_local_changes = False

    for item in local:
        merged[item.get("id")] = item

    remote_ids = set()
    for remote_item in remote:
        item_id = remote_item.get("id")
        remote_ids.add(item_id)

        local_item = merged.get(item_id)
        if local_item is None:
            merged[item_id] = remote_item
            continue

        local_time = parse_timestamp(local_item.get("updatedAt"))
        remote_time = parse_timestamp(remote_item.get("updatedAt"))

        if remote_time > local_time:
            merged[item_id] = remote_item
        elif local_time > remote_time:
            has_local_changes = True

    # Local-only records must be pushed
    if any(item.get("id") not in remote_ids for item in local):
        has_local_changes = True

    return MergeResult(merged=list(merged.values()), has_local_changes=has_local_changes)


def reconcile(local: Any, remote: Any, strict: bool = False) -> MergeResult:
    """
    Reconcile local and remote snapshots.

    Args:
        local: Local snapshot (None if there is none)
        remote: Remote snapshot (None before the first push)
        strict: Raise MergeShapeError on mismatched shapes instead of
            falling back to a top-level timestamp comparison

    Returns:
        Merge result
    """
    if remote is None:
        return MergeResult(merged=local, has_local_changes=True)

    if local is None:
        return MergeResult(merged=remote, has_local_changes=False)

    if isinstance(local, list) and isinstance(remote, list):
        return merge_records(local, remote)

    if _has_items(local) and _has_items(remote):
        items = merge_records(local["items"], remote["items"])
        merged = {**local, **remote, "items": items.merged}
        return MergeResult(merged=merged, has_local_changes=items.has_local_changes)

    if strict and (
        isinstance(local, list) != isinstance(remote, list)
        or _has_items(local) != _has_items(remote)
        or not isinstance(local, (dict, list))
        or not isinstance(remote, (dict, list))
    ):
        raise MergeShapeError(
            f"Cannot reconcile {type(local).__name__} with {type(remote).__name__}"
        )

    local_time = parse_timestamp(local.get("updatedAt") if isinstance(local, dict) else None)
    remote_time = parse_timestamp(remote.get("updatedAt") if isinstance(remote, dict) else None)

    if remote_time > local_time:
        return MergeResult(merged=remote, has_local_changes=False)

    return MergeResult(merged=local, has_local_changes=local_time > remote_time)
