from __future__ import annotations

import json
import re

from navsync.errors import FormatError
from navsync.models import Store

EXPORT_PREFIX = "export const mockData = "
_EXPORT_RE = re.compile(r"export\s+const\s+mockData\s*=\s*(\{[\s\S]*\});?\s*$")


def serialize(store: Store) -> str:
    body = json.dumps(store.as_dict(), ensure_ascii=False, indent=2, sort_keys=True)
    return f"{EXPORT_PREFIX}{body};\n"


def deserialize(text: str) -> Store:
    match = _EXPORT_RE.search(text or "")
    if not match:
        raise FormatError("store text does not contain an exported mockData object")

    try:
        data = json.loads(match.group(1))
    except ValueError as exc:
        raise FormatError(f"store object is not valid JSON: {exc}") from exc

    if not isinstance(data, dict) or not isinstance(data.get("categories", []), list):
        raise FormatError("store object must hold a categories list")
    for category in data.get("categories") or []:
        if not isinstance(category, dict) or not isinstance(
            category.get("sites", []), list
        ):
            raise FormatError("every category must be an object with a sites list")
        order = category.get("order")
        if isinstance(order, bool) or not isinstance(order, (int, type(None))):
            raise FormatError(f"category order must be an integer, got {order!r}")
        if any(not isinstance(site, dict) for site in category.get("sites") or []):
            raise FormatError("every site must be an object")
    return Store.from_dict(data)
