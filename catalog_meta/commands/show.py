from __future__ import annotations

import json

from ..app import CatalogMetaApp
from ..fields import FIELDS
from ..resolver import provenance_label
from .output import field_line


def run(app: CatalogMetaApp, item_id: str, *, json_output: bool = False) -> None:
    item = app.get_item(item_id)
    resolved = app.get_resolved(item_id)
    if json_output:
        payload = resolved.to_record()
        payload["item"] = item.to_record()
        print(json.dumps(payload, indent=2, sort_keys=True))
        return
    print(f"{item.id}  ({item.asset_path})")
    if resolved.source:
        print(f"linked to {resolved.source}:{resolved.external_id}")
    else:
        print("not linked")
    for name in FIELDS:
        print(field_line(name, resolved.get(name), provenance_label(resolved, name, tiers=app.tiers)))
