from __future__ import annotations

import json

from ..app import CatalogMetaApp
from ..fields import FIELDS
from .output import field_line


def run(app: CatalogMetaApp, item_id: str, *, json_output: bool = False) -> None:
    layers = app.get_layers(item_id)
    if json_output:
        print(json.dumps(layers.to_record(), indent=2, sort_keys=True))
        return
    print("custom:")
    if not layers.custom:
        print("  (no locked fields)")
    for name, entry in sorted(layers.custom.items()):
        print("  " + field_line(name, entry.value, "locked"))
    if layers.agent is None:
        print("agent: (not linked)")
    else:
        print(f"agent: {layers.agent.source}:{layers.agent.external_id}")
        for name in FIELDS:
            value = layers.agent.value(name)
            if value is not None:
                print("  " + field_line(name, value))
    if layers.embedded is None:
        print("embedded: (no tags stored)")
    else:
        print(f"embedded: extracted {layers.embedded.extracted_at}")
        for name in FIELDS:
            value = layers.embedded.value(name)
            if value is not None:
                print("  " + field_line(name, value))
