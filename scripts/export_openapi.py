#!/usr/bin/env python3
"""
Write the telemetry API's OpenAPI schema to a JSON file.

Usage: export_openapi.py [output.json]   (default: docs/openapi.json)
"""
import json
import sys
from pathlib import Path

ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(ROOT / "src"))

from main import app  # noqa: E402


def export(output_file: Path) -> dict:
    schema = app.openapi()
    output_file.parent.mkdir(parents=True, exist_ok=True)
    with open(output_file, "w") as f:
        json.dump(schema, f, indent=2)
    return schema


if __name__ == "__main__":
    target = Path(sys.argv[1]) if len(sys.argv) > 1 else ROOT / "docs" / "openapi.json"
    schema = export(target)

    print(f"✓ OpenAPI schema exported to {target}")
    print(f"  Title: {schema.get('info', {}).get('title')}")
    print(f"  Endpoints: {len(schema.get('paths', {}))}")
    for path in sorted(schema.get("paths", {})):
        print(f"    {path}")
