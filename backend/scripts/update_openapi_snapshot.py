#!/usr/bin/env python3
"""
Update OpenAPI Schema Snapshot

Updates the review API schema snapshot used by the contract tests.
Run this after making intentional API changes.

Usage (from the backend directory):
    python scripts/update_openapi_snapshot.py
"""

import json
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))


def main():
    """Update the OpenAPI schema snapshot."""
    from fastapi.testclient import TestClient

    from app.main import app

    snapshot_path = Path(__file__).parent.parent / "tests" / "snapshots" / "openapi.json"

    client = TestClient(app)
    response = client.get("/openapi.json")

    if response.status_code != 200:
        print(f"Error: Failed to fetch OpenAPI schema (status {response.status_code})")
        sys.exit(1)

    schema = response.json()
    snapshot_path.parent.mkdir(parents=True, exist_ok=True)

    with open(snapshot_path, "w") as f:
        json.dump(schema, f, indent=2, sort_keys=True)
        f.write("\n")

    paths_count = len(schema.get("paths", {}))
    schemas_count = len(schema.get("components", {}).get("schemas", {}))

    print(f"Updated OpenAPI snapshot: {snapshot_path}")
    print(f"  Paths: {paths_count}")
    print(f"  Schemas: {schemas_count}")


if __name__ == "__main__":
    main()
