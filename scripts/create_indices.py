#!/usr/bin/env python3
"""
Index Setup Script

Creates the current monthly moments index and the file-contents index with
their mappings. Existing indices are left untouched.

Usage:
    python scripts/create_indices.py [--dry-run] [--write-config]
"""

import sys
import json
import asyncio
import argparse
from pathlib import Path

# Add project root to path
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))


async def _create(config) -> list:
    from memora.common.document_store import DocumentStore

    store = DocumentStore.from_config(config.elasticsearch, dims=config.embedding.dims)
    try:
        return await store.create_indices()
    finally:
        await store.close()


def main():
    parser = argparse.ArgumentParser(description="Create Memora Elasticsearch indices")
    parser.add_argument("--dry-run", action="store_true", help="Print the mappings without creating anything")
    parser.add_argument(
        "--write-config", action="store_true", help="Save the effective configuration to ~/.memora/config.json"
    )
    args = parser.parse_args()

    from dotenv import load_dotenv
    from memora.common.config import load_config, save_config, CONFIG_PATH
    from memora.common.schemas import moment_mapping, file_content_mapping

    load_dotenv()
    config = load_config()
    dims = config.embedding.dims

    print(f"[Indices] Elasticsearch: {config.elasticsearch.host}")
    print(f"[Indices] Moments prefix: {config.elasticsearch.index_prefix}, file index: {config.elasticsearch.file_index}")
    print(f"[Indices] Vector dims: {dims}")

    if args.dry_run:
        print("[Indices] DRY RUN - no changes will be made")
        print(json.dumps({"moments": moment_mapping(dims), "file_contents": file_content_mapping(dims)}, indent=2))
        return

    if args.write_config:
        save_config(config)
        print(f"[Indices] Config written to {CONFIG_PATH}")

    try:
        created = asyncio.run(_create(config))
    except Exception as e:
        print(f"[Indices] ERROR: {e}")
        sys.exit(1)

    if created:
        print(f"[Indices] Created: {', '.join(created)}")
    else:
        print("[Indices] Nothing to do")


if __name__ == "__main__":
    main()
