#!/usr/bin/env python3
"""
Operations CLI for the organism memory core.

Inspect the configured vector store, verify the persisted index/map pair, and
compress memory snapshots from JSON files.
"""

import argparse
import json
import sys

from organism_memory.core import config
from organism_memory.core.compression import compress
from organism_memory.core.errors import CompressionError, PersistenceCorruptError
from organism_memory.vector.persistence import PersistenceManager
from organism_memory.vector.store import get_vector_store


def stats_command(args):
    """Print stats for the configured vector store."""
    stats = get_vector_store().get_stats()
    print("Vector Store Stats:")
    for key, value in stats.items():
        print(f"  {key}: {value}")
    return 0


def verify_command(args):
    """Load the persisted pair strictly and report whether it is usable."""
    manager = PersistenceManager(config.get_index_path(), config.get_map_path())
    if not manager.exists():
        print(f"MISSING: no index/map pair at {manager.index_path}")
        return 0

    try:
        index, id_map = manager.load(
            config.get_vector_dimensions(),
            config.get_max_elements(),
            **config.get_hnsw_params(),
        )
    except PersistenceCorruptError as e:
        print(f"CORRUPT: {e}")
        return 1

    print(f"OK: {index.count} vectors, next label {id_map.next_label}, capacity {index.capacity}")
    return 0


def compress_command(args):
    """Compress a JSON memory file to a byte budget."""
    try:
        with open(args.file, "r", encoding="utf-8") as f:
            memory = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        print(f"ERROR: Failed to read {args.file}: {e}")
        return 1

    try:
        result = compress(memory, strategy=args.strategy, max_memory_size=args.max_size)
    except CompressionError as e:
        print(f"ERROR: {e}")
        return 1

    print(result.summary, file=sys.stderr)
    output = json.dumps(result.memory, indent=2, ensure_ascii=False)
    if args.output:
        with open(args.output, "w", encoding="utf-8") as f:
            f.write(output)
        print(f"✓ Wrote compressed memory to {args.output}", file=sys.stderr)
    else:
        print(output)
    return 0


def build_parser():
    parser = argparse.ArgumentParser(
        description="Organism memory operations utilities",
        prog="python scripts/vector_ops.py"
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    stats_parser = subparsers.add_parser("stats", help="Show vector store stats")
    stats_parser.set_defaults(func=stats_command)

    verify_parser = subparsers.add_parser("verify", help="Verify the persisted index and map")
    verify_parser.set_defaults(func=verify_command)

    compress_parser = subparsers.add_parser("compress", help="Compress a JSON memory file")
    compress_parser.add_argument("file", help="Path to a JSON memory snapshot")
    compress_parser.add_argument("--strategy", choices=config.VALID_STRATEGIES, default=None,
                                 help="Eviction strategy (default: COMPRESSION_STRATEGY)")
    compress_parser.add_argument("--max-size", type=int, default=None,
                                 help="Byte budget (default: COMPRESSION_MAX_MEMORY_SIZE)")
    compress_parser.add_argument("--output", help="Write compressed JSON here instead of stdout")
    compress_parser.set_defaults(func=compress_command)

    return parser


def main(argv=None):
    """Main CLI entry point for operations utilities."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        sys.exit(1)

    sys.exit(args.func(args))


if __name__ == "__main__":
    main()
