"""
soulgraph command line interface

Usage:
    soulgraph [--store DIR] [--verbose] <command> [args]

Commands:
    register     Fingerprint text (or a file) and store it as an entity
    similarity   Score two stored entities against each other
    clusters     Group stored entities by greedy threshold clustering
    dissonance   List dissimilar pairs, most dissonant first
    stats        Registry counts by kind, occurrences and top patterns

Entities live in a JSON directory store (one file per entity); the location
defaults to SOULGRAPH_STORE_DIR or ./entities. Results are printed as JSON.
"""
import argparse
import json
import logging
import sys
from typing import List, Optional

from .config import SoulGraphConfig
from .engine import RelationshipEngine
from .errors import SoulGraphError, ValidationError
from .registry import EntityRegistry
from .stores import JsonDirectoryStore

logger = logging.getLogger(__name__)


def _emit(payload) -> None:
    print(json.dumps(payload, indent=2, default=str))


def _build_engine(args: argparse.Namespace) -> RelationshipEngine:
    config = SoulGraphConfig.from_env()
    store = JsonDirectoryStore(args.store or config.store_dir)
    registry = EntityRegistry(store=store, config=config)
    registry.load()
    return RelationshipEngine(registry=registry, config=config)


def cmd_register(args: argparse.Namespace) -> int:
    if args.file:
        try:
            with open(args.file, "r", encoding="utf-8") as f:
                text = f.read()
        except OSError as e:
            raise ValidationError(f"cannot read {args.file}: {e}") from e
    elif args.text is not None:
        text = args.text
    else:
        raise ValidationError("either TEXT or --file is required")

    metadata = {"kind": args.kind}
    if args.name:
        metadata["name"] = args.name
    if args.description:
        metadata["description"] = args.description
    if args.tag:
        metadata["tags"] = args.tag

    engine = _build_engine(args)
    entity = engine.registry.register(text, metadata)
    _emit({
        "id": entity.id,
        "name": entity.name,
        "kind": entity.kind.value,
        "summary": entity.summary,
        "pattern": entity.pattern,
        "occurrences": entity.occurrences,
    })
    return 0


def cmd_similarity(args: argparse.Namespace) -> int:
    engine = _build_engine(args)
    score = engine.similarity(args.a, args.b)
    _emit({"a": args.a, "b": args.b, "score": score, "classification": engine.classify(score).value})
    return 0


def cmd_clusters(args: argparse.Namespace) -> int:
    engine = _build_engine(args)
    clusters = engine.find_clusters(min_score=args.min_score)
    _emit([[e.id for e in cluster] for cluster in clusters])
    return 0


def cmd_dissonance(args: argparse.Namespace) -> int:
    engine = _build_engine(args)
    pairs = engine.detect_dissonance()
    if args.limit:
        pairs = pairs[:args.limit]
    _emit([p.model_dump() for p in pairs])
    return 0


def cmd_stats(args: argparse.Namespace) -> int:
    engine = _build_engine(args)
    _emit(engine.registry.stats().model_dump())
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="soulgraph",
        description="Content-addressed entity registry and relationship engine",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("--store", default=None, help="Entity directory (default: SOULGRAPH_STORE_DIR or ./entities)")
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging")

    subparsers = parser.add_subparsers(dest="command", help="Command to run")

    register_parser = subparsers.add_parser("register", help="Register text as an entity")
    register_parser.add_argument("text", nargs="?", default=None, help="Text to register")
    register_parser.add_argument("--file", "-f", default=None, help="Read the text from a file instead")
    register_parser.add_argument("--name", "-n", default=None)
    register_parser.add_argument("--kind", "-k", default="unit", choices=["unit", "composite", "cluster", "concept"])
    register_parser.add_argument("--description", "-d", default=None)
    register_parser.add_argument("--tag", "-t", action="append", default=None, help="May be given more than once")

    similarity_parser = subparsers.add_parser("similarity", help="Score two entities")
    similarity_parser.add_argument("a", help="First entity id")
    similarity_parser.add_argument("b", help="Second entity id")

    clusters_parser = subparsers.add_parser("clusters", help="Cluster stored entities")
    clusters_parser.add_argument("--min-score", type=float, default=None, help="Join threshold (default: harmonic threshold)")

    dissonance_parser = subparsers.add_parser("dissonance", help="List dissimilar pairs")
    dissonance_parser.add_argument("--limit", type=int, default=0, help="Show at most this many pairs")

    subparsers.add_parser("stats", help="Show registry statistics")
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s [%(name)s] %(levelname)s: %(message)s",
    )

    if args.command is None:
        parser.print_help()
        return 0

    handlers = {
        "register": cmd_register,
        "similarity": cmd_similarity,
        "clusters": cmd_clusters,
        "dissonance": cmd_dissonance,
        "stats": cmd_stats,
    }
    try:
        return handlers[args.command](args)
    except SoulGraphError as e:
        logger.debug("Command %s failed", args.command, exc_info=True)
        print(f"error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
