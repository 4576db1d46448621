"""
Command-line entry point for Mnemo.

Usage:
    mnemo remember <owner> "<text>"
    mnemo recall <owner> "<query>" [--limit N]
    mnemo history <owner> [--limit N] [--oldest-first]
    mnemo forget <owner> <record_id>
    mnemo reindex <owner>
    mnemo chat <owner> "<message>"

SETUP REQUIRED:
1. Copy .env.example to .env and fill in API keys
2. Copy config.yaml.example to config.yaml and pick stores/providers
3. For spaCy entity extraction:
   python -m spacy download en_core_web_sm
"""

import argparse
import asyncio
import logging
import sys
from typing import Optional

from .config import Config, config
from .errors import MnemoError
from .memory import MemoryManager, create_memory_manager

logger = logging.getLogger("mnemo.main")

EXIT_OK = 0
EXIT_ERROR = 1


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="mnemo",
        description="Remember what was said; recall what matters.",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    remember = sub.add_parser("remember", help="Store a new memory")
    remember.add_argument("owner")
    remember.add_argument("text")

    recall = sub.add_parser("recall", help="Find memories related to a query")
    recall.add_argument("owner")
    recall.add_argument("query")
    recall.add_argument("--limit", type=int, default=None)

    history = sub.add_parser("history", help="List memories chronologically")
    history.add_argument("owner")
    history.add_argument("--limit", type=int, default=20)
    history.add_argument("--oldest-first", action="store_true")

    forget = sub.add_parser("forget", help="Delete a memory")
    forget.add_argument("owner")
    forget.add_argument("record_id")

    reindex = sub.add_parser("reindex", help="Index memories whose vector write failed")
    reindex.add_argument("owner")

    chat = sub.add_parser("chat", help="Send a message and get a memory-grounded reply")
    chat.add_argument("owner")
    chat.add_argument("message")

    return parser


def _embedding_api_key(cfg: Config) -> str:
    if cfg.memory.embedding_provider == "openai":
        return cfg.openai.api_key
    if cfg.memory.embedding_provider == "google":
        return cfg.google.api_key
    return ""


def _create_llm(cfg: Config):
    from .llm import create_llm_provider

    return create_llm_provider(
        provider=cfg.app.llm_provider,
        openai_api_key=cfg.openai.api_key,
        openai_model=cfg.openai.model,
        google_api_key=cfg.google.api_key,
        google_model=cfg.google.model,
    )


async def build_memory_manager(cfg: Config, llm=None) -> MemoryManager:
    """Create an initialized MemoryManager from configuration."""
    from .entities import create_entity_extractor

    extractor = create_entity_extractor(
        extractor=cfg.entities.extractor,
        spacy_model=cfg.entities.spacy_model,
        llm=llm,
    )

    return await create_memory_manager(
        record_store_type=cfg.memory.record_store,
        index_type=cfg.memory.index_type,
        embedding_provider=cfg.memory.embedding_provider,
        api_key=_embedding_api_key(cfg),
        embedding_model=cfg.memory.embedding_model,
        embedding_dimensions=cfg.memory.embedding_dimensions,
        sqlite_path=cfg.memory.sqlite_path,
        chroma_path=cfg.memory.chroma_path,
        collection_name=cfg.memory.collection_name,
        postgres_url=cfg.memory.postgres_url,
        entity_extractor=extractor,
        max_limit=cfg.memory.max_limit,
        min_score=cfg.memory.min_score,
        embedding_timeout=cfg.memory.embedding_timeout,
    )


async def run_command(args: argparse.Namespace, cfg: Config = config) -> int:
    """
    Execute one CLI command.

    Returns:
        Process exit code.
    """
    needs_llm = args.command == "chat" or cfg.entities.extractor == "llm"

    errors = cfg.validate(require_llm=needs_llm)
    if errors:
        for error in errors:
            logger.error(f"Configuration error: {error}")
        return EXIT_ERROR

    llm = _create_llm(cfg) if needs_llm else None
    memory: Optional[MemoryManager] = None

    try:
        memory = await build_memory_manager(cfg, llm=llm)

        if args.command == "remember":
            result = await memory.remember(args.owner, args.text)
            print(f"Remembered #{result.record.id}")
            if result.degraded:
                print(f"Warning [{result.warning.code}]: {result.warning}", file=sys.stderr)

        elif args.command == "recall":
            limit = args.limit if args.limit is not None else cfg.memory.default_limit
            results = await memory.recall(args.owner, args.query, limit=limit)
            if not results:
                print("No related memories found.")
            for r in results:
                print(f"[{r.score:.2f}] #{r.record.id} {r.record.created_at:%Y-%m-%d %H:%M} {r.record.raw_text}")

        elif args.command == "history":
            records = await memory.history(
                args.owner, limit=args.limit, newest_first=not args.oldest_first
            )
            for record in records:
                print(f"#{record.id} {record.created_at:%Y-%m-%d %H:%M} {record.raw_text}")

        elif args.command == "forget":
            if await memory.forget(args.owner, args.record_id):
                print(f"Forgot #{args.record_id}")
            else:
                print(f"No memory #{args.record_id} for {args.owner}", file=sys.stderr)
                return EXIT_ERROR

        elif args.command == "reindex":
            report = await memory.reindex_missing(args.owner)
            print(
                f"Scanned {report.scanned}, missing {report.missing}, "
                f"repaired {report.repaired}, failed {report.failed}"
            )
            if report.failed:
                return EXIT_ERROR

        elif args.command == "chat":
            from .chat import CompanionChat

            turn = await CompanionChat(memory, llm, context_limit=cfg.memory.default_limit).send_message(
                args.owner, args.message
            )
            print(turn.reply)
            if turn.warning:
                print(f"Warning [{turn.warning.code}]: {turn.warning}", file=sys.stderr)

        return EXIT_OK

    except MnemoError as e:
        logger.error(f"{args.command} failed [{e.code}]: {e}")
        print(f"Error [{e.code}]: {e}", file=sys.stderr)
        return EXIT_ERROR

    finally:
        if memory:
            await memory.close()


def main(argv: Optional[list[str]] = None):
    """Entry point for the application."""
    args = build_parser().parse_args(argv)
    config.setup_logging()

    try:
        sys.exit(asyncio.run(run_command(args)))
    except KeyboardInterrupt:
        print("\nOperation cancelled by user")
        sys.exit(130)
    except Exception as e:
        print(f"\nFatal error: {e}")
        sys.exit(EXIT_ERROR)


if __name__ == "__main__":
    main()
