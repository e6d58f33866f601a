"""
ObsiCard command-line interface.

Generates flashcards from a Markdown note with Groq and syncs them to Anki
through AnkiConnect, queueing cards while Anki is not running.

Usage:
    obsicard generate notes/deep-work.md --mode fixed --tags productivity
    obsicard process-queue
    obsicard queue-status
    obsicard test-connection

Configuration comes from environment variables (see obsicard.settings).
"""

import argparse
import asyncio
import json
import logging
import os
import sys
from pathlib import Path
from typing import Any, List, Optional

from .cards.generator import FlashcardGenerator
from .cards.schema import Card, GenerationMode
from .common.chunker import parse_frontmatter
from .errors import ObsiCardError
from .llm import list_models
from .settings import Settings, parse_tag_list
from .sync.queue import SyncQueueManager

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'

logger = logging.getLogger(__name__)


def _frontmatter_tags(value: Any) -> List[str]:
    if isinstance(value, str):
        return parse_tag_list(value)
    if isinstance(value, list):
        return [str(t).strip() for t in value if str(t).strip()]
    return []


def _merge_tags(*groups: List[str]) -> List[str]:
    merged: List[str] = []
    for tag in (t for group in groups for t in group):
        if tag.lower() not in (m.lower() for m in merged):
            merged.append(tag)
    return merged


def load_note(path: str):
    """
    Read a Markdown note.

    Returns:
        Tuple of (body, source label, front-matter tags)
    """
    note_path = Path(path)
    markdown = note_path.read_text(encoding='utf-8')
    metadata, body = parse_frontmatter(markdown)

    title = metadata.get('title')
    source = str(title).strip() if title else note_path.stem
    return body, source, _frontmatter_tags(metadata.get('tags'))


def write_cards(cards: List[Card], output: str) -> None:
    with open(output, 'w', encoding='utf-8') as f:
        json.dump([card.to_dict() for card in cards], f, indent=2, ensure_ascii=False)
    logger.info(f"Wrote {len(cards)} card(s) to {output}")


# ============================================================================
# Commands
# ============================================================================


async def cmd_generate(args: argparse.Namespace, settings: Settings) -> int:
    body, source, note_tags = load_note(args.note)

    mode = GenerationMode(args.mode)
    tags = parse_tag_list(args.tags) or list(settings.default_tags)
    if mode == GenerationMode.FIXED:
        tags = _merge_tags(tags, note_tags)

    generator = FlashcardGenerator(settings)
    report = await generator.generate_with_report(body, mode=mode, user_tags=tags, source=source)
    print(f"{source}: {report.summary()}")

    if args.output:
        write_cards(report.cards, args.output)

    if not report.cards:
        return 1

    sync = settings.auto_sync_to_anki if args.sync is None else args.sync
    if sync:
        async with SyncQueueManager(settings) as manager:
            delivery = await manager.deliver_many(report.cards, deck_name=args.deck)
        print(f"Anki: {delivery.summary()}")
        if delivery.failed:
            return 1

    return 0


async def cmd_process_queue(args: argparse.Namespace, settings: Settings) -> int:
    async with SyncQueueManager(settings) as manager:
        delivered = await manager.process_queue()
        remaining = manager.queue_status().count
        dropped = len(manager.dropped)

    print(f"{delivered} delivered, {remaining} still queued, {dropped} dropped")
    return 0


async def cmd_queue_status(args: argparse.Namespace, settings: Settings) -> int:
    async with SyncQueueManager(settings) as manager:
        status = manager.queue_status()

    print(f"{status.count} card(s) queued")
    for item in status.items:
        deck = item.deck_name or settings.anki_deck_name
        print(f"  [{deck}] retries={item.retry_count} {item.card.front[:60]}")
    return 0


async def cmd_clear_queue(args: argparse.Namespace, settings: Settings) -> int:
    async with SyncQueueManager(settings) as manager:
        count = manager.queue_status().count
        manager.clear_queue()

    print(f"Cleared {count} queued card(s)")
    return 0


async def cmd_test_connection(args: argparse.Namespace, settings: Settings) -> int:
    groq = await FlashcardGenerator(settings).test_connection()
    async with SyncQueueManager(settings) as manager:
        anki = await manager.test_connection()

    print(f"Groq: {groq['message']}")
    version = f" (version {anki['version']})" if anki.get('version') is not None else ""
    print(f"AnkiConnect: {anki['message']}{version}")
    return 0 if groq['success'] and anki['success'] else 1


def cmd_list_models(settings: Settings) -> int:
    print(f"\n{'Model':<28} {'Input $/1M':<12} {'Output $/1M':<12} {'Description'}")
    print("-" * 90)
    for name, info in list_models().items():
        print(
            f"{name:<28} ${info.input_cost_per_1m:<11.3f} ${info.output_cost_per_1m:<11.3f} {info.description[:40]}"
        )
    print(f"\nCurrent model: {settings.groq_model}")
    print("Set LLM_MODEL environment variable to change model.")
    return 0


COMMANDS = {
    'generate': cmd_generate,
    'process-queue': cmd_process_queue,
    'queue-status': cmd_queue_status,
    'clear-queue': cmd_clear_queue,
    'test-connection': cmd_test_connection,
}


# ============================================================================
# Entry point
# ============================================================================


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog='obsicard',
        description='Generate Anki flashcards from Markdown notes with Groq',
    )
    parser.add_argument('--verbose', action='store_true', help='Enable debug logging')

    subparsers = parser.add_subparsers(dest='command', required=True, help='Command to run')

    gen = subparsers.add_parser('generate', help='Generate flashcards from a note')
    gen.add_argument('note', help='Path to a Markdown note')
    gen.add_argument(
        '--mode',
        choices=[m.value for m in GenerationMode],
        default=GenerationMode.DYNAMIC.value,
        help='dynamic: model suggests tags; fixed: use --tags (default: dynamic)',
    )
    gen.add_argument('--tags', help='Comma-separated tags (default: DEFAULT_TAGS)')
    gen.add_argument('--deck', help='Anki deck (default: ANKI_DECK_NAME)')
    gen.add_argument('--model', help='Groq model name or alias (default: LLM_MODEL)')
    gen.add_argument(
        '--sync',
        action=argparse.BooleanOptionalAction,
        default=None,
        help='Send cards to Anki (default: AUTO_SYNC_TO_ANKI)',
    )
    gen.add_argument('--output', help='Also write cards to this JSON file')

    subparsers.add_parser('process-queue', help='Retry queued cards')
    subparsers.add_parser('queue-status', help='Show queued cards')
    subparsers.add_parser('clear-queue', help='Discard all queued cards')
    subparsers.add_parser('test-connection', help='Check Groq and AnkiConnect')
    subparsers.add_parser('list-models', help='List known models with pricing')

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point for CLI"""
    args = build_parser().parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else os.environ.get('LOG_LEVEL', 'INFO').upper(),
        format=LOG_FORMAT,
    )

    try:
        settings = Settings.from_env()
        if getattr(args, 'model', None):
            settings = settings.replace(groq_model=args.model)

        if args.command == 'list-models':
            return cmd_list_models(settings)

        return asyncio.run(COMMANDS[args.command](args, settings))

    except ObsiCardError as e:
        logger.error(f"{e} [{e.code}]")
        return 1
    except (OSError, ValueError) as e:
        logger.error(str(e))
        return 1


if __name__ == '__main__':
    sys.exit(main())
