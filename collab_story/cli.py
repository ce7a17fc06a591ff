#!/usr/bin/env python
"""
Collaborative Story CLI - add words, read stories, run the server.

Usage:
    python -m collab_story.cli init-db           # Apply the database schema
    python -m collab_story.cli add once upon     # Append words in order
    python -m collab_story.cli stories           # List stories
    python -m collab_story.cli story <id>        # Print a story
    python -m collab_story.cli serve             # Run the HTTP API
"""

import argparse
import json
import logging
import sys

from collab_story.config import ConfigError, load_env_file, load_settings
from collab_story.logging_utils import configure_logging
from collab_story.weaving.errors import InvalidWord, WeaveError
from collab_story.weaving.services.story_service import MAX_PAGE_SIZE

logger = logging.getLogger(__name__)


def _page_limit(value: str) -> int:
    limit = int(value)
    if not 1 <= limit <= MAX_PAGE_SIZE:
        raise argparse.ArgumentTypeError(f"must be between 1 and {MAX_PAGE_SIZE}")
    return limit


def _page_offset(value: str) -> int:
    offset = int(value)
    if offset < 0:
        raise argparse.ArgumentTypeError("must be >= 0")
    return offset


def _build_services(settings):
    from collab_story.api.deps import build_store
    from collab_story.weaving.services import AppendEngine, StoryQueryService

    store = build_store(settings)
    engine = AppendEngine(
        store, policy=settings.policy, lock_timeout=settings.append_lock_timeout
    )
    return engine, StoryQueryService(store)


def cmd_init_db(args, settings):
    """Apply schema.sql to DATABASE_URL."""
    from collab_story.db.connection import init_db

    init_db(settings.database_url)
    print("Schema applied.")
    return 0


def cmd_add(args, settings):
    """Append each word and print where it landed."""
    engine, _ = _build_services(settings)
    status = 0
    for word in args.words:
        try:
            result = engine.append_word(word)
        except InvalidWord as e:
            print(f"rejected {word!r}: {e.message}", file=sys.stderr)
            status = 1
            continue
        print(f"[{result.story_id}] {result.title} | {result.sentence_content}")
    return status


def cmd_stories(args, settings):
    """List stories."""
    _, queries = _build_services(settings)
    page = queries.list_stories(limit=args.limit, offset=args.offset)

    if not page.results:
        print("No stories found.")
        return 0

    print(f"\n{'ID':<6} {'Title':<40} {'Updated':<20}")
    print("-" * 68)
    for story in page.results:
        print(f"{story.id:<6} {story.title:<40} {story.updated_at:%Y-%m-%d %H:%M:%S}")
    print(f"\n{len(page.results)} of {page.count} stories\n")
    return 0


def cmd_story(args, settings):
    """Print one story as text (or JSON)."""
    _, queries = _build_services(settings)
    detail = queries.get_story(args.story_id)

    if args.json:
        print(json.dumps(detail.model_dump(mode="json"), indent=2))
        return 0

    status = "finished" if detail.finished else "in progress"
    print(f"\n# {detail.title or '(untitled)'}  [{status}]\n")
    for paragraph in detail.paragraphs:
        print(" ".join(f"{s}." for s in paragraph.sentences))
        print()
    return 0


def cmd_serve(args, settings):
    """Run the API under uvicorn."""
    import uvicorn

    uvicorn.run("collab_story.api.main:app", host=args.host, port=args.port)
    return 0


def main(argv=None):
    parser = argparse.ArgumentParser(
        description="Collaborative story service",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    subparsers = parser.add_subparsers(dest="command", required=True)

    p_init = subparsers.add_parser("init-db", help="Apply the database schema")
    p_init.set_defaults(func=cmd_init_db)

    p_add = subparsers.add_parser("add", help="Append words to the active story")
    p_add.add_argument("words", nargs="+", help="Words to append, in order")
    p_add.set_defaults(func=cmd_add)

    p_stories = subparsers.add_parser("stories", help="List stories")
    p_stories.add_argument("--limit", type=_page_limit, default=10)
    p_stories.add_argument("--offset", type=_page_offset, default=0)
    p_stories.set_defaults(func=cmd_stories)

    p_story = subparsers.add_parser("story", help="Show one story")
    p_story.add_argument("story_id", type=int)
    p_story.add_argument("--json", action="store_true", help="Print as JSON")
    p_story.set_defaults(func=cmd_story)

    p_serve = subparsers.add_parser("serve", help="Run the HTTP API")
    p_serve.add_argument("--host", default="127.0.0.1")
    p_serve.add_argument("--port", type=int, default=8080)
    p_serve.set_defaults(func=cmd_serve)

    args = parser.parse_args(argv)

    load_env_file()
    try:
        settings = load_settings()
    except ConfigError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return 2

    configure_logging("DEBUG" if args.verbose else logging.WARNING)

    try:
        return args.func(args, settings)
    except WeaveError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
