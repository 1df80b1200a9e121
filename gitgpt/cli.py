"""Command-line chat for gitgpt.

    gitgpt                 start a new conversation
    gitgpt -c <id>         continue a conversation
    gitgpt list            list saved conversations
    gitgpt export <id>     print a conversation record as JSON
"""

import argparse
import json
import logging
import sys
from dataclasses import replace

from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape

from gitgpt.compactor import CompactionNotice, CompactionStatus
from gitgpt.config import ChatConfig
from gitgpt.errors import ConfigError, ConversationNotFound, PersistenceError, TransportError
from gitgpt.models import Conversation, Role
from gitgpt.session import ChatSession, PendingTurn
from gitgpt.storage.file import FileTranscriptStore


HELP_TEXT = """\
[yellow]?[/yellow]          Show this help
[yellow]/list[/yellow]      List conversations
[yellow]/stats[/yellow]     Show context statistics
[yellow]/compact[/yellow]   Compact older turns now
[yellow]/clear[/yellow]     Clear the screen
[yellow]/save[/yellow]      Save the conversation
[yellow]/exit[/yellow]      Save and exit"""


def create_transport(config: ChatConfig):
    """Create the provider transport from the configuration.

    Returns:
        An OpenAITransport instance.

    Raises:
        RuntimeError: If no API key is configured.
    """
    if not config.api_key:
        raise RuntimeError(
            "No API key found. Please set the OPENAI_API_KEY environment variable."
        )

    from openai import OpenAI
    from gitgpt.backends.openai import OpenAITransport

    client = OpenAI(api_key=config.api_key, base_url=config.base_url)
    return OpenAITransport(client, model=config.model)


def preview(conversation: Conversation, width: int = 40) -> str:
    """First user message of a conversation, truncated to ``width``."""
    for turn in conversation.turns:
        if turn.role is Role.USER:
            text = turn.content.replace("\n", " ")
            return text[:width] + ("..." if len(text) > width else "")
    return ""


def print_conversations(console: Console, store: FileTranscriptStore, limit: int | None = None) -> None:
    """Print saved conversation ids with a short preview."""
    ids = store.list_ids()
    if limit is not None:
        ids = ids[-limit:]

    if not ids:
        console.print("  [dim](no conversations)[/dim]")
        return

    for conversation_id in ids:
        try:
            text = preview(store.load(conversation_id))
        except PersistenceError as e:
            text = f"[unreadable: {e}]"
        console.print(f"  [dim]{conversation_id}[/dim]  {escape(text)}", highlight=False)


def print_welcome(console: Console, session: ChatSession, store: FileTranscriptStore) -> None:
    console.print(f"[dim]──[/dim] [bold cyan]gitgpt[/bold cyan] [dim]{'─' * 50}[/dim]")
    console.print()
    console.print(f"  [dim]{session.config.model} ·[/dim] [cyan]{session.conversation.id}[/cyan]")
    console.print()
    console.print("  [yellow]Quick start[/yellow]  [dim]type to start chatting[/dim]")
    console.print("  [yellow]?[/yellow]            [dim]show commands[/dim]")
    console.print()

    if store.list_ids():
        console.print("  [yellow]Recent conversations[/yellow]")
        print_conversations(console, store, limit=3)
        console.print()


def print_stats(console: Console, session: ChatSession) -> None:
    """Print context statistics for the session."""
    stats = session.get_stats()
    console.print(f"  Conversation: {stats['conversation_id']}")
    console.print(f"  Turns: {stats['turn_count']}")
    console.print(f"  Estimated tokens: {stats['estimated_tokens']:,} / {stats['threshold']:,}")

    count_tokens = getattr(session.transport, "count_tokens", None)
    if count_tokens is not None:
        console.print(f"  Exact tokens ({session.config.model}): {count_tokens(session.conversation.turns):,}")

    console.print(f"  Compactions: {stats['compaction_count']} ({stats['failed_compactions']} failed)")
    console.print(f"  Rolling summary: {'yes' if stats['has_summary'] else 'no'}")


def stream_reply(console: Console, turn: PendingTurn) -> None:
    """Render a reply as it streams in.

    The spinner shows the estimated request cost until the first delta.
    The stream is closed on any exit, so an interrupted reply is discarded.
    """
    deltas = turn.stream()
    try:
        with console.status(f"Thinking... [dim](ctrl+c · ↑{turn.estimated_tokens} tokens)[/dim]"):
            first = next(deltas, None)

        console.print("[dim]│[/dim] ", end="")
        if first is not None:
            _print_delta(console, first)
            for delta in deltas:
                _print_delta(console, delta)
        console.print("\n")
    finally:
        deltas.close()


def _print_delta(console: Console, delta: str) -> None:
    console.print(delta.replace("\n", "\n│ "), end="", markup=False, highlight=False)


def handle_command(console: Console, session: ChatSession, store: FileTranscriptStore, command: str) -> bool:
    """Run a REPL command.

    Returns:
        False when the REPL should exit.
    """
    cmd = "help" if command == "?" else command[1:].lower()

    if cmd in {"exit", "quit", "q"}:
        session.save()
        console.print("[dim]Conversation saved. Goodbye![/dim]")
        return False
    elif cmd == "save":
        result = session.save()
        console.print("[dim]Saved[/dim]" if result.saved else "[dim]Nothing to save[/dim]")
    elif cmd == "list":
        print_conversations(console, store)
    elif cmd == "stats":
        print_stats(console, session)
    elif cmd == "compact":
        result = session.compact_now()
        if result.status is CompactionStatus.FAILED:
            console.print(f"[yellow]Compaction failed: {result.reason}[/yellow]")
        elif result.status is CompactionStatus.SKIPPED:
            console.print(f"[dim]Nothing to compact ({result.reason})[/dim]")
    elif cmd == "clear":
        console.clear()
        print_welcome(console, session, store)
    elif cmd == "help":
        console.print(HELP_TEXT)
    else:
        console.print(f"[dim]Unknown command: {cmd}[/dim]")

    console.print()
    return True


def run_chat(config: ChatConfig, conversation: Conversation | None = None, console: Console | None = None) -> None:
    """Run the interactive chat loop.

    Args:
        config: Chat configuration.
        conversation: Conversation to resume; a new one if None.
        console: Console to render to.
    """
    console = console or Console()
    store = FileTranscriptStore(config.data_dir)

    try:
        transport = create_transport(config)
    except RuntimeError as e:
        console.print(f"[yellow]Error: {e}[/yellow]")
        sys.exit(1)

    def on_compact(notice: CompactionNotice) -> None:
        console.print(
            f"[dim](compacted {notice.dropped_turn_count} older turns, "
            f"saved about {notice.estimated_tokens_saved} tokens)[/dim]\n"
        )

    session = ChatSession(transport, store, config, conversation=conversation, on_compact=on_compact)
    print_welcome(console, session, store)
    console.print("[dim]  ? for help[/dim]\n")

    while True:
        console.print(f"[dim]{'─' * 60}[/dim]")
        try:
            user_input = console.input("[cyan]❯[/cyan] ").strip()
        except (EOFError, KeyboardInterrupt):
            try:
                session.save()
                console.print("\n[dim]Conversation saved[/dim]")
            except PersistenceError as e:
                console.print(f"\n[yellow]Could not save conversation: {escape(str(e))}[/yellow]")
            break

        if not user_input:
            continue

        if user_input == "?" or user_input.startswith("/"):
            console.print()
            try:
                if not handle_command(console, session, store, user_input):
                    break
            except PersistenceError as e:
                console.print(f"[yellow]Could not save conversation: {escape(str(e))}[/yellow]\n")
            continue

        console.print()
        try:
            stream_reply(console, session.begin_turn(user_input))
        except KeyboardInterrupt:
            console.print("\n[dim](interrupted)[/dim]\n")
        except TransportError as e:
            console.print(f"[yellow]Error: {escape(str(e))}[/yellow]\n")
        except PersistenceError as e:
            console.print(f"[yellow]Could not save conversation: {escape(str(e))}[/yellow]\n")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="gitgpt",
        description="Chat with an LLM; long conversations are compacted automatically",
    )

    parser.add_argument(
        "-c",
        "--continue",
        dest="conversation_id",
        metavar="ID",
        default=None,
        help="Continue a saved conversation",
    )

    parser.add_argument(
        "--model",
        type=str,
        default=None,
        help="Model used for replies (default: gpt-4o, or GITGPT_MODEL)",
    )

    parser.add_argument(
        "--summary-model",
        type=str,
        default=None,
        help="Model used to summarize older turns (default: gpt-4o-mini)",
    )

    parser.add_argument(
        "--threshold",
        type=int,
        default=None,
        help="Estimated token count that triggers compaction (default: 3000)",
    )

    parser.add_argument(
        "--keep-recent",
        type=int,
        default=None,
        help="Number of recent turns kept verbatim on compaction (default: 6)",
    )

    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Show debug logging",
    )

    subparsers = parser.add_subparsers(dest="command")
    subparsers.add_parser("list", aliases=["ls"], help="List saved conversations")
    export = subparsers.add_parser("export", help="Print a conversation record as JSON")
    export.add_argument("id", help="Conversation id")

    return parser


def apply_overrides(config: ChatConfig, args: argparse.Namespace) -> ChatConfig:
    """Apply command line options on top of an environment config.

    Raises:
        ConfigError: If an option value is invalid.
    """
    compaction = config.compaction
    if args.summary_model is not None:
        compaction = replace(compaction, summary_model=args.summary_model)
    if args.threshold is not None:
        compaction = replace(compaction, threshold_tokens=args.threshold)
    if args.keep_recent is not None:
        compaction = replace(compaction, keep_recent=args.keep_recent)

    return replace(config, model=args.model or config.model, compaction=compaction)


def setup_logging(verbose: bool = False) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=Console(stderr=True), rich_tracebacks=True)],
    )


def main(argv: list[str] | None = None) -> None:
    """Main entry point for the CLI."""
    parser = build_parser()
    args = parser.parse_args(argv)
    setup_logging(args.verbose)

    console = Console()
    try:
        config = apply_overrides(ChatConfig.from_env(), args)
    except ConfigError as e:
        console.print(f"[yellow]Error: {e}[/yellow]")
        sys.exit(2)

    if args.command in {"list", "ls"}:
        print_conversations(console, FileTranscriptStore(config.data_dir))
        return

    if args.command == "export":
        try:
            conversation = FileTranscriptStore(config.data_dir).load(args.id)
        except (ConversationNotFound, PersistenceError) as e:
            console.print(f"[yellow]Error: {e}[/yellow]")
            sys.exit(1)
        print(json.dumps(conversation.to_dict(), ensure_ascii=False, indent=2))
        return

    conversation = None
    if args.conversation_id:
        try:
            conversation = FileTranscriptStore(config.data_dir).load(args.conversation_id)
        except (ConversationNotFound, PersistenceError) as e:
            console.print(f"[yellow]Error: {e}[/yellow]")
            sys.exit(1)

    run_chat(config, conversation, console)


if __name__ == "__main__":
    main()
