"""Command-line interface.

Provides subcommands for the interactive chat and for session and memory
management. Every ``cmd_*`` handler returns a process exit code.
"""

import argparse
import asyncio
import logging
import sys
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path

from .chat import ChatContext, ChatOrchestrator, Console
from .chat.render import format_datetime, truncate
from .config import DEFAULT_MODEL, AppConfig, load_config
from .errors import NotFoundError, SoftwareBuilderError, ValidationError
from .llm import CompletionOptions, create_client
from .logging import configure_logger
from .memory import MemoryManager
from .models import parse_uuid
from .session import SessionManager
from .store import Store

logger = logging.getLogger(__name__)

DEFAULT_REVIEW_THRESHOLD = 0.3

EXAMPLES = """\
examples:
  software-builder tui ./my-project
  software-builder session list
  software-builder session create /tmp/test
  software-builder session show <uuid>
  software-builder memory review --threshold 0.5
"""


@contextmanager
def open_store(config: AppConfig) -> Iterator[Store]:
    """Open the database for the duration of one command."""
    store = Store(config.db_path)
    try:
        store.init_db()
        yield store
    finally:
        store.close()


def cmd_tui(args: argparse.Namespace, config: AppConfig) -> int:
    """Resume or create the session for a project path and run the chat."""
    project_path = str(Path(args.project_path or ".").expanduser().resolve())

    with open_store(config) as store:
        sessions = SessionManager(store)
        existing = sessions.find_active_session(project_path)
        if existing:
            print(f"Resuming existing session: {existing.id}")
            session_id = existing.id
        else:
            session_id = sessions.create_session(project_path)
            print(f"Created new session: {session_id}")

        client = create_client(config.completion, DEFAULT_MODEL)
        if client is not None:
            problem = client.validate_config()
            if problem:
                print(f"Warning: completion disabled: {problem}")
                client = None
        else:
            print("Warning: no HF_TOKEN or GROQ_API_KEY set; messages will be stored without replies.")

        orchestrator = ChatOrchestrator(
            ChatContext(sessions=sessions, session_id=session_id),
            client=client,
            config=config.chat,
            options=CompletionOptions(
                max_tokens=config.completion.max_tokens,
                temperature=config.completion.temperature,
            ),
            console=Console(),
        )
        try:
            asyncio.run(orchestrator.run())
        except KeyboardInterrupt:
            print("\nGoodbye!")
    return 0


def cmd_session_list(args: argparse.Namespace, config: AppConfig) -> int:
    """List active sessions."""
    with open_store(config) as store:
        sessions = SessionManager(store).get_active_sessions()

    if not sessions:
        print("No active sessions found.")
        return 0

    print("Active Sessions:\n")
    for session in sessions:
        print(f"  ID:      {session.id}")
        print(f"  Path:    {session.project_path}")
        print(f"  Title:   {session.title}")
        print(f"  Created: {format_datetime(session.created_at)}")
        print()
    return 0


def cmd_session_create(args: argparse.Namespace, config: AppConfig) -> int:
    """Create a new session for a project path."""
    with open_store(config) as store:
        session_id = SessionManager(store).create_session(args.path)

    print(f"Created new session: {session_id}")
    print(f"Project path: {args.path}")
    return 0


def cmd_session_show(args: argparse.Namespace, config: AppConfig) -> int:
    """Show session details, statistics and truncated message history."""
    session_id = parse_uuid(args.session_id)

    with open_store(config) as store:
        sessions = SessionManager(store)
        session = sessions.get_session(session_id)
        if session is None:
            raise NotFoundError("session", session_id)
        stats = sessions.session_stats(session_id)
        messages = sessions.get_session_messages(session_id)

    print("Session Details:\n")
    print(f"  ID:       {session.id}")
    print(f"  Path:     {session.project_path}")
    print(f"  Title:    {session.title}")
    print(f"  Status:   {session.status.value}")
    print(f"  Created:  {format_datetime(session.created_at)}")
    if session.ended_at:
        print(f"  Ended:    {format_datetime(session.ended_at)}")
    print()
    print("Statistics:")
    print(f"  Total messages: {stats.total}")
    print(f"  User messages: {stats.user}")
    print(f"  Assistant messages: {stats.assistant}")
    print(f"  Tool calls: {stats.tool_calls}")
    print()

    if messages:
        print("Messages:")
        for message in messages:
            print(f"  [{message.role.value}] {truncate(message.content)}")
        print()
    return 0


def cmd_session_archive(args: argparse.Namespace, config: AppConfig) -> int:
    """Archive a session."""
    session_id = parse_uuid(args.session_id)
    with open_store(config) as store:
        SessionManager(store).archive_session(session_id)
    print(f"Archived session: {session_id}")
    return 0


def cmd_memory_review(args: argparse.Namespace, config: AppConfig) -> int:
    """Recompute memory strengths and list the ones needing review."""
    with open_store(config) as store:
        manager = MemoryManager(store)
        manager.update_all_strengths()
        memories = manager.get_memories_needing_review(args.threshold)

    if not memories:
        print(f"No memories below strength {args.threshold}.")
        return 0

    print(f"\n{'Strength':<10} {'Type':<12} Content")
    print("-" * 80)
    for memory in memories:
        print(f"{memory.current_strength:<10.3f} {memory.type.value:<12} {truncate(memory.content, 55)}")
    print(f"\nTotal: {len(memories)} memory(ies)")
    return 0


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser."""
    parser = argparse.ArgumentParser(
        prog="software-builder",
        description="Personal LLM coding agent",
        epilog=EXAMPLES,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    parser.add_argument("--config", type=Path, help="Path to config.json")
    subparsers = parser.add_subparsers(dest="command", metavar="<command>")

    subparsers.add_parser("help", help="Show this help")

    tui_parser = subparsers.add_parser("tui", help="Start the chat for a project")
    tui_parser.add_argument("project_path", nargs="?", help="Project directory (default: cwd)")
    tui_parser.set_defaults(func=cmd_tui)

    session_parser = subparsers.add_parser("session", help="Manage sessions")
    session_sub = session_parser.add_subparsers(dest="session_command", metavar="<subcommand>")

    list_parser = session_sub.add_parser("list", help="List active sessions")
    list_parser.set_defaults(func=cmd_session_list)

    create_parser = session_sub.add_parser("create", help="Create a session for a path")
    create_parser.add_argument("path", help="Project path")
    create_parser.set_defaults(func=cmd_session_create)

    show_parser = session_sub.add_parser("show", help="Show session details and messages")
    show_parser.add_argument("session_id", help="Session UUID")
    show_parser.set_defaults(func=cmd_session_show)

    archive_parser = session_sub.add_parser("archive", help="Archive a session")
    archive_parser.add_argument("session_id", help="Session UUID")
    archive_parser.set_defaults(func=cmd_session_archive)

    memory_parser = subparsers.add_parser("memory", help="Inspect memories")
    memory_sub = memory_parser.add_subparsers(dest="memory_command", metavar="<subcommand>")

    review_parser = memory_sub.add_parser("review", help="List memories needing review")
    review_parser.add_argument(
        "--threshold",
        type=float,
        default=DEFAULT_REVIEW_THRESHOLD,
        help=f"Strength threshold (default: {DEFAULT_REVIEW_THRESHOLD})",
    )
    review_parser.set_defaults(func=cmd_memory_review)

    return parser


def run_cli(argv: list[str] | None = None) -> int:
    """Run the CLI with the given arguments.

    Args:
        argv: Command-line arguments (excluding program name).

    Returns:
        Exit code (0 for success, non-zero for errors).
    """
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.verbose:
        logging.basicConfig(level=logging.DEBUG, format="%(levelname)s %(name)s: %(message)s")

    if args.command in (None, "help"):
        parser.print_help()
        return 0

    if not hasattr(args, "func"):
        parser.print_help()
        return 1

    try:
        config = load_config(args.config)
        configure_logger(config.log_dir)
        return args.func(args, config)
    except (ValidationError, NotFoundError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    except SoftwareBuilderError as e:
        logger.debug("Command failed", exc_info=True)
        print(f"Error: {e}", file=sys.stderr)
        return 1
