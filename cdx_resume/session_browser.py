#!/usr/bin/env python3
"""
Browse and resume Codex CLI conversations.

Usage:
    cdx-resume [.] [OPTIONS] [-- CODEX_ARGS...]

Examples:
    cdx-resume                      # All conversations, newest first
    cdx-resume .                    # Only conversations started in this directory
    cdx-resume -p 2                 # Second page
    cdx-resume --show 3 --hide      # Print conversation 3 without tool/thinking noise
    cdx-resume --resume 1 -- --model o3   # Resume conversation 1 with extra codex args
    cdx-resume --resume 0199bfc9    # Resume by (partial) session ID
    eval "$(cdx-resume --resume 1 --shell)"
"""

import argparse
import logging
import os
import shlex
import sys
from importlib.metadata import PackageNotFoundError, version as package_version
from typing import List, Optional, Tuple

from rich.console import Console
from rich.table import Table
from rich.text import Text

from cdx_resume import config
from cdx_resume.char_width import (
    pad_to_width,
    replace_lone_surrogates,
    strict_truncate_by_width,
    strict_truncate_lines,
)
from cdx_resume.codex_support import CodexContext, build_new_session_args, build_resume_args
from cdx_resume.conversation_reader import get_repository
from cdx_resume.message_utils import (
    DEFAULT_HIDE,
    HIDE_CHOICES,
    extract_message_text,
    filter_messages,
    format_project_path,
    format_session_id,
    generate_conversation_summary,
)
from cdx_resume.models import Conversation

MAX_STDOUT_LINES = 5


def split_codex_args(argv: List[str]) -> Tuple[List[str], List[str]]:
    """Split argv at ``--``: (our arguments, arguments passed to codex)."""
    if "--" in argv:
        idx = argv.index("--")
        return argv[:idx], argv[idx + 1:]
    return argv, []


def format_time(conversation: Conversation) -> str:
    """Local end time as ``MM/DD HH:MM``."""
    if conversation.end_time is None:
        return "-"
    return conversation.end_time.astimezone().strftime("%m/%d %H:%M")


def display_conversations(
    console: Console,
    conversations: List[Conversation],
    offset: int,
    total: int,
    page: int,
    per_page: int,
) -> None:
    """Print one page of conversations as a fixed-width table."""
    if not conversations:
        console.print("No conversations found.")
        return

    id_w, project_w, branch_w, time_w = 8, 20, 14, 11
    # index column, separators and table padding
    fixed = 4 + id_w + project_w + branch_w + time_w + 6 * 3
    summary_w = max(console.width - fixed, 10)

    total_pages = max((total + per_page - 1) // per_page, 1)
    table = Table(
        title=f"Codex Conversations (page {page}/{total_pages}, {total} total)",
        show_header=True,
    )
    table.add_column("#", style="cyan", justify="right", no_wrap=True)
    table.add_column("Session", style="yellow", no_wrap=True)
    table.add_column("Project", style="green", no_wrap=True)
    table.add_column("Branch", style="magenta", no_wrap=True)
    table.add_column("Modified", style="blue", no_wrap=True)
    table.add_column("First Message", style="dim", no_wrap=True)

    for i, conversation in enumerate(conversations, offset + 1):
        table.add_row(
            str(i),
            pad_to_width(replace_lone_surrogates(format_session_id(conversation.session_id)), id_w),
            Text(pad_to_width(replace_lone_surrogates(conversation.project_name), project_w)),
            Text(pad_to_width(replace_lone_surrogates(conversation.git_branch or "-"), branch_w)),
            format_time(conversation),
            Text(strict_truncate_by_width(replace_lone_surrogates(generate_conversation_summary(conversation)), summary_w)),
        )

    console.print(table)


def show_conversation(console: Console, conversation: Conversation, hide: List[str]) -> None:
    """Print a conversation's messages, one block per message."""
    width = max(console.width - 2, 10)
    console.print("[bold]Session:[/bold]", Text(replace_lone_surrogates(conversation.session_id)))
    console.print("[bold]Project:[/bold]", Text(replace_lone_surrogates(format_project_path(conversation.project_path)) or "-"))
    console.print("[bold]Branch:[/bold] ", Text(replace_lone_surrogates(conversation.git_branch) or "-"))
    console.print("[bold]Log:[/bold]    ", Text(replace_lone_surrogates(conversation.source_path)))
    console.print()

    for msg in filter_messages(conversation.messages, hide):
        label = "You" if msg.type == "user" else "Codex"
        style = "cyan" if msg.type == "user" else "green"
        stamp = msg.timestamp.astimezone().strftime("%H:%M:%S")
        console.print(Text(f"{label} [{stamp}]", style=f"bold {style}"))

        # Logs may hold unpaired surrogates, which UTF-8 output rejects
        body = replace_lone_surrogates(extract_message_text(msg.content))
        stdout = (msg.tool_use_result or {}).get("stdout")
        if stdout:
            body += "\n" + replace_lone_surrogates("\n".join(stdout.split("\n")[:MAX_STDOUT_LINES]))
        if body:
            console.print(Text(strict_truncate_lines(body, width)))
        console.print()


def run_codex(args: List[str], cwd: str, shell_mode: bool = False) -> None:
    """
    Run Codex in ``cwd``.

    In shell mode: outputs commands for eval
    In interactive mode: replaces this process with codex
    """
    if shell_mode:
        if cwd and cwd != os.getcwd():
            print(f"cd {shlex.quote(cwd)}", file=sys.stdout)
        print(shlex.join(args), file=sys.stdout)
        return

    if cwd and cwd != os.getcwd():
        try:
            os.chdir(cwd)
            print(f"Changed to: {cwd}", file=sys.stderr)
        except OSError as e:
            print(f"Warning: could not change to {cwd}: {e}", file=sys.stderr)

    try:
        os.execvp(args[0], args)
    except OSError as e:
        print(f"Error launching codex: {e}", file=sys.stderr)
        print(f"Run manually: {shlex.join(args)}", file=sys.stderr)
        sys.exit(1)


def pick(conversations: List[Conversation], offset: int, number: int) -> Optional[Conversation]:
    """Conversation with 1-based listing ``number`` on the current page."""
    idx = number - offset - 1
    if 0 <= idx < len(conversations):
        return conversations[idx]
    return None


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="cdx-resume",
        description="Browse and resume Codex CLI conversations",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Arguments after -- are passed to codex when resuming or starting a session.

Configuration:
  ~/.cdxresume/config.json  (codex_command, probe_timeout, items_per_page, codex_home)
        """,
    )
    parser.add_argument(
        "current_dir",
        nargs="?",
        choices=["."],
        help="Show only conversations started in the current directory",
    )
    parser.add_argument("-n", "--num", type=int, help="Conversations per page")
    parser.add_argument("-p", "--page", type=int, default=1, help="Page number (default: 1)")
    parser.add_argument("--codex-home", help="Custom Codex home directory (default: $CODEX_HOME or ~/.codex)")
    parser.add_argument(
        "--hide",
        nargs="*",
        choices=HIDE_CHOICES,
        metavar="TYPE",
        help="With --show, hide message types: tool thinking user assistant (default: tool thinking)",
    )
    action = parser.add_mutually_exclusive_group()
    action.add_argument("--show", metavar="N|ID", help="Print conversation N, or the one with this (partial) session ID")
    action.add_argument("--resume", metavar="N|ID", help="Resume conversation N, or the one with this (partial) session ID")
    action.add_argument("--new", metavar="N|ID", help="Start a new session in the directory of conversation N or ID")
    parser.add_argument("--shell", action="store_true", help="Output shell commands for eval (enables persistent cd)")
    parser.add_argument("--debug", action="store_true", help="Log diagnostics to stderr")
    parser.add_argument("-v", "--version", action="store_true", help="Show version number")
    return parser


def main(argv: Optional[List[str]] = None) -> None:
    """Main entry point."""
    own_args, codex_args = split_codex_args(list(sys.argv[1:] if argv is None else argv))
    args = build_parser().parse_args(own_args)

    if args.version:
        try:
            print(package_version("cdx-resume"))
        except PackageNotFoundError:
            print("unknown")
        return

    if args.debug:
        logging.basicConfig(level=logging.DEBUG, format="%(levelname)s %(name)s: %(message)s")

    # In shell mode stdout is eval'd, so everything else goes to stderr
    console = Console(file=sys.stderr) if args.shell else Console()
    context = CodexContext.from_config(args.codex_home)
    per_page = args.num if args.num and args.num > 0 else config.items_per_page()
    page = max(args.page, 1)
    offset = (page - 1) * per_page
    filter_cwd = os.getcwd() if args.current_dir else None

    repository = get_repository(context)
    try:
        conversations, total = repository.get_page(per_page, offset, filter_cwd)
    except OSError as e:
        print(f"Error: could not read sessions under {context.codex_home}: {e}", file=sys.stderr)
        sys.exit(1)

    selector = next(
        (s for s in (args.show, args.resume, args.new) if s is not None), None
    )
    if selector is None:
        display_conversations(console, conversations, offset, total, page, per_page)
        return

    if selector.isdigit():
        conversation = pick(conversations, offset, int(selector))
        if conversation is None:
            print(f"Error: no conversation #{selector} on page {page}", file=sys.stderr)
            sys.exit(1)
    else:
        try:
            conversation = repository.find_conversation(selector)
        except (OSError, ValueError) as e:
            print(f"Error: {e}", file=sys.stderr)
            sys.exit(1)

    if args.show is not None:
        hide = args.hide if args.hide else (DEFAULT_HIDE if args.hide is not None else [])
        show_conversation(console, conversation, hide)
        return

    if args.new is not None:
        run_codex(
            build_new_session_args(codex_args, command=context.command),
            conversation.project_path,
            shell_mode=args.shell,
        )
        return

    resume_args = build_resume_args(
        conversation.session_id,
        conversation.source_path,
        context.support,
        codex_args,
        command=context.command,
    )
    run_codex(resume_args, conversation.project_path, shell_mode=args.shell)


if __name__ == "__main__":
    main()
