"""Application entry point for QuizLive.

``host`` runs the store server and drives a session from the console;
``join`` follows a session on another device as a participant.
"""

from __future__ import annotations

import argparse
import os
import socket
import sys
from pathlib import Path

from quiz_live.constants.about import APP_ABOUT_TEXT, APP_LICENSE, APP_NAME, APP_VERSION
from quiz_live.constants.network_constants import (
    DEFAULT_HOST,
    DEFAULT_PORT,
    DEFAULT_SERVER_URL,
    HOST_ENV_VAR,
    LOG_LEVEL_ENV_VAR,
    PORT_ENV_VAR,
)
from quiz_live.core.errors import QuizLiveError, SubmissionRejectedError
from quiz_live.core.host_controller import HostController
from quiz_live.core.models import ChoiceQuestion, QuestionType, SessionRecord, SessionStatus
from quiz_live.core.participant_client import ParticipantClient, ParticipantMode
from quiz_live.core.quiz_importer import load_quiz_from_file
from quiz_live.core.record_store import InMemoryRecordStore
from quiz_live.core.remote_store import HttpRecordStore
from quiz_live.core.snapshot_exporter import save_result_document
from quiz_live.server.api_server import start_api_server
from quiz_live.utils.logging_config import configure_logging

_HOST_HELP = "Commands: start, next, skip, status, board, end"


def _determine_student_url(port: int) -> str:
    """Best-effort determination of the local IP for the participant URL."""
    try:
        with socket.socket(socket.AF_INET, socket.SOCK_DGRAM) as sock:
            sock.connect(("8.8.8.8", 80))
            ip_address = sock.getsockname()[0]
    except OSError:
        ip_address = "127.0.0.1"
    return f"http://{ip_address}:{port}"


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="quiz-live", description=APP_ABOUT_TEXT)
    parser.add_argument("--version", action="version", version=f"{APP_NAME} {APP_VERSION} ({APP_LICENSE})")
    parser.add_argument(
        "--log-level",
        default=os.environ.get(LOG_LEVEL_ENV_VAR, "INFO"),
        help="Logging level (default from $%s or INFO)" % LOG_LEVEL_ENV_VAR,
    )
    commands = parser.add_subparsers(dest="command", required=True)

    host = commands.add_parser("host", help="Serve the store and run a quiz session")
    host.add_argument("quiz_file", type=Path, help="Quiz definition (JSON)")
    host.add_argument("--host", default=os.environ.get(HOST_ENV_VAR, DEFAULT_HOST), help="Bind address")
    host.add_argument(
        "--port",
        type=int,
        default=int(os.environ.get(PORT_ENV_VAR, DEFAULT_PORT)),
        help="Port to listen on",
    )
    host.add_argument("--class-name", default=None, help="Class to file the result snapshot under")
    host.add_argument("--results-file", type=Path, default=None, help="Also save the result snapshot here")
    host.add_argument(
        "--allow-empty-start",
        action="store_true",
        help="Allow starting the quiz before anyone joined",
    )

    join = commands.add_parser("join", help="Take part in a running session")
    join.add_argument("code", help="Session code shown on the host screen")
    join.add_argument("name", help="Display name")
    join.add_argument("--server", default=DEFAULT_SERVER_URL, help="Quiz server URL")
    return parser


def _describe(record: SessionRecord | None) -> str:
    if record is None:
        return "Session ended."
    if record.status is SessionStatus.LOBBY:
        return f"Lobby: {len(record.players)} joined ({', '.join(sorted(record.players)) or 'nobody yet'})"
    if record.status is SessionStatus.FINAL:
        return "Quiz finished. Type 'end' to close the session."
    question = record.current_question_def
    text = question.text if question is not None else "?"
    return f"{record.status.value} {record.current_question + 1}/{record.question_count}: {text}"


def run_host(args: argparse.Namespace) -> int:
    imported = load_quiz_from_file(args.quiz_file)
    store = InMemoryRecordStore()
    start_api_server(store, host=args.host, port=args.port, log_level=args.log_level.lower())
    last_status: list[str] = []

    def on_change(record: SessionRecord | None) -> None:
        line = _describe(record)
        if not last_status or last_status[-1] != line:
            last_status.append(line)
            print(line)

    controller = HostController.create_session(
        store,
        imported.quiz,
        class_name=args.class_name,
        on_change=on_change,
    )
    print(f"Session code: {controller.code}")
    print(f"Participants connect to {_determine_student_url(args.port)}")
    print(_HOST_HELP)

    results_saved = False
    ended = False
    for raw in sys.stdin:
        command = raw.strip().lower()
        if command == "start":
            if not controller.start_quiz(require_players=not args.allow_empty_start):
                print("Cannot start yet.")
        elif command == "next":
            controller.advance()
        elif command == "skip":
            controller.skip()
        elif command == "status":
            progress = controller.progress
            print(_describe(controller.record))
            print(f"Answered {progress.answered}/{progress.connected}, {controller.remaining_seconds():.0f}s left")
        elif command == "board":
            for row in controller.leaderboard(limit=10):
                print(f"{row.rank:>3}. {row.name:<20} {row.score:>6}  streak {row.streak}")
        elif command == "end":
            ended = True
            break
        elif command:
            print(_HOST_HELP)
        if not results_saved:
            results_saved = _save_results(controller, args.results_file)

    if not results_saved:
        _save_results(controller, args.results_file)
    if ended:
        controller.end_session()
    else:
        # Input closed without "end": participants keep the final screen.
        controller.detach()
    return 0


def _save_results(controller: HostController, results_file: Path | None) -> bool:
    document = controller.result_document
    if document is None or results_file is None:
        return False
    save_result_document(results_file, document)
    print(f"Results saved to {results_file}")
    return True


def _submit(client: ParticipantClient, text: str) -> None:
    question = client.current_question()
    if question is None:
        print("No question is open right now.")
        return
    if question.question_type in (QuestionType.MULTIPLE_CHOICE, QuestionType.TRUE_FALSE):
        sent = client.submit_choice(int(text) - 1)
    elif question.question_type is QuestionType.OPEN:
        sent = client.submit_text(text)
    elif question.question_type is QuestionType.SORTING:
        sent = client.submit_order([int(part) - 1 for part in text.replace(",", " ").split()])
    elif question.question_type is QuestionType.SLIDER:
        sent = client.submit_slider(float(text))
    else:
        sent = client.submit_word(text)
    if sent:
        print("Answer sent!")
    else:
        print("Could not reach the quiz server; your answer may not have reached the host.")


def _show_question(client: ParticipantClient) -> None:
    question = client.current_question()
    if question is None:
        return
    print(question.text)
    if question.question_type is QuestionType.SORTING:
        for index, item in client.display_items():
            print(f"  {index + 1}. {item}")
        print("Type the item numbers in the correct order.")
    elif isinstance(question, ChoiceQuestion):
        for number, option in enumerate(question.options, start=1):
            print(f"  {number}. {option}")


def run_join(args: argparse.Namespace) -> int:
    store = HttpRecordStore(args.server)
    seen: list[tuple[ParticipantMode, int]] = []

    def on_change(client: ParticipantClient) -> None:
        record = client.record
        key = (client.mode, record.current_question if record is not None else -1)
        if seen and seen[-1] == key:
            return
        seen.append(key)
        mode = client.mode
        if mode is ParticipantMode.QUESTION:
            _show_question(client)
        elif mode is ParticipantMode.RESULTS:
            outcome = client.my_outcome()
            if outcome is None:
                print("Results are in.")
            else:
                print(f"{'Correct' if outcome.is_correct else 'Wrong'}: +{outcome.points} points")
        elif mode in (ParticipantMode.LEADERBOARD, ParticipantMode.FINAL):
            row = client.my_rank()
            if row is not None:
                print(f"You are #{row.rank} with {row.score} points.")
        elif mode is ParticipantMode.NOT_FOUND:
            print("Session not found or ended.")
        elif mode is ParticipantMode.LOBBY:
            print("Waiting for the host to start...")

    client = ParticipantClient(store, args.code, args.name, on_change=on_change)
    try:
        client.connect()
        if client.mode is ParticipantMode.NOT_FOUND:
            return 1
        client.join()
        for raw in sys.stdin:
            text = raw.strip()
            if text.lower() == "quit" or client.mode in (ParticipantMode.NOT_FOUND, ParticipantMode.FINAL):
                break
            if not text:
                continue
            try:
                _submit(client, text)
            except (SubmissionRejectedError, ValueError) as exc:
                print(exc)
    finally:
        client.disconnect()
        store.close()
    return 0


def main(argv: list[str] | None = None) -> int:
    """Parse arguments, configure logging and run the chosen role."""
    args = build_parser().parse_args(argv)
    logger = configure_logging(args.log_level)
    logger.info("Starting %s %s (%s)", APP_NAME, APP_VERSION, args.command)
    try:
        if args.command == "host":
            return run_host(args)
        return run_join(args)
    except QuizLiveError as exc:
        logger.error("%s", exc)
        return 1


if __name__ == "__main__":
    sys.exit(main())
