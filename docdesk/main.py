"""Terminal chat loop for local development.

Usage:
    python -m docdesk.main                       # chat with stored documents
    python -m docdesk.main --ingest notes.pdf    # ingest files first
    python -m docdesk.main --debug               # show all log messages
"""

from __future__ import annotations

import argparse
import logging
import uuid
from pathlib import Path

from docdesk.exceptions import DocDeskError
from docdesk.services.container import build_services

logger = logging.getLogger(__name__)


def _configure_logging(debug: bool = False) -> None:
    """WARNING by default, DEBUG when --debug is passed."""
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.WARNING,
        format="%(asctime)s %(levelname)-8s %(name)s — %(message)s",
    )
    if not debug:
        logging.getLogger("httpx").setLevel(logging.WARNING)
        logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("docdesk").setLevel(logging.DEBUG if debug else logging.INFO)


def main():
    parser = argparse.ArgumentParser(description="DocDesk Assistant CLI")
    parser.add_argument("--ingest", nargs="*", default=[], metavar="FILE",
                        help="PDF, DOCX or TXT files to ingest before chatting")
    parser.add_argument("--debug", action="store_true",
                        help="Show all log messages including HTTP requests")
    args = parser.parse_args()

    _configure_logging(debug=args.debug)
    services = build_services()
    services.index.reload()

    for name in args.ingest:
        path = Path(name)
        try:
            doc = services.documents.ingest_upload(path.read_bytes(), path.name)
            print(f">> Ingested {doc.filename} ({len(doc.chunks)} chunks)")
        except (OSError, DocDeskError) as e:
            print(f">> Could not ingest {name}: {e}")

    print("\n" + "=" * 60)
    print("  DocDesk Assistant - CLI Chat")
    print("=" * 60)
    print("  Ask about your documents or say 'book appointment'.")
    print("  Commands: 'quit' to exit, 'new' for a new session.")
    print("=" * 60 + "\n")

    session_id = str(uuid.uuid4())
    logger.info("Started new session: %s", session_id)

    try:
        while True:
            try:
                user_input = input("You: ").strip()
            except (KeyboardInterrupt, EOFError):
                print("\n\nGoodbye!")
                break

            if not user_input:
                continue
            if user_input.lower() in ("quit", "q"):
                print("\nGoodbye!")
                break
            if user_input.lower() == "new":
                session_id = str(uuid.uuid4())
                print(f"\n>> New session started: {session_id[:8]}...\n")
                continue

            result = services.conversations.handle_message(user_input, session_id)
            print(f"\nAssistant [{result.state}]: {result.reply}\n")
    finally:
        services.close()


if __name__ == "__main__":
    main()
