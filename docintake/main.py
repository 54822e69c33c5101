import asyncio
import sys

from docintake.config.settings import Settings
from docintake.database.connection import close_pool, init_pool
from docintake.documents.outstanding import missing_documents
from docintake.documents.session import build_document_session
from docintake.logging.logger import Log


async def run(user_id: str, settings: Settings) -> None:
    """Load and reconcile one user's documents, then log what is missing."""
    session = build_document_session(user_id, settings)
    try:
        state = await session.open()
        Log.info(
            f"{len(state.sections)} sections, {len(state.slots)} slots, progress {state.progress}%",
            user_id=user_id,
        )
        for entry in missing_documents(state):
            Log.info(f"{entry.display_name}: missing {', '.join(entry.titles)}", user_id=user_id)
    finally:
        await session.close()


def main() -> None:
    """Entry point: initialize pool -> load documents of one user -> close pool."""
    if len(sys.argv) != 2:
        print("usage: python -m docintake.main <user_id>", file=sys.stderr)
        sys.exit(2)

    settings = Settings()
    Log.configure(settings.log_level)
    init_pool(settings)

    try:
        asyncio.run(run(sys.argv[1], settings))
    finally:
        close_pool()


if __name__ == "__main__":
    main()
