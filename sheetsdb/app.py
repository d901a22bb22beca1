import asyncio
import logging

from sheetsdb.config.config_loader import get_config
from sheetsdb.exceptions import SheetsDBError
from sheetsdb.services.sheets import SheetsDatabase

# --- Logging Setup ---
def configure_logging(level=logging.INFO):
    logging.basicConfig(
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        level=level,
    )
    # Set higher logging level for noisy libraries
    logging.getLogger("urllib3").setLevel(logging.WARNING)
    logging.getLogger("google.auth").setLevel(logging.WARNING)


logger = logging.getLogger(__name__)


async def bootstrap(database: SheetsDatabase) -> str:
    """Resolves the signed-in principal's document, creating/repairing it as needed."""
    principal = await database.whoami()
    logger.info(f"Signed in as {principal.email}")
    doc_id = await database.open(principal)
    logger.info(f"Document ready: {doc_id} (tables: {', '.join(database.schemas.names())})")

    shared = await database.list_shared_stores(principal)
    for store in shared:
        logger.info(f"Shared with you: {store.id} owned by {store.owner_name} <{store.owner_email}>")
    return doc_id


def main() -> int:
    configure_logging()
    try:
        config = get_config()
        database = SheetsDatabase.from_config(config)
        asyncio.run(bootstrap(database))
    except (SheetsDBError, ValueError) as e:
        logger.critical(f"Bootstrap failed: {e}", exc_info=True)
        return 1
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
