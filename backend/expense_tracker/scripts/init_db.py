"""Initialize database tables.

Usage (from repo root):

  python -m expense_tracker.scripts.init_db
"""

import asyncio
import logging

from expense_tracker.core.database import init_db, get_db_debug_info


async def main():
    info = get_db_debug_info()
    print(f"Initializing database tables on {info.get('url', '<unknown>')} ...")
    await init_db()
    print("Database initialization complete!")


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    asyncio.run(main())
