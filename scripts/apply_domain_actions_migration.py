#!/usr/bin/env python3
"""Apply the domain_actions / domain_events migration."""
import asyncio
import os

import asyncpg

from ticketing.db import schema


async def main():
    conn = await asyncpg.connect(os.environ["DATABASE_URL"], statement_cache_size=0)
    try:
        await schema.apply(conn)
        print("Migration applied: domain_actions and domain_events tables created")

        # Verify
        for table in ("domain_actions", "domain_events"):
            count = await conn.fetchval(
                "SELECT COUNT(*) FROM information_schema.columns WHERE table_name = $1",
                table,
            )
            print(f"{table} has {count} columns")
    finally:
        await conn.close()


if __name__ == "__main__":
    asyncio.run(main())
