"""SQL repositories over a single asyncpg connection."""
