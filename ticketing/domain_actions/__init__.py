"""Domain action engine: persisted, typed jobs executed transactionally."""
