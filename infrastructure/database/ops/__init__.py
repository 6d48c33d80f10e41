"""Low-level SQL mixins composed into ``SQLiteDatabaseHandler``."""
