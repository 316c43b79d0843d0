"""Project-wide constants."""

DB_SCHEMA = "tasklink"
