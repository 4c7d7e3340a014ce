"""SQLite database schema definitions."""

SCHEMA_SQL = """
-- Daily weight and calorie entries, one per user per day
CREATE TABLE IF NOT EXISTS entries (
    entry_id TEXT PRIMARY KEY,
    user_id TEXT NOT NULL,
    date DATE NOT NULL,
    weight TEXT NOT NULL CHECK(CAST(weight AS REAL) > 0),  -- DECIMAL(5, 2) as text
    calories INTEGER NOT NULL CHECK(calories > 0),
    created_at TIMESTAMP NOT NULL,
    updated_at TIMESTAMP NOT NULL,
    CONSTRAINT entries_user_date_unique UNIQUE(user_id, date)
);

CREATE INDEX IF NOT EXISTS idx_entries_user_date ON entries(user_id, date);
"""


def get_schema_sql() -> str:
    """Return the complete schema SQL."""
    return SCHEMA_SQL
