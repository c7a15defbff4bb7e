"""
Database schema definition.

Manages SQLite schema creation and versioning.
"""

from regwatch.utils.logging import get_logger

logger = get_logger(__name__)

SCHEMA_VERSION = 1

_SCHEMA_V1 = (
    """
    CREATE TABLE IF NOT EXISTS jobs (
        id TEXT PRIMARY KEY,
        source_id TEXT NOT NULL,
        url TEXT NOT NULL,
        status TEXT NOT NULL DEFAULT 'pending',
        priority INTEGER NOT NULL DEFAULT 0,
        scheduled_at TEXT NOT NULL,
        started_at TEXT,
        completed_at TEXT,
        error_message TEXT,
        retry_count INTEGER NOT NULL DEFAULT 0,
        max_retries INTEGER NOT NULL DEFAULT 3,
        created_at TEXT NOT NULL,
        updated_at TEXT NOT NULL
    )
    """,
    """
    CREATE INDEX IF NOT EXISTS idx_jobs_queue
        ON jobs (status, priority DESC, scheduled_at)
    """,
    """
    CREATE TABLE IF NOT EXISTS scraped_content (
        id TEXT PRIMARY KEY,
        source_id TEXT NOT NULL,
        url TEXT NOT NULL,
        content TEXT NOT NULL,
        content_type TEXT,
        title TEXT,
        description TEXT,
        status_code INTEGER,
        last_modified TEXT,
        scraped_at TEXT NOT NULL
    )
    """,
    """
    CREATE INDEX IF NOT EXISTS idx_scraped_content_url ON scraped_content (url)
    """,
    """
    CREATE TABLE IF NOT EXISTS regulations (
        id TEXT PRIMARY KEY,
        scraped_content_id TEXT REFERENCES scraped_content (id),
        title TEXT NOT NULL,
        summary TEXT,
        effective_date TEXT,
        jurisdiction TEXT,
        affected_industries TEXT NOT NULL DEFAULT '[]',
        category TEXT,
        priority TEXT,
        key_requirements TEXT NOT NULL DEFAULT '[]',
        source_url TEXT,
        last_updated TEXT,
        created_at TEXT NOT NULL
    )
    """,
    """
    CREATE VIRTUAL TABLE IF NOT EXISTS regulations_fts USING fts5(
        title,
        content='regulations',
        content_rowid='rowid'
    )
    """,
    """
    CREATE TRIGGER IF NOT EXISTS regulations_fts_insert AFTER INSERT ON regulations BEGIN
        INSERT INTO regulations_fts (rowid, title) VALUES (new.rowid, new.title);
    END
    """,
    """
    CREATE TRIGGER IF NOT EXISTS regulations_fts_delete AFTER DELETE ON regulations BEGIN
        INSERT INTO regulations_fts (regulations_fts, rowid, title)
            VALUES ('delete', old.rowid, old.title);
    END
    """,
    """
    CREATE TRIGGER IF NOT EXISTS regulations_fts_update AFTER UPDATE ON regulations BEGIN
        INSERT INTO regulations_fts (regulations_fts, rowid, title)
            VALUES ('delete', old.rowid, old.title);
        INSERT INTO regulations_fts (rowid, title) VALUES (new.rowid, new.title);
    END
    """,
    """
    CREATE TABLE IF NOT EXISTS chunks (
        id TEXT PRIMARY KEY,
        scraped_content_id TEXT NOT NULL REFERENCES scraped_content (id),
        regulation_id TEXT REFERENCES regulations (id),
        chunk_index INTEGER NOT NULL,
        content TEXT NOT NULL,
        embedding BLOB NOT NULL,
        token_count INTEGER NOT NULL DEFAULT 0,
        metadata TEXT NOT NULL DEFAULT '{}',
        created_at TEXT NOT NULL
    )
    """,
    """
    CREATE INDEX IF NOT EXISTS idx_chunks_content ON chunks (scraped_content_id, chunk_index)
    """,
)


class SchemaManager:
    """
    Creates the schema and records its version.

    Example:
        >>> SchemaManager(connection).initialize()
    """

    def __init__(self, connection) -> None:
        self.conn = connection

    def initialize(self) -> None:
        """Create all tables if they don't exist."""
        self.conn.execute(
            """
            CREATE TABLE IF NOT EXISTS schema_version (
                version INTEGER PRIMARY KEY,
                applied_at TEXT DEFAULT CURRENT_TIMESTAMP
            )
            """
        )

        current_version = self.get_version()
        if current_version >= SCHEMA_VERSION:
            logger.debug(f"Schema version {current_version} already exists")
            return

        self.conn.execute("BEGIN IMMEDIATE")
        try:
            for statement in _SCHEMA_V1:
                self.conn.execute(statement)
            self.conn.execute(
                "INSERT OR IGNORE INTO schema_version (version) VALUES (?)",
                (SCHEMA_VERSION,),
            )
            self.conn.execute("COMMIT")
        except BaseException:
            self.conn.execute("ROLLBACK")
            raise

        logger.info(f"Created schema version {SCHEMA_VERSION}")

    def get_version(self) -> int:
        row = self.conn.execute("SELECT MAX(version) FROM schema_version").fetchone()
        return row[0] or 0
