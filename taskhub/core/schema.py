"""SQLite schema management (code-first approach)."""

import logging

from taskhub.core.db_client import DatabaseClient


logger = logging.getLogger(__name__)


# Central list of all collections, in dependency order
COLLECTIONS = [
    "users",
    "tasks",
    "notifications",
    "audit_logs",
    "user_preferences",
]

_TIMESTAMPS = """
    created TEXT NOT NULL,
    updated TEXT NOT NULL
"""

SCHEMA_STATEMENTS = [
    f"""
    CREATE TABLE IF NOT EXISTS users (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        name TEXT NOT NULL,
        email TEXT NOT NULL UNIQUE,
        role TEXT NOT NULL DEFAULT 'member' CHECK (role IN ('admin', 'manager', 'member')),
        avatar TEXT,
        {_TIMESTAMPS}
    )
    """,
    f"""
    CREATE TABLE IF NOT EXISTS tasks (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        title TEXT NOT NULL,
        description TEXT NOT NULL DEFAULT '',
        status TEXT NOT NULL DEFAULT 'todo'
            CHECK (status IN ('todo', 'in-progress', 'review', 'completed')),
        priority TEXT NOT NULL DEFAULT 'medium' CHECK (priority IN ('low', 'medium', 'high')),
        due_date TEXT NOT NULL,
        assigned_to INTEGER REFERENCES users (id) ON DELETE SET NULL,
        created_by INTEGER NOT NULL REFERENCES users (id),
        is_recurring INTEGER NOT NULL DEFAULT 0,
        recurring_pattern TEXT CHECK (recurring_pattern IN ('daily', 'weekly', 'monthly')),
        template_id INTEGER REFERENCES tasks (id) ON DELETE SET NULL,
        occurrence_date TEXT,
        {_TIMESTAMPS},
        CHECK (is_recurring = 1 OR recurring_pattern IS NULL)
    )
    """,
    f"""
    CREATE TABLE IF NOT EXISTS notifications (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        user_id INTEGER NOT NULL REFERENCES users (id) ON DELETE CASCADE,
        title TEXT NOT NULL,
        message TEXT NOT NULL,
        type TEXT NOT NULL DEFAULT 'system'
            CHECK (type IN ('task_assigned', 'task_updated', 'task_completed', 'task_overdue', 'system')),
        read INTEGER NOT NULL DEFAULT 0,
        related_task_id INTEGER REFERENCES tasks (id) ON DELETE CASCADE,
        timestamp TEXT NOT NULL,
        {_TIMESTAMPS}
    )
    """,
    f"""
    CREATE TABLE IF NOT EXISTS audit_logs (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        user_id INTEGER REFERENCES users (id) ON DELETE SET NULL,
        action TEXT NOT NULL,
        entity_type TEXT NOT NULL,
        entity_id TEXT,
        details TEXT NOT NULL DEFAULT '{{}}',
        timestamp TEXT NOT NULL,
        {_TIMESTAMPS}
    )
    """,
    f"""
    CREATE TABLE IF NOT EXISTS user_preferences (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        user_id INTEGER NOT NULL UNIQUE REFERENCES users (id) ON DELETE CASCADE,
        notifications TEXT NOT NULL DEFAULT '{{}}',
        theme TEXT NOT NULL DEFAULT '{{}}',
        dashboard TEXT NOT NULL DEFAULT '{{}}',
        {_TIMESTAMPS}
    )
    """,
    # One generated instance per template per occurrence day
    "CREATE UNIQUE INDEX IF NOT EXISTS idx_task_occurrence ON tasks (template_id, occurrence_date)",
    "CREATE INDEX IF NOT EXISTS idx_task_recurring ON tasks (is_recurring)",
    "CREATE INDEX IF NOT EXISTS idx_task_assigned ON tasks (assigned_to)",
    "CREATE INDEX IF NOT EXISTS idx_notification_user ON notifications (user_id, timestamp)",
    "CREATE INDEX IF NOT EXISTS idx_notification_task ON notifications (related_task_id)",
    "CREATE INDEX IF NOT EXISTS idx_audit_timestamp ON audit_logs (timestamp)",
]


async def init_schema(db: DatabaseClient) -> None:
    """Create all tables and indexes if they do not exist yet."""
    for statement in SCHEMA_STATEMENTS:
        await db.connection.execute(statement)
    await db.connection.commit()
    logger.info("Database schema ready", extra={"collections": COLLECTIONS, "db_path": str(db.db_path)})
