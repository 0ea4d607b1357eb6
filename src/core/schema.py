"""SQLite schema management (code-first approach)."""

import logging

from src.core import db_client


logger = logging.getLogger(__name__)


# Statuses that count as "open"; kept in sync with QuestStatus.open_statuses()
OPEN_STATUS_SQL = "('unreceived', 'accepted', 'challenging', 'almost')"

TABLE_SCHEMAS: dict[str, str] = {
    "projects": """CREATE TABLE IF NOT EXISTS projects (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        created TEXT NOT NULL DEFAULT (datetime('now', 'localtime')),
        updated TEXT NOT NULL DEFAULT (datetime('now', 'localtime')),
        user_id TEXT NOT NULL,
        name TEXT NOT NULL,
        description TEXT,
        start_date TEXT,
        end_date TEXT,
        status TEXT NOT NULL DEFAULT 'active' CHECK (status IN ('active', 'archived'))
    )""",
    "quest_templates": """CREATE TABLE IF NOT EXISTS quest_templates (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        created TEXT NOT NULL DEFAULT (datetime('now', 'localtime')),
        updated TEXT NOT NULL DEFAULT (datetime('now', 'localtime')),
        user_id TEXT NOT NULL,
        project_id INTEGER REFERENCES projects(id) ON DELETE SET NULL,
        quest_name TEXT,
        project_name TEXT,
        quest_type TEXT NOT NULL
            CHECK (quest_type IN ('Daily', 'Weekly', 'Monthly', 'Yearly', 'Project', 'Relax')),
        difficulty TEXT NOT NULL DEFAULT '1' CHECK (difficulty IN ('1', '2', '3')),
        frequency INTEGER NOT NULL DEFAULT 1,
        days_of_week TEXT,
        weeks_of_month TEXT,
        dates_of_month TEXT,
        month_of_year INTEGER,
        start_date TEXT,
        end_date TEXT,
        is_active INTEGER NOT NULL DEFAULT 1,
        last_generated_at TEXT
    )""",
    "quests": """CREATE TABLE IF NOT EXISTS quests (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        created TEXT NOT NULL DEFAULT (datetime('now', 'localtime')),
        updated TEXT NOT NULL DEFAULT (datetime('now', 'localtime')),
        user_id TEXT NOT NULL,
        template_id INTEGER REFERENCES quest_templates(id) ON DELETE SET NULL,
        quest_name TEXT,
        project_name TEXT,
        quest_type TEXT NOT NULL
            CHECK (quest_type IN ('Daily', 'Weekly', 'Monthly', 'Yearly', 'Free', 'Project', 'Relax')),
        difficulty TEXT NOT NULL DEFAULT '1' CHECK (difficulty IN ('1', '2', '3')),
        status TEXT NOT NULL DEFAULT 'unreceived'
            CHECK (status IN (
                'unreceived', 'accepted', 'challenging', 'almost', 'cleared', 'paused', 'cancelled', 'failed'
            )),
        planned_time_slot TEXT,
        start_date TEXT,
        deadline TEXT,
        accepted_at TEXT,
        cleared_at TEXT
    )""",
    "quest_history": """CREATE TABLE IF NOT EXISTS quest_history (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        created TEXT NOT NULL DEFAULT (datetime('now', 'localtime')),
        updated TEXT NOT NULL DEFAULT (datetime('now', 'localtime')),
        user_id TEXT NOT NULL,
        quest_id INTEGER NOT NULL,
        template_id INTEGER,
        quest_name TEXT,
        project_name TEXT,
        quest_type TEXT NOT NULL,
        difficulty TEXT NOT NULL DEFAULT '1',
        final_status TEXT NOT NULL CHECK (final_status IN ('cleared', 'paused', 'cancelled', 'failed')),
        xp_earned INTEGER NOT NULL DEFAULT 0,
        planned_time_slot TEXT,
        recorded_at TEXT NOT NULL,
        recorded_date TEXT NOT NULL
    )""",
    "user_progression": """CREATE TABLE IF NOT EXISTS user_progression (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        created TEXT NOT NULL DEFAULT (datetime('now', 'localtime')),
        updated TEXT NOT NULL DEFAULT (datetime('now', 'localtime')),
        user_id TEXT NOT NULL UNIQUE,
        total_xp INTEGER NOT NULL DEFAULT 0,
        current_streak INTEGER NOT NULL DEFAULT 0,
        longest_streak INTEGER NOT NULL DEFAULT 0,
        last_cleared_date TEXT
    )""",
}

INDEXES: list[str] = [
    "CREATE INDEX IF NOT EXISTS idx_templates_user_active ON quest_templates (user_id, is_active)",
    "CREATE INDEX IF NOT EXISTS idx_quests_user_status ON quests (user_id, status)",
    "CREATE INDEX IF NOT EXISTS idx_history_template_date ON quest_history (template_id, recorded_date)",
    "CREATE INDEX IF NOT EXISTS idx_history_user_date ON quest_history (user_id, recorded_date)",
    "CREATE INDEX IF NOT EXISTS idx_projects_user ON projects (user_id)",
    # At most one open quest per template, enforced by storage
    (
        "CREATE UNIQUE INDEX IF NOT EXISTS idx_quests_one_open_per_template ON quests (template_id) "
        f"WHERE template_id IS NOT NULL AND status IN {OPEN_STATUS_SQL}"
    ),
]


async def init_db(*, db_path: str | None = None) -> None:
    """Create all tables and indexes (idempotent)."""
    logger.info("Initializing SQLite schema...")
    conn = await db_client.get_connection(db_path=db_path)

    for table_name, ddl in TABLE_SCHEMAS.items():
        await conn.execute(ddl)
        logger.debug("Ensured table %s", table_name)

    for index_sql in INDEXES:
        await conn.execute(index_sql)

    await conn.commit()
    logger.info("SQLite schema ready", extra={"tables": list(TABLE_SCHEMAS)})
