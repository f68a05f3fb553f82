"""SQLite persistence for handbooks, chapter slots and the concept graph."""

import json
import logging
import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Optional

from config.exceptions import DatabaseError, ValidationError
from models.chapter import ChapterRecord, HandbookRecord
from models.concept import EdgeRecord, PageRecord, TopicContext
from models.enums import EdgeType, PageKind, coerce_enum
from tools.text_utils import slugify

logger = logging.getLogger(__name__)

_CREATE_TABLES_SQL = """
CREATE TABLE IF NOT EXISTS handbooks (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    title TEXT NOT NULL,
    slug TEXT NOT NULL UNIQUE,
    description TEXT DEFAULT '',
    chapters_count INTEGER DEFAULT 0,
    created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
    updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
);

CREATE TABLE IF NOT EXISTS chapters (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    handbook_id INTEGER NOT NULL REFERENCES handbooks(id) ON DELETE CASCADE,
    sort_order INTEGER NOT NULL,
    title TEXT NOT NULL DEFAULT '',
    description TEXT DEFAULT '',
    content TEXT,
    created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
    updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
);

CREATE TABLE IF NOT EXISTS topics (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    title TEXT NOT NULL,
    slug TEXT NOT NULL UNIQUE,
    description TEXT DEFAULT '',
    subject TEXT DEFAULT '',
    section TEXT DEFAULT '',
    created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
    updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
);

CREATE TABLE IF NOT EXISTS pages (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    topic_id INTEGER NOT NULL REFERENCES topics(id) ON DELETE CASCADE,
    kind TEXT NOT NULL CHECK (kind IN ('concept', 'source_material')),
    title TEXT NOT NULL,
    markdown TEXT NOT NULL DEFAULT '',
    tags TEXT NOT NULL DEFAULT '[]',
    created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
    updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
    UNIQUE (topic_id, kind, title)
);

CREATE TABLE IF NOT EXISTS edges (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    source_page_id INTEGER NOT NULL REFERENCES pages(id) ON DELETE CASCADE,
    target_page_id INTEGER NOT NULL REFERENCES pages(id) ON DELETE CASCADE,
    type TEXT NOT NULL CHECK (type IN ('prereq', 'extends', 'example', 'contrast')),
    created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
    UNIQUE (source_page_id, target_page_id, type),
    CHECK (source_page_id != target_page_id)
);
"""

# Idempotent indexes, applied after table creation
_MIGRATION_SQL = [
    "CREATE UNIQUE INDEX IF NOT EXISTS idx_chapters_handbook_order ON chapters(handbook_id, sort_order)",
    "CREATE INDEX IF NOT EXISTS idx_chapters_handbook ON chapters(handbook_id)",
    "CREATE INDEX IF NOT EXISTS idx_pages_topic ON pages(topic_id)",
    "CREATE INDEX IF NOT EXISTS idx_edges_source ON edges(source_page_id)",
]

DEFAULT_HANDBOOK_DESCRIPTION = "Abridged retelling of the work."


class Database:
    """SQLite database manager for handbook persistence.

    Handbooks are keyed by slug; chapter slots by (handbook_id, sort_order)
    with a 0-based sort order. Every sqlite failure surfaces as DatabaseError.
    """

    def __init__(self, db_path: str | Path):
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._init_db()

    def _get_conn(self) -> sqlite3.Connection:
        conn = sqlite3.connect(str(self.db_path))
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA foreign_keys = ON")
        conn.execute("PRAGMA journal_mode = WAL")
        return conn

    @contextmanager
    def _transaction(self) -> Iterator[sqlite3.Connection]:
        try:
            conn = self._get_conn()
        except sqlite3.Error as e:
            raise DatabaseError(f"Cannot open database: {e}", {"path": str(self.db_path)}) from e
        try:
            with conn:
                yield conn
        except sqlite3.Error as e:
            raise DatabaseError(f"Database operation failed: {e}") from e
        finally:
            conn.close()

    def _init_db(self):
        with self._transaction() as conn:
            conn.executescript(_CREATE_TABLES_SQL)
            for sql in _MIGRATION_SQL:
                conn.execute(sql)

    # ---- Handbooks ----

    def upsert_handbook(self, title: str, description: str = "") -> int:
        """Create or update the handbook whose slug matches ``title``. Returns its id."""
        slug = slugify(title)
        if not slug:
            raise DatabaseError("Handbook title produces an empty slug", {"title": title})
        description = description or DEFAULT_HANDBOOK_DESCRIPTION
        with self._transaction() as conn:
            conn.execute(
                "INSERT INTO handbooks (title, slug, description) VALUES (?, ?, ?) "
                "ON CONFLICT(slug) DO UPDATE SET title=excluded.title, "
                "description=excluded.description, updated_at=CURRENT_TIMESTAMP",
                (title, slug, description),
            )
            row = conn.execute("SELECT id FROM handbooks WHERE slug = ?", (slug,)).fetchone()
        logger.debug("Upserted handbook %r (id=%d, slug=%s)", title, row["id"], slug)
        return row["id"]

    def get_handbook(self, handbook_id: int) -> Optional[HandbookRecord]:
        with self._transaction() as conn:
            row = conn.execute("SELECT * FROM handbooks WHERE id = ?", (handbook_id,)).fetchone()
        return self._row_to_handbook(row) if row else None

    def get_handbook_by_slug(self, slug: str) -> Optional[HandbookRecord]:
        with self._transaction() as conn:
            row = conn.execute("SELECT * FROM handbooks WHERE slug = ?", (slug,)).fetchone()
        return self._row_to_handbook(row) if row else None

    def list_handbooks(self) -> list[HandbookRecord]:
        with self._transaction() as conn:
            rows = conn.execute("SELECT * FROM handbooks ORDER BY id").fetchall()
        return [self._row_to_handbook(r) for r in rows]

    def update_chapter_count(self, handbook_id: int, count: int):
        with self._transaction() as conn:
            cursor = conn.execute(
                "UPDATE handbooks SET chapters_count = ?, updated_at = CURRENT_TIMESTAMP WHERE id = ?",
                (count, handbook_id),
            )
            if cursor.rowcount == 0:
                raise DatabaseError("Handbook not found", {"handbook_id": handbook_id})

    def _row_to_handbook(self, row) -> HandbookRecord:
        return HandbookRecord(
            id=row["id"], title=row["title"], slug=row["slug"],
            description=row["description"] or "",
            chapters_count=row["chapters_count"] or 0,
            created_at=row["created_at"], updated_at=row["updated_at"],
        )

    # ---- Chapter slots ----

    def ensure_chapter_slot(self, handbook_id: int, sort_order: int, title: str, description: str = "") -> int:
        """Create the (handbook_id, sort_order) slot if missing. Returns its id.

        An existing slot keeps its content; only title and description are refreshed.
        """
        if sort_order < 0:
            raise DatabaseError("sort_order must be >= 0", {"sort_order": sort_order})
        with self._transaction() as conn:
            conn.execute(
                "INSERT INTO chapters (handbook_id, sort_order, title, description) VALUES (?, ?, ?, ?) "
                "ON CONFLICT(handbook_id, sort_order) DO UPDATE SET title=excluded.title, "
                "description=excluded.description, updated_at=CURRENT_TIMESTAMP",
                (handbook_id, sort_order, title, description),
            )
            row = conn.execute(
                "SELECT id FROM chapters WHERE handbook_id = ? AND sort_order = ?",
                (handbook_id, sort_order),
            ).fetchone()
        return row["id"]

    def set_chapter_content(self, handbook_id: int, sort_order: int, content: str):
        with self._transaction() as conn:
            cursor = conn.execute(
                "UPDATE chapters SET content = ?, updated_at = CURRENT_TIMESTAMP "
                "WHERE handbook_id = ? AND sort_order = ?",
                (content, handbook_id, sort_order),
            )
            if cursor.rowcount == 0:
                raise DatabaseError(
                    "Chapter slot not found",
                    {"handbook_id": handbook_id, "sort_order": sort_order},
                )

    def get_chapters(self, handbook_id: int) -> list[ChapterRecord]:
        with self._transaction() as conn:
            rows = conn.execute(
                "SELECT * FROM chapters WHERE handbook_id = ? ORDER BY sort_order",
                (handbook_id,),
            ).fetchall()
        return [self._row_to_chapter(r) for r in rows]

    def _row_to_chapter(self, row) -> ChapterRecord:
        return ChapterRecord(
            id=row["id"], handbook_id=row["handbook_id"],
            sort_order=row["sort_order"], title=row["title"],
            description=row["description"] or "", content=row["content"],
            created_at=row["created_at"], updated_at=row["updated_at"],
        )

    # ---- Concept graph ----

    def upsert_topic(self, topic: TopicContext) -> int:
        """Create or update the topic whose slug matches its title. Returns its id."""
        slug = slugify(topic.title)
        if not slug:
            raise DatabaseError("Topic title produces an empty slug", {"title": topic.title})
        with self._transaction() as conn:
            conn.execute(
                "INSERT INTO topics (title, slug, description, subject, section) VALUES (?, ?, ?, ?, ?) "
                "ON CONFLICT(slug) DO UPDATE SET title=excluded.title, description=excluded.description, "
                "subject=excluded.subject, section=excluded.section, updated_at=CURRENT_TIMESTAMP",
                (topic.title, slug, topic.description, topic.subject, topic.section),
            )
            row = conn.execute("SELECT id FROM topics WHERE slug = ?", (slug,)).fetchone()
        return row["id"]

    def upsert_page(self, topic_id: int, kind: PageKind, title: str, markdown: str,
                    tags: Optional[list[str]] = None) -> int:
        """Create or replace the (topic, kind, title) page. Returns its id."""
        with self._transaction() as conn:
            conn.execute(
                "INSERT INTO pages (topic_id, kind, title, markdown, tags) VALUES (?, ?, ?, ?, ?) "
                "ON CONFLICT(topic_id, kind, title) DO UPDATE SET markdown=excluded.markdown, "
                "tags=excluded.tags, updated_at=CURRENT_TIMESTAMP",
                (topic_id, kind.value, title, markdown, json.dumps(tags or [], ensure_ascii=False)),
            )
            row = conn.execute(
                "SELECT id FROM pages WHERE topic_id = ? AND kind = ? AND title = ?",
                (topic_id, kind.value, title),
            ).fetchone()
        logger.debug("Upserted %s page %r (id=%d)", kind.value, title, row["id"])
        return row["id"]

    def get_page(self, topic_id: int, kind: PageKind, title: str) -> Optional[PageRecord]:
        with self._transaction() as conn:
            row = conn.execute(
                "SELECT * FROM pages WHERE topic_id = ? AND kind = ? AND title = ?",
                (topic_id, kind.value, title),
            ).fetchone()
        return self._row_to_page(row) if row else None

    def get_pages(self, topic_id: int, kind: Optional[PageKind] = None) -> list[PageRecord]:
        sql = "SELECT * FROM pages WHERE topic_id = ?"
        params: tuple = (topic_id,)
        if kind is not None:
            sql += " AND kind = ?"
            params += (kind.value,)
        with self._transaction() as conn:
            rows = conn.execute(sql + " ORDER BY id", params).fetchall()
        return [self._row_to_page(r) for r in rows]

    def add_edge(self, source_page_id: int, target_page_id: int, edge_type: EdgeType) -> bool:
        """Link two pages. Returns False when the edge already exists.

        Raises ValidationError for an edge from a page to itself.
        """
        if source_page_id == target_page_id:
            raise ValidationError("Self-edge not allowed", {"page_id": source_page_id})
        with self._transaction() as conn:
            cursor = conn.execute(
                "INSERT OR IGNORE INTO edges (source_page_id, target_page_id, type) VALUES (?, ?, ?)",
                (source_page_id, target_page_id, edge_type.value),
            )
            inserted = cursor.rowcount == 1
        return inserted

    def get_edges(self, topic_id: int) -> list[EdgeRecord]:
        """Edges whose source page belongs to the topic, in insertion order."""
        with self._transaction() as conn:
            rows = conn.execute(
                "SELECT e.* FROM edges e JOIN pages p ON p.id = e.source_page_id "
                "WHERE p.topic_id = ? ORDER BY e.id",
                (topic_id,),
            ).fetchall()
        return [
            EdgeRecord(
                id=r["id"], source_page_id=r["source_page_id"], target_page_id=r["target_page_id"],
                type=coerce_enum(EdgeType, r["type"], EdgeType.PREREQ),
            )
            for r in rows
        ]

    def _row_to_page(self, row) -> PageRecord:
        try:
            tags = json.loads(row["tags"] or "[]")
        except ValueError:
            tags = []
        return PageRecord(
            id=row["id"], topic_id=row["topic_id"],
            kind=coerce_enum(PageKind, row["kind"], PageKind.CONCEPT),
            title=row["title"], markdown=row["markdown"] or "", tags=tags,
            created_at=row["created_at"], updated_at=row["updated_at"],
        )
