"""Persistence accessor for journal entries, categories and tags."""

from __future__ import annotations

import logging
import re
import sqlite3
from typing import Iterable, Sequence

from voice_journal.db.sqlite import SQLiteDatabase
from voice_journal.models.entities import (
    DEFAULT_ENTRY_TITLE,
    Category,
    CategoryStatistics,
    Entry,
    Tag,
    TagStatistics,
)
from voice_journal.utils.ids import new_id
from voice_journal.utils.time import ms_to_datetime, now_ms

logger = logging.getLogger(__name__)

# name -> (color, icon)
PREDEFINED_CATEGORIES: dict[str, tuple[str, str]] = {
    "Work": ("#007AFF", "briefcase.fill"),
    "Personal": ("#FF9500", "person.fill"),
    "Ideas": ("#FFCC00", "lightbulb.fill"),
    "Meetings": ("#34C759", "person.3.fill"),
    "Reflections": ("#AF52DE", "heart.fill"),
}

_TAG_SPLIT_RE = re.compile(r"[,\n]")

_ENTRY_COLUMNS = "id, title, audio_path, duration, transcript, summary, category_id, created_at"
_CATEGORY_COLUMNS = "id, name, color, icon, is_custom, created_at"


def parse_tag_string(text: str) -> list[str]:
    """Split ``"tag1, tag2"`` or ``"#tag1\\n#tag2"`` into clean labels."""
    labels: list[str] = []
    for part in _TAG_SPLIT_RE.split(text.replace("#", "")):
        label = part.strip()
        if label and label not in labels:
            labels.append(label)
    return labels


class EntryRepository:
    """CRUD operations over the ``entries`` table and its tag/category links."""

    def __init__(self, database: SQLiteDatabase) -> None:
        self.db = database

    # Entries ----------------------------------------------------------

    def create_entry(self, audio_path: str | None, duration: float, title: str | None = DEFAULT_ENTRY_TITLE) -> Entry:
        if duration < 0:
            raise ValueError("duration must be non-negative")
        entry_id = new_id("entry")
        now = now_ms()
        with self.db.transaction() as cur:
            cur.execute(
                """
                INSERT INTO entries (id, title, audio_path, duration, created_at, updated_at)
                VALUES (?, ?, ?, ?, ?, ?)
                """,
                [entry_id, title, audio_path, float(duration), now, now],
            )
        logger.debug("Created entry %s for %s", entry_id, audio_path)
        return Entry(
            id=entry_id,
            audio_path=audio_path,
            duration=float(duration),
            created_at=ms_to_datetime(now),
            title=title,
        )

    def fetch_all(self) -> list[Entry]:
        """Return every entry, newest first."""
        rows = self.db.query(f"SELECT {_ENTRY_COLUMNS} FROM entries ORDER BY created_at DESC, rowid DESC")
        tags = self._tags_by_entry()
        return [_row_to_entry(row, tags.get(row["id"], ())) for row in rows]

    def fetch_entries(
        self,
        category_id: str | None = None,
        tag: str | None = None,
        uncategorized: bool = False,
    ) -> list[Entry]:
        """Entries filtered by category and/or tag label, newest first."""
        clauses: list[str] = []
        params: list[object] = []
        if uncategorized:
            clauses.append("category_id IS NULL")
        elif category_id is not None:
            clauses.append("category_id = ?")
            params.append(category_id)
        if tag is not None:
            clauses.append(
                "id IN (SELECT et.entry_id FROM entry_tags et JOIN tags t ON t.id = et.tag_id WHERE t.label = ?)"
            )
            params.append(tag.strip())
        where = f"WHERE {' AND '.join(clauses)}" if clauses else ""
        rows = self.db.query(
            f"SELECT {_ENTRY_COLUMNS} FROM entries {where} ORDER BY created_at DESC, rowid DESC",
            params,
        )
        tags = self._tags_by_entry()
        return [_row_to_entry(row, tags.get(row["id"], ())) for row in rows]

    def get_entry(self, entry_id: str) -> Entry | None:
        row = self.db.query_one(f"SELECT {_ENTRY_COLUMNS} FROM entries WHERE id = ?", [entry_id])
        if row is None:
            return None
        return _row_to_entry(row, tuple(self._tags_for(entry_id)))

    def media_paths(self) -> set[str]:
        """Every stored media reference, in one query."""
        rows = self.db.query("SELECT audio_path FROM entries WHERE audio_path IS NOT NULL AND audio_path != ''")
        return {row["audio_path"] for row in rows}

    def update_entry(self, entry_id: str, transcript: str | None = None, summary: str | None = None) -> bool:
        """Set transcript and/or summary; the media reference is never touched."""
        updates: list[str] = []
        params: list[object] = []
        if transcript is not None:
            updates.append("transcript = ?")
            params.append(transcript)
        if summary is not None:
            updates.append("summary = ?")
            params.append(summary)
        if not updates:
            return False
        updates.append("updated_at = ?")
        params.extend([now_ms(), entry_id])
        with self.db.transaction() as cur:
            cur.execute(f"UPDATE entries SET {', '.join(updates)} WHERE id = ?", params)
            return cur.rowcount > 0

    def delete_entry(self, entry_id: str) -> bool:
        with self.db.transaction() as cur:
            cur.execute("DELETE FROM entries WHERE id = ?", [entry_id])
            return cur.rowcount > 0

    def count(self) -> int:
        row = self.db.query_one("SELECT COUNT(*) AS n FROM entries")
        return int(row["n"]) if row else 0

    def ping(self) -> bool:
        return self.db.ping()

    # Categories -------------------------------------------------------

    def ensure_predefined_categories(self) -> int:
        created = 0
        with self.db.transaction() as cur:
            for name, (color, icon) in PREDEFINED_CATEGORIES.items():
                cur.execute(
                    """
                    INSERT OR IGNORE INTO categories (id, name, color, icon, is_custom, created_at)
                    VALUES (?, ?, ?, ?, 0, ?)
                    """,
                    [new_id("cat"), name, color, icon, now_ms()],
                )
                created += cur.rowcount
        return created

    def create_category(self, name: str, color: str | None = None, icon: str | None = None) -> Category:
        """Create a custom category; a duplicate name raises ``sqlite3.IntegrityError``."""
        category_id = new_id("cat")
        now = now_ms()
        with self.db.transaction() as cur:
            cur.execute(
                "INSERT INTO categories (id, name, color, icon, is_custom, created_at) VALUES (?, ?, ?, ?, 1, ?)",
                [category_id, name.strip(), color, icon, now],
            )
        return Category(
            id=category_id, name=name.strip(), color=color, icon=icon, is_custom=True, created_at=ms_to_datetime(now)
        )

    def get_category(self, category_id: str) -> Category | None:
        row = self.db.query_one(f"SELECT {_CATEGORY_COLUMNS} FROM categories WHERE id = ?", [category_id])
        return _row_to_category(row) if row is not None else None

    def list_categories(self) -> list[Category]:
        rows = self.db.query(f"SELECT {_CATEGORY_COLUMNS} FROM categories ORDER BY is_custom, name")
        return [_row_to_category(row) for row in rows]

    def update_category(
        self,
        category_id: str,
        name: str | None = None,
        color: str | None = None,
        icon: str | None = None,
    ) -> Category | None:
        """Change any of name, color and icon; returns ``None`` for an unknown id."""
        updates: list[str] = []
        params: list[object] = []
        for column, value in (("name", name.strip() if name else None), ("color", color), ("icon", icon)):
            if value is not None:
                updates.append(f"{column} = ?")
                params.append(value)
        if updates:
            with self.db.transaction() as cur:
                cur.execute(f"UPDATE categories SET {', '.join(updates)} WHERE id = ?", [*params, category_id])
        return self.get_category(category_id)

    def delete_category(self, category_id: str) -> bool:
        """Delete a custom category and unassign it from its entries.

        Predefined categories are never deleted.
        """
        with self.db.transaction() as cur:
            row = cur.execute("SELECT is_custom FROM categories WHERE id = ?", [category_id]).fetchone()
            if row is None or not row["is_custom"]:
                return False
            cur.execute(
                "UPDATE entries SET category_id = NULL, updated_at = ? WHERE category_id = ?",
                [now_ms(), category_id],
            )
            cur.execute("DELETE FROM categories WHERE id = ?", [category_id])
        return True

    def assign_category(self, entry_id: str, category_id: str | None) -> bool:
        """Assign a category to an entry; ``None`` clears it."""
        try:
            with self.db.transaction() as cur:
                cur.execute(
                    "UPDATE entries SET category_id = ?, updated_at = ? WHERE id = ?",
                    [category_id, now_ms(), entry_id],
                )
                return cur.rowcount > 0
        except sqlite3.IntegrityError:
            logger.warning("Unknown category %s for entry %s", category_id, entry_id)
            return False

    def category_statistics(self) -> list[CategoryStatistics]:
        """Per-category entry counts and durations plus an "Uncategorized" bucket, busiest first."""
        rows = self.db.query(
            """
            SELECT c.id, c.name, c.color, c.icon, c.is_custom, c.created_at,
                   COUNT(e.id) AS entry_count, COALESCE(SUM(e.duration), 0) AS total_duration
            FROM categories c LEFT JOIN entries e ON e.category_id = c.id
            GROUP BY c.id
            """
        )
        stats = [
            CategoryStatistics(
                category=_row_to_category(row),
                entry_count=int(row["entry_count"]),
                total_duration=float(row["total_duration"]),
            )
            for row in rows
        ]
        loose = self.db.query_one(
            "SELECT COUNT(*) AS n, COALESCE(SUM(duration), 0) AS total FROM entries WHERE category_id IS NULL"
        )
        stats.append(CategoryStatistics(category=None, entry_count=int(loose["n"]), total_duration=float(loose["total"])))
        stats.sort(key=lambda stat: (-stat.entry_count, stat.name))
        return stats

    # Tags -------------------------------------------------------------

    def set_tags(self, entry_id: str, labels: Iterable[str]) -> tuple[str, ...]:
        """Replace the tags of an entry, creating unknown labels."""
        clean = [label.strip() for label in labels if label and label.strip()]
        with self.db.transaction() as cur:
            cur.execute("DELETE FROM entry_tags WHERE entry_id = ?", [entry_id])
            for label in dict.fromkeys(clean):
                cur.execute(
                    "INSERT OR IGNORE INTO entry_tags (entry_id, tag_id) VALUES (?, ?)",
                    [entry_id, _tag_id(cur, label)],
                )
        return tuple(self._tags_for(entry_id))

    def list_tags(self) -> list[Tag]:
        rows = self.db.query("SELECT id, label, created_at FROM tags ORDER BY label")
        return [_row_to_tag(row) for row in rows]

    def search_tags(self, query: str, limit: int = 10) -> list[Tag]:
        """Case-insensitive substring match, most used first."""
        pattern = "%" + query.strip().replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_") + "%"
        rows = self.db.query(
            """
            SELECT t.id, t.label, t.created_at, COUNT(et.entry_id) AS uses
            FROM tags t LEFT JOIN entry_tags et ON et.tag_id = t.id
            WHERE t.label LIKE ? ESCAPE '\\'
            GROUP BY t.id
            ORDER BY uses DESC, t.label
            LIMIT ?
            """,
            [pattern, limit],
        )
        return [_row_to_tag(row) for row in rows]

    def tag_statistics(self) -> list[TagStatistics]:
        rows = self.db.query(
            """
            SELECT t.id, t.label, t.created_at,
                   COUNT(e.id) AS entry_count, COALESCE(SUM(e.duration), 0) AS total_duration
            FROM tags t
            LEFT JOIN entry_tags et ON et.tag_id = t.id
            LEFT JOIN entries e ON e.id = et.entry_id
            GROUP BY t.id
            ORDER BY entry_count DESC, t.label
            """
        )
        return [
            TagStatistics(
                tag=_row_to_tag(row),
                entry_count=int(row["entry_count"]),
                total_duration=float(row["total_duration"]),
            )
            for row in rows
        ]

    def merge_tags(self, sources: Iterable[str], target: str) -> int:
        """Move every entry tagged with a source label onto ``target``.

        The source tags are deleted; ``target`` is created when missing.
        Returns the number of entries that gained the target tag.
        """
        target = target.strip()
        labels = [label.strip() for label in sources if label and label.strip() and label.strip() != target]
        moved = 0
        with self.db.transaction() as cur:
            target_id = _tag_id(cur, target)
            for label in dict.fromkeys(labels):
                row = cur.execute("SELECT id FROM tags WHERE label = ?", [label]).fetchone()
                if row is None:
                    continue
                cur.execute(
                    """
                    INSERT OR IGNORE INTO entry_tags (entry_id, tag_id)
                    SELECT entry_id, ? FROM entry_tags WHERE tag_id = ?
                    """,
                    [target_id, row["id"]],
                )
                moved += cur.rowcount
                cur.execute("DELETE FROM tags WHERE id = ?", [row["id"]])
        logger.info("Merged %s into %s", labels, target, extra={"ctx_entries": moved})
        return moved

    def remove_unused_tags(self) -> int:
        with self.db.transaction() as cur:
            cur.execute("DELETE FROM tags WHERE id NOT IN (SELECT DISTINCT tag_id FROM entry_tags)")
            removed = cur.rowcount
        if removed:
            logger.info("Removed %s unused tags", removed)
        return removed

    # Internal helpers -------------------------------------------------

    def _tags_for(self, entry_id: str) -> Sequence[str]:
        rows = self.db.query(
            """
            SELECT t.label FROM entry_tags et JOIN tags t ON t.id = et.tag_id
            WHERE et.entry_id = ? ORDER BY t.label
            """,
            [entry_id],
        )
        return [row["label"] for row in rows]

    def _tags_by_entry(self) -> dict[str, tuple[str, ...]]:
        rows = self.db.query(
            "SELECT et.entry_id, t.label FROM entry_tags et JOIN tags t ON t.id = et.tag_id ORDER BY t.label"
        )
        grouped: dict[str, list[str]] = {}
        for row in rows:
            grouped.setdefault(row["entry_id"], []).append(row["label"])
        return {entry_id: tuple(labels) for entry_id, labels in grouped.items()}


def _row_to_entry(row: sqlite3.Row, tags: tuple[str, ...]) -> Entry:
    return Entry(
        id=row["id"],
        audio_path=row["audio_path"],
        duration=float(row["duration"]),
        created_at=ms_to_datetime(row["created_at"]),
        title=row["title"],
        transcript=row["transcript"],
        summary=row["summary"],
        category_id=row["category_id"],
        tags=tags,
    )


def _row_to_category(row: sqlite3.Row) -> Category:
    return Category(
        id=row["id"],
        name=row["name"],
        color=row["color"],
        icon=row["icon"],
        is_custom=bool(row["is_custom"]),
        created_at=ms_to_datetime(row["created_at"]),
    )


def _row_to_tag(row: sqlite3.Row) -> Tag:
    return Tag(id=row["id"], label=row["label"], created_at=ms_to_datetime(row["created_at"]))


def _tag_id(cur: sqlite3.Cursor, label: str) -> str:
    """Return the id of ``label``, inserting the tag when it does not exist."""
    existing = cur.execute("SELECT id FROM tags WHERE label = ?", [label]).fetchone()
    if existing:
        return existing["id"]
    tag_id = new_id("tag")
    cur.execute("INSERT INTO tags (id, label, created_at) VALUES (?, ?, ?)", [tag_id, label, now_ms()])
    return tag_id


__all__ = ["EntryRepository", "PREDEFINED_CATEGORIES", "parse_tag_string"]
