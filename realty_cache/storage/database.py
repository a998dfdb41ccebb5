import json
import logging
from pathlib import Path

import aiosqlite

from realty_cache.models.listing import Community, OfferingType, PageMeta, PropertyType

logger = logging.getLogger(__name__)


class DatabaseManager:
    """Async SQLite store for the site's lookup tables.

    All SQL lives in this class. Other layers call typed methods that accept
    and return Pydantic models.
    """

    def __init__(self, db_path: Path | str) -> None:
        self.db_path = str(db_path)
        self.connection: aiosqlite.Connection | None = None

    async def initialize(self) -> None:
        """Open connection, enable WAL mode, execute schema."""
        self.connection = await aiosqlite.connect(self.db_path)
        self.connection.row_factory = aiosqlite.Row
        schema_sql = (Path(__file__).parent / "schema.sql").read_text()
        await self.connection.executescript(schema_sql)
        await self.connection.execute("PRAGMA journal_mode=WAL")
        await self.connection.commit()
        logger.info(f"Database initialized at {self.db_path}")

    async def close(self) -> None:
        if self.connection:
            await self.connection.close()
            self.connection = None

    async def __aenter__(self) -> "DatabaseManager":
        await self.initialize()
        return self

    async def __aexit__(
        self, exc_type: type | None, exc_val: Exception | None, exc_tb: object
    ) -> None:
        await self.close()

    async def execute(self, sql: str, params: tuple = ()) -> aiosqlite.Cursor:
        """Execute a single SQL statement and commit."""
        assert self.connection is not None
        cursor = await self.connection.execute(sql, params)
        await self.connection.commit()
        return cursor

    async def fetch_one(self, sql: str, params: tuple = ()) -> dict | None:
        assert self.connection is not None
        cursor = await self.connection.execute(sql, params)
        row = await cursor.fetchone()
        if row is None:
            return None
        return dict(row)

    async def fetch_all(self, sql: str, params: tuple = ()) -> list[dict]:
        assert self.connection is not None
        cursor = await self.connection.execute(sql, params)
        rows = await cursor.fetchall()
        return [dict(r) for r in rows]

    # ── Offering / Property Types ─────────────────────────────────────────

    async def get_offering_types(self) -> list[OfferingType]:
        rows = await self.fetch_all("SELECT id, name, slug FROM offering_types ORDER BY name")
        return [OfferingType(**r) for r in rows]

    async def save_offering_type(self, offering: OfferingType) -> None:
        await self.execute(
            "INSERT OR REPLACE INTO offering_types (id, name, slug) VALUES (?, ?, ?)",
            (offering.id, offering.name, offering.slug),
        )

    async def get_property_types(self) -> list[PropertyType]:
        rows = await self.fetch_all("SELECT id, name, slug FROM property_types ORDER BY name")
        return [PropertyType(**r) for r in rows]

    async def save_property_type(self, property_type: PropertyType) -> None:
        await self.execute(
            "INSERT OR REPLACE INTO property_types (id, name, slug) VALUES (?, ?, ?)",
            (property_type.id, property_type.name, property_type.slug),
        )

    # ── Communities ───────────────────────────────────────────────────────

    async def get_communities(self, luxe_only: bool = False) -> list[Community]:
        sql = "SELECT id, name, slug, city, is_luxe FROM communities"
        if luxe_only:
            sql += " WHERE is_luxe = 1"
        rows = await self.fetch_all(sql + " ORDER BY name")
        return [
            Community(
                id=r["id"],
                name=r["name"],
                slug=r["slug"],
                city=r["city"],
                is_luxe=bool(r["is_luxe"]),
            )
            for r in rows
        ]

    async def save_community(self, community: Community) -> None:
        await self.execute(
            """INSERT OR REPLACE INTO communities (id, name, slug, city, is_luxe)
               VALUES (?, ?, ?, ?, ?)""",
            (
                community.id,
                community.name,
                community.slug,
                community.city,
                int(community.is_luxe),
            ),
        )

    # ── Page Metadata ─────────────────────────────────────────────────────

    async def get_page_meta(self, path: str) -> PageMeta | None:
        row = await self.fetch_one("SELECT * FROM page_meta WHERE path = ?", (path,))
        if not row:
            return None
        return PageMeta(
            path=row["path"],
            title=row["title"],
            meta_title=row["meta_title"],
            meta_description=row["meta_description"],
            keywords=json.loads(row["keywords"]),
        )

    async def save_page_meta(self, meta: PageMeta) -> None:
        await self.execute(
            """INSERT OR REPLACE INTO page_meta
               (path, title, meta_title, meta_description, keywords, updated_at)
               VALUES (?, ?, ?, ?, ?, datetime('now'))""",
            (
                meta.path,
                meta.title,
                meta.meta_title,
                meta.meta_description,
                json.dumps(meta.keywords),
            ),
        )
