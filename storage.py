import json
from pathlib import Path
from typing import Any, Optional, Protocol

import aiosqlite

DB_PATH = Path("data/moviegpt.db")


class Storage(Protocol):
    """Namespaced key-value collection. Values are JSON-compatible."""

    namespace: str

    async def get(self, key: str) -> Optional[Any]: ...

    async def set(self, key: str, value: Any) -> None: ...

    async def remove(self, key: str) -> None: ...

    async def get_all(self) -> dict[str, Any]: ...

    async def clear(self) -> None: ...

    async def replace_all(self, values: dict[str, Any]) -> None: ...


class MemoryStorage:
    """In-process storage. Values are kept as JSON text, like browser local storage."""

    def __init__(self, namespace: str) -> None:
        self.namespace = namespace
        self._data: dict[str, str] = {}

    async def get(self, key: str) -> Optional[Any]:
        raw = self._data.get(key)
        return json.loads(raw) if raw is not None else None

    async def set(self, key: str, value: Any) -> None:
        self._data[key] = json.dumps(value)

    async def remove(self, key: str) -> None:
        self._data.pop(key, None)

    async def get_all(self) -> dict[str, Any]:
        return {key: json.loads(raw) for key, raw in self._data.items()}

    async def clear(self) -> None:
        self._data.clear()

    async def replace_all(self, values: dict[str, Any]) -> None:
        self._data = {key: json.dumps(value) for key, value in values.items()}


async def init_db(db_path: Path = DB_PATH) -> None:
    db_path.parent.mkdir(parents=True, exist_ok=True)
    async with aiosqlite.connect(db_path) as db:
        await db.execute(
            """
            CREATE TABLE IF NOT EXISTS kv (
                namespace   TEXT NOT NULL,
                key         TEXT NOT NULL,
                value       TEXT NOT NULL,
                PRIMARY KEY (namespace, key)
            )
            """
        )
        await db.commit()


class SQLiteStorage:
    """
    Storage backed by one SQLite table shared by all namespaces.
    get_all() returns keys in insertion order; overwriting a key keeps its position.
    """

    def __init__(self, namespace: str, db_path: Path = DB_PATH) -> None:
        self.namespace = namespace
        self.db_path = db_path

    async def get(self, key: str) -> Optional[Any]:
        async with aiosqlite.connect(self.db_path) as db:
            async with db.execute(
                "SELECT value FROM kv WHERE namespace = ? AND key = ?",
                (self.namespace, key),
            ) as cursor:
                row = await cursor.fetchone()
        return json.loads(row[0]) if row else None

    async def set(self, key: str, value: Any) -> None:
        async with aiosqlite.connect(self.db_path) as db:
            await db.execute(
                """
                INSERT INTO kv (namespace, key, value) VALUES (?, ?, ?)
                ON CONFLICT(namespace, key) DO UPDATE SET value = excluded.value
                """,
                (self.namespace, key, json.dumps(value)),
            )
            await db.commit()

    async def remove(self, key: str) -> None:
        async with aiosqlite.connect(self.db_path) as db:
            await db.execute(
                "DELETE FROM kv WHERE namespace = ? AND key = ?",
                (self.namespace, key),
            )
            await db.commit()

    async def get_all(self) -> dict[str, Any]:
        async with aiosqlite.connect(self.db_path) as db:
            async with db.execute(
                "SELECT key, value FROM kv WHERE namespace = ? ORDER BY rowid",
                (self.namespace,),
            ) as cursor:
                rows = await cursor.fetchall()
        return {key: json.loads(value) for key, value in rows}

    async def clear(self) -> None:
        async with aiosqlite.connect(self.db_path) as db:
            await db.execute("DELETE FROM kv WHERE namespace = ?", (self.namespace,))
            await db.commit()

    async def replace_all(self, values: dict[str, Any]) -> None:
        """Swap the whole namespace in a single transaction."""
        async with aiosqlite.connect(self.db_path) as db:
            await db.execute("DELETE FROM kv WHERE namespace = ?", (self.namespace,))
            await db.executemany(
                "INSERT INTO kv (namespace, key, value) VALUES (?, ?, ?)",
                [(self.namespace, key, json.dumps(value)) for key, value in values.items()],
            )
            await db.commit()
