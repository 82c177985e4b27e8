"""Shared fixtures: an in-memory stand-in for AsyncSession that records statements."""
from contextlib import asynccontextmanager
from typing import Any

import pytest
from sqlalchemy.dialects import postgresql
from sqlalchemy.sql.elements import TextClause

import gym_tracker.models  # noqa: F401  (registers every mapper)


class FakeResult:
    """Enough of sqlalchemy's Result for the access patterns the repositories use."""

    def __init__(self, rows: list[dict] | None = None, scalar: Any = None, rowcount: int = 0):
        self._rows = list(rows or [])
        self._scalar = scalar
        self.rowcount = rowcount

    def scalar(self):
        if self._scalar is not None:
            return self._scalar
        if self._rows:
            return next(iter(self._rows[0].values()))
        return None

    scalar_one = scalar
    scalar_one_or_none = scalar

    def scalars(self):
        values = [self._scalar] if self._scalar is not None else [next(iter(r.values())) for r in self._rows]
        return _Rows(values)

    def mappings(self):
        return _Rows(self._rows)


class _Rows:
    def __init__(self, rows: list):
        self._rows = rows

    def all(self):
        return list(self._rows)

    def first(self):
        return self._rows[0] if self._rows else None

    def one(self):
        if len(self._rows) != 1:
            raise AssertionError(f"expected exactly one row, got {len(self._rows)}")
        return self._rows[0]


class _Transaction:
    def __init__(self, session: "FakeSession"):
        self._session = session

    async def __aenter__(self):
        self._session.begins += 1
        self._session._in_tx = True
        return self

    async def __aexit__(self, exc_type, exc, tb):
        self._session._in_tx = False
        if exc_type is None:
            self._session.commits += 1
        else:
            self._session.rollbacks += 1
        return False


class _Savepoint:
    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        return False


class FakeSession:
    """Records every executed statement and answers from rules.

    `on(fragment, result)` registers a FakeResult returned for the next
    statement whose SQL contains `fragment` (case-insensitive). Rules are used
    once, in registration order, unless `repeat=True`. Unmatched statements get
    an empty result.
    """

    def __init__(self):
        self.statements: list[str] = []
        self.params: list[dict | None] = []
        self.added: list[Any] = []
        self.deleted: list[Any] = []
        self.objects: dict[tuple[type, int], Any] = {}
        self.begins = 0
        self.commits = 0
        self.rollbacks = 0
        self.closed = False
        self._in_tx = False
        self._rules: list[tuple[str, FakeResult, bool]] = []
        self._next_id = 1000

    def on(self, fragment: str, result: FakeResult, repeat: bool = False) -> "FakeSession":
        self._rules.append((fragment.lower(), result, repeat))
        return self

    @staticmethod
    def _sql(stmt) -> str:
        if isinstance(stmt, TextClause):
            sql = stmt.text
        else:
            sql = str(stmt.compile(dialect=postgresql.dialect()))
        return " ".join(sql.split()).lower()

    async def execute(self, stmt, params=None):
        sql = self._sql(stmt)
        self.statements.append(sql)
        self.params.append(params)
        # autobegin
        self._in_tx = True
        for i, (fragment, result, repeat) in enumerate(self._rules):
            if fragment in sql:
                if not repeat:
                    del self._rules[i]
                return result
        return FakeResult()

    def executed(self, fragment: str) -> list[int]:
        """Indexes of recorded statements containing `fragment`."""
        fragment = fragment.lower()
        return [i for i, sql in enumerate(self.statements) if fragment in sql]

    def in_transaction(self) -> bool:
        return self._in_tx

    def begin(self):
        return _Transaction(self)

    def begin_nested(self):
        return _Savepoint()

    def add(self, obj):
        self.added.append(obj)

    def add_all(self, objs):
        for obj in objs:
            self.add(obj)

    async def flush(self):
        for obj in self.added:
            if getattr(obj, "id", None) is None:
                obj.id = self._next_id
                self._next_id += 1

    async def refresh(self, obj):
        return None

    async def get(self, model, id):
        return self.objects.get((model, id))

    async def delete(self, obj):
        self.deleted.append(obj)

    async def close(self):
        self.closed = True


@pytest.fixture
def fake_session():
    return FakeSession()


@pytest.fixture
def session_factory(fake_session):
    @asynccontextmanager
    async def factory():
        try:
            yield fake_session
        finally:
            await fake_session.close()

    return factory
