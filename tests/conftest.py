"""Shared test fixtures.

Schema used throughout:

    users --< posts --< categorizations >-- categories
"""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from types import SimpleNamespace
from typing import Any
from unittest.mock import patch

import pytest

from eager_aggregates.aggregation.registry import AggregationOwner
from eager_aggregates.core.connection import ConnectionConfig
from eager_aggregates.core.engine import Engine
from eager_aggregates.core.registry import EntityRegistry
from eager_aggregates.mapping.builder import entity


@dataclass
class User(AggregationOwner):
    id: int
    name: str


@dataclass
class Post(AggregationOwner):
    id: int
    user_id: int | None
    title: str | None
    score: int | None
    published: bool


@dataclass
class Category(AggregationOwner):
    id: int
    name: str
    active: bool


@dataclass
class Categorization:
    id: int
    post_id: int
    category_id: int


SCHEMA = [
    "CREATE TABLE users (id INTEGER PRIMARY KEY, name TEXT NOT NULL)",
    "CREATE TABLE posts (id INTEGER PRIMARY KEY, user_id INTEGER, title TEXT, "
    "score INTEGER DEFAULT 0, published BOOLEAN NOT NULL DEFAULT 0)",
    "CREATE TABLE categories (id INTEGER PRIMARY KEY, name TEXT NOT NULL, "
    "active BOOLEAN NOT NULL DEFAULT 1)",
    "CREATE TABLE categorizations (id INTEGER PRIMARY KEY, post_id INTEGER NOT NULL, "
    "category_id INTEGER NOT NULL)",
]


@pytest.fixture
def models() -> SimpleNamespace:
    """The entity classes of the test schema."""
    return SimpleNamespace(
        User=User, Post=Post, Category=Category, Categorization=Categorization
    )


@pytest.fixture
def entities() -> EntityRegistry:
    """Entity registry for the test schema."""
    return EntityRegistry(
        entity(User)
        .key("id")
        .auto_fields()
        .has_many("posts", Post)
        .has_many("categorizations", Categorization, through="posts")
        .has_many("categories", Category, through="posts")
        .build(),
        entity(Post)
        .key("id")
        .auto_fields()
        .belongs_to("user", User)
        .has_many("categorizations", Categorization)
        .has_many("categories", Category, through="categorizations", source="category")
        .scope("published", lambda r: r.where(published=True))
        .scope("high_score", lambda r: r.where_raw("score > :min_score", min_score=50))
        .build(),
        entity(Category, table="categories")
        .key("id")
        .auto_fields()
        .has_many("categorizations", Categorization)
        .scope("active", lambda r: r.where(active=True))
        .build(),
        entity(Categorization)
        .key("id")
        .auto_fields()
        .belongs_to("post", Post)
        .belongs_to("category", Category)
        .build(),
    )


@pytest.fixture
def sqlite_config() -> ConnectionConfig:
    """SQLite in-memory connection config."""
    return ConnectionConfig(driver="sqlite", database=":memory:", pool_size=1)


@pytest.fixture
def engine(sqlite_config: ConnectionConfig, entities: EntityRegistry) -> Iterator[Engine]:
    """Engine over an in-memory SQLite database with the test schema."""
    eng = Engine.from_config(sqlite_config, entities)
    for ddl in SCHEMA:
        eng.execute(ddl)
    yield eng
    eng.close()


@pytest.fixture
def insert(engine: Engine):
    """Helper to insert a row.

    Usage:
        insert("posts", id=1, user_id=1, score=10)
    """

    def _insert(table: str, **values: Any) -> None:
        columns = ", ".join(values)
        placeholders = ", ".join(f":{name}" for name in values)
        engine.execute(f"INSERT INTO {table} ({columns}) VALUES ({placeholders})", values)

    return _insert


@pytest.fixture
def count_queries(engine: Engine):
    """Context manager spying on the adapter; the spy counts executed statements.

    Usage:
        with count_queries() as spy:
            ...
        assert spy.call_count == 1
    """

    @contextmanager
    def _count() -> Iterator[Any]:
        adapter = engine.adapter
        with patch.object(adapter, "execute", wraps=adapter.execute) as spy:
            yield spy

    return _count
