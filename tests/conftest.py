import pytest
import pytest_asyncio
from sqlalchemy import event

from modelfunc.core.config import Settings
from modelfunc.core.database import Database
from modelfunc.services.model_func import ModelFunc

from support import Article, ColumnLink, RecordingCache, User


class QueryCounter:
    """Counts SELECT statements sent to the store."""

    def __init__(self):
        self.selects = 0
        self.statements = []

    def __call__(self, conn, cursor, statement, parameters, context, executemany):
        self.statements.append(statement)
        if statement.lstrip().upper().startswith("SELECT"):
            self.selects += 1

    def reset(self):
        self.selects = 0
        self.statements = []


@pytest.fixture(autouse=True)
def isolated_cwd(tmp_path, monkeypatch):
    """Keep the default SQLite directory and .env lookups inside tmp_path."""
    monkeypatch.chdir(tmp_path)


@pytest.fixture
def settings():
    return Settings(database_url="sqlite+aiosqlite:///:memory:", cache_ttl=60)


@pytest_asyncio.fixture
async def database(settings):
    db = Database(settings)
    await db.startup()
    yield db
    await db.shutdown()


@pytest.fixture
def queries(database):
    counter = QueryCounter()
    event.listen(database.engine.sync_engine, "before_cursor_execute", counter)
    yield counter
    event.remove(database.engine.sync_engine, "before_cursor_execute", counter)


@pytest.fixture
def cache(settings):
    return RecordingCache(settings)


@pytest.fixture
def email_link():
    return ColumnLink("email")


@pytest.fixture
def name_link():
    return ColumnLink("name")


@pytest.fixture
def users(database, cache, email_link, name_link):
    return ModelFunc(
        User,
        database,
        use_cache=True,
        cache=cache,
        prefix="user:",
        expire=60,
        link_map={"email": email_link, "name": name_link},
    )


@pytest.fixture
def articles(database, cache):
    Article.hook_calls.clear()
    Article.hook_state["error"] = None
    yield ModelFunc(Article, database, use_cache=True, cache=cache, prefix="article:")
    Article.hook_calls.clear()
    Article.hook_state["error"] = None
