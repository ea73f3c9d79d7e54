"""
Users store behavior: in-memory store operations and the SQL the Postgres
store pushes down for listings
"""

from datetime import date

import pytest

from database.users_repository import InMemoryUsersRepository, PostgresUsersRepository
from services.errors import ConflictError, NotFoundError
from services.listing import normalize_listing_params


def new_user(name="David", rut="55667788-9", email="david@example.com"):
    return {"name": name, "rut": rut, "email": email, "birthday": date(1992, 8, 12)}


class FakeConnection:
    """Records the statements a store runs and whether a transaction was open"""

    def __init__(self, rows=None, count=0):
        self.rows = rows or []
        self.count = count
        self.transactions = []
        self.statements = []
        self.in_transaction = False

    def transaction(self, **options):
        self.transactions.append(options)
        return FakeTransaction(self)

    async def fetch(self, sql, *params):
        self.statements.append((sql, params, self.in_transaction))
        return self.rows

    async def fetchval(self, sql, *params):
        self.statements.append((sql, params, self.in_transaction))
        return self.count


class FakeTransaction:
    def __init__(self, conn):
        self.conn = conn

    async def __aenter__(self):
        self.conn.in_transaction = True

    async def __aexit__(self, *exc_info):
        self.conn.in_transaction = False
        return False


class FakePool:
    def __init__(self, conn):
        self.conn = conn

    def acquire(self):
        return self

    async def __aenter__(self):
        return self.conn

    async def __aexit__(self, *exc_info):
        return False


class TestInMemoryStore:
    """CRUD semantics of the dictionary-backed store"""

    @pytest.mark.asyncio
    async def test_get_by_id(self, repository):
        user = await repository.get_user(1)
        assert user.name == "Alice"

    @pytest.mark.asyncio
    async def test_insert_assigns_fresh_id(self, repository):
        user = await repository.insert_user(new_user())
        assert user.id == 4
        assert (await repository.get_user(4)).name == "David"

    @pytest.mark.asyncio
    async def test_ids_are_not_reused_after_delete(self, repository):
        await repository.delete_user(3)
        user = await repository.insert_user(new_user())
        assert user.id == 4

    @pytest.mark.asyncio
    async def test_duplicate_rut_insert_conflicts(self, repository):
        with pytest.raises(ConflictError):
            await repository.insert_user(new_user(rut="12345678-9"))

        rows, total = await repository.list_users(normalize_listing_params(page_size=100))
        assert total == 3
        assert [u.name for u in rows if u.rut == "12345678-9"] == ["Alice"]

    @pytest.mark.asyncio
    async def test_update_replaces_fields_but_not_id(self, repository):
        updated = await repository.update_user(1, new_user(name="Alice Updated", rut="12345678-9"))
        assert updated.id == 1
        assert updated.name == "Alice Updated"
        assert (await repository.get_user(1)).email == "david@example.com"

    @pytest.mark.asyncio
    async def test_update_to_another_users_rut_conflicts(self, repository):
        with pytest.raises(ConflictError):
            await repository.update_user(1, new_user(rut="98765432-1"))
        assert (await repository.get_user(1)).name == "Alice"

    @pytest.mark.asyncio
    async def test_update_missing_user(self, repository):
        with pytest.raises(NotFoundError):
            await repository.update_user(99, new_user())

    @pytest.mark.asyncio
    async def test_delete_is_hard(self, repository):
        await repository.delete_user(2)
        with pytest.raises(NotFoundError):
            await repository.get_user(2)
        with pytest.raises(NotFoundError):
            await repository.delete_user(2)

    @pytest.mark.asyncio
    async def test_returned_records_are_copies(self, repository):
        user = await repository.get_user(1)
        user.name = "Mallory"
        assert (await repository.get_user(1)).name == "Alice"

    @pytest.mark.asyncio
    async def test_list_applies_query(self, repository):
        rows, total = await repository.list_users(
            normalize_listing_params(page="1", page_size="2", sort="name", sort_dir="desc")
        )
        assert [u.name for u in rows] == ["Charlie", "Bob"]
        assert total == 3

    @pytest.mark.asyncio
    async def test_list_on_empty_store(self, empty_repository):
        rows, total = await empty_repository.list_users(normalize_listing_params())
        assert rows == []
        assert total == 0


class TestPostgresQueryBuilding:
    """SQL generated for listing queries"""

    def setup_method(self):
        self.repository = PostgresUsersRepository()

    def test_default_listing(self):
        sql, params = self.repository.build_list_query(normalize_listing_params())
        assert sql == "SELECT id, name, rut, email, birthday FROM users ORDER BY id ASC LIMIT $1 OFFSET $2"
        assert params == [5, 0]

    def test_search_and_sort(self):
        query = normalize_listing_params(page="3", page_size="10", sort="email", sort_dir="desc", search=" ALI ")
        sql, params = self.repository.build_list_query(query)

        assert "strpos(LOWER(name), LOWER($1)) > 0" in sql
        assert "strpos(LOWER(COALESCE(email, '')), LOWER($1)) > 0" in sql
        assert "ORDER BY COALESCE(email, '') COLLATE \"C\" DESC, id ASC" in sql
        assert sql.endswith("LIMIT $2 OFFSET $3")
        assert params == ["ALI", 10, 20]

    def test_unknown_sort_orders_by_id(self):
        sql, _ = self.repository.build_list_query(normalize_listing_params(sort="password"))
        assert "ORDER BY id ASC" in sql

    def test_count_query_shares_filter(self):
        sql, params = self.repository.build_count_query(normalize_listing_params(search="bob", page="9"))
        assert sql.startswith("SELECT COUNT(*) FROM users WHERE")
        assert params == ["bob"]

    def test_count_query_without_search(self):
        assert self.repository.build_count_query(normalize_listing_params()) == ("SELECT COUNT(*) FROM users", [])

    @pytest.mark.asyncio
    async def test_out_of_range_id_is_not_found(self):
        with pytest.raises(NotFoundError):
            await self.repository.get_user(2**40)

    @pytest.mark.asyncio
    async def test_uninitialized_pool_fails(self):
        with pytest.raises(RuntimeError):
            await self.repository.get_user(1)


class TestPostgresListing:
    """Listing execution against a stand-in connection pool"""

    @pytest.fixture
    def conn(self, monkeypatch):
        conn = FakeConnection(
            rows=[{"id": 1, "name": "Alice", "rut": "12345678-9", "email": None, "birthday": date(1990, 1, 1)}],
            count=7,
        )
        monkeypatch.setattr("database.users_repository.get_db_pool", lambda: FakePool(conn))
        return conn

    @pytest.mark.asyncio
    async def test_page_and_count_share_a_snapshot(self, conn):
        rows, total = await PostgresUsersRepository().list_users(normalize_listing_params(search="ali"))

        assert [row.name for row in rows] == ["Alice"]
        assert total == 7
        assert conn.transactions == [{"isolation": "repeatable_read", "readonly": True}]
        assert len(conn.statements) == 2
        assert all(in_transaction for _, _, in_transaction in conn.statements)
        assert conn.statements[1][0].startswith("SELECT COUNT(*)")

    @pytest.mark.asyncio
    @pytest.mark.parametrize("search", ["\x00", "ali\x00ce"])
    async def test_search_with_nul_matches_nothing(self, conn, search):
        query = normalize_listing_params(search=search)
        assert await PostgresUsersRepository().list_users(query) == ([], 0)
        assert conn.statements == []

    @pytest.mark.asyncio
    async def test_search_with_nul_needs_no_pool(self):
        query = normalize_listing_params(search="\x00")
        assert await PostgresUsersRepository().list_users(query) == ([], 0)
