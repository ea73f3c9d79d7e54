"""
Users store implementations

Both stores expose the same operations: lookup by id, insert, update, delete,
and running a ListingQuery (filter + sort + skip/take) over their contents.
They raise NotFoundError / ConflictError from services.errors; any other
exception is an infrastructure failure.
"""

import itertools
import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional, Tuple

import asyncpg

from database.connection import get_db_pool
from models.user import UserData
from services.errors import ConflictError, NotFoundError
from services.listing import ListingQuery, apply_listing

logger = logging.getLogger(__name__)

USER_COLUMNS = "id, name, rut, email, birthday"

# users.id is a SERIAL (int4) column
MAX_USER_ID = 2**31 - 1

# Text columns sort by code point so ordering stays case-sensitive
ORDER_BY_EXPRESSIONS = {
    "id": "id",
    "name": 'name COLLATE "C"',
    "rut": 'rut COLLATE "C"',
    "email": "COALESCE(email, '') COLLATE \"C\"",
    "birthday": "birthday",
}


class UsersRepository(ABC):
    """Record store for user rows"""

    @abstractmethod
    async def list_users(self, query: ListingQuery) -> Tuple[List[UserData], int]:
        """Return the requested page and the filtered count before paging"""

    @abstractmethod
    async def get_user(self, user_id: int) -> UserData:
        """Return the user or raise NotFoundError"""

    @abstractmethod
    async def insert_user(self, values: Dict[str, Any]) -> UserData:
        """Store a new user with a freshly assigned id or raise ConflictError"""

    @abstractmethod
    async def update_user(self, user_id: int, values: Dict[str, Any]) -> UserData:
        """Replace every field but id; raise NotFoundError or ConflictError"""

    @abstractmethod
    async def delete_user(self, user_id: int) -> None:
        """Hard delete or raise NotFoundError"""

    async def ping(self) -> None:
        """Raise if the store is unreachable"""


class PostgresUsersRepository(UsersRepository):
    """Users store backed by the asyncpg pool"""

    def _pool(self):
        db_pool = get_db_pool()
        if not db_pool:
            raise RuntimeError("Database pool not initialized")
        return db_pool

    @staticmethod
    def _row_to_user(row) -> UserData:
        return UserData(**dict(row))

    def build_where_clause(self, query: ListingQuery, param_counter: int = 1) -> Tuple[str, List[Any], int]:
        """Build the search predicate; strpos avoids LIKE wildcard escaping"""
        if not query.search:
            return "", [], param_counter

        # Both sides go through the server's LOWER() so the term and the columns fold alike
        sql = (
            f" WHERE (strpos(LOWER(name), LOWER(${param_counter})) > 0"
            f" OR strpos(LOWER(COALESCE(email, '')), LOWER(${param_counter})) > 0)"
        )
        return sql, [query.search], param_counter + 1

    def build_list_query(self, query: ListingQuery) -> Tuple[str, List[Any]]:
        """Build the paged SELECT for a listing query"""
        where_sql, params, param_counter = self.build_where_clause(query)

        direction = "DESC" if query.descending else "ASC"
        order_expression = ORDER_BY_EXPRESSIONS.get(query.sort, "id")
        # id breaks ties so pages never overlap
        order_sql = f" ORDER BY {order_expression} {direction}"
        if query.sort != "id":
            order_sql += ", id ASC"

        sql = f"SELECT {USER_COLUMNS} FROM users{where_sql}{order_sql}"
        sql += f" LIMIT ${param_counter} OFFSET ${param_counter + 1}"
        params.extend([query.limit, query.offset])
        return sql, params

    def build_count_query(self, query: ListingQuery) -> Tuple[str, List[Any]]:
        where_sql, params, _ = self.build_where_clause(query)
        return f"SELECT COUNT(*) FROM users{where_sql}", params

    async def list_users(self, query: ListingQuery) -> Tuple[List[UserData], int]:
        # Postgres text cannot hold NUL, so such a term matches nothing and cannot be bound
        if query.search and "\x00" in query.search:
            logger.info("Search term contains NUL; returning an empty page")
            return [], 0

        list_sql, list_params = self.build_list_query(query)
        count_sql, count_params = self.build_count_query(query)

        logger.info(f"Executing READ query: {list_sql}")
        logger.info(f"Parameters: {list_params}")

        async with self._pool().acquire() as conn:
            # One snapshot for the page and the count
            async with conn.transaction(isolation="repeatable_read", readonly=True):
                rows = await conn.fetch(list_sql, *list_params)
                total_count = await conn.fetchval(count_sql, *count_params)

        return [self._row_to_user(row) for row in rows], int(total_count or 0)

    async def get_user(self, user_id: int) -> UserData:
        if not 0 < user_id <= MAX_USER_ID:
            raise NotFoundError(user_id)

        async with self._pool().acquire() as conn:
            row = await conn.fetchrow(f"SELECT {USER_COLUMNS} FROM users WHERE id = $1", user_id)

        if not row:
            raise NotFoundError(user_id)
        return self._row_to_user(row)

    async def insert_user(self, values: Dict[str, Any]) -> UserData:
        query = f"""
            INSERT INTO users (name, rut, email, birthday)
            VALUES ($1, $2, $3, $4)
            RETURNING {USER_COLUMNS}
        """
        params = [values["name"], values["rut"], values.get("email"), values["birthday"]]

        logger.info(f"Executing INSERT: {query.strip()}")
        logger.info(f"Parameters: {params}")

        async with self._pool().acquire() as conn:
            async with conn.transaction():
                try:
                    row = await conn.fetchrow(query, *params)
                except asyncpg.UniqueViolationError as e:
                    logger.warning(f"Unique constraint violation: {e}")
                    raise ConflictError(values["rut"]) from e

        if not row:
            raise RuntimeError("Insert operation failed - no data returned")
        return self._row_to_user(row)

    async def update_user(self, user_id: int, values: Dict[str, Any]) -> UserData:
        if not 0 < user_id <= MAX_USER_ID:
            raise NotFoundError(user_id)

        query = f"""
            UPDATE users SET name = $1, rut = $2, email = $3, birthday = $4
            WHERE id = $5
            RETURNING {USER_COLUMNS}
        """
        params = [values["name"], values["rut"], values.get("email"), values["birthday"], user_id]

        logger.info(f"Executing UPDATE: {query.strip()}")
        logger.info(f"Parameters: {params}")

        async with self._pool().acquire() as conn:
            async with conn.transaction():
                try:
                    row = await conn.fetchrow(query, *params)
                except asyncpg.UniqueViolationError as e:
                    logger.warning(f"Unique constraint violation: {e}")
                    raise ConflictError(values["rut"]) from e

        if not row:
            raise NotFoundError(user_id)
        return self._row_to_user(row)

    async def delete_user(self, user_id: int) -> None:
        if not 0 < user_id <= MAX_USER_ID:
            raise NotFoundError(user_id)

        query = "DELETE FROM users WHERE id = $1"
        logger.info(f"Executing DELETE: {query}")
        logger.info(f"Parameters: [{user_id}]")

        async with self._pool().acquire() as conn:
            async with conn.transaction():
                result = await conn.execute(query, user_id)

        # asyncpg returns "DELETE N" where N is the number of rows
        deleted_count = int(result.split()[-1]) if result else 0
        if deleted_count == 0:
            raise NotFoundError(user_id)

    async def ping(self) -> None:
        async with self._pool().acquire() as conn:
            await conn.fetchval("SELECT 1")


class InMemoryUsersRepository(UsersRepository):
    """
    Dictionary-backed users store

    Operations never await, so each one runs to completion without
    interleaving with other requests on the event loop.
    """

    def __init__(self, users: Optional[List[Dict[str, Any]]] = None):
        self._users: Dict[int, UserData] = {}
        self._ids = itertools.count(1)
        for values in users or []:
            self._insert(values)

    def _rut_owner(self, rut: str) -> Optional[int]:
        for user in self._users.values():
            if user.rut == rut:
                return user.id
        return None

    def _insert(self, values: Dict[str, Any]) -> UserData:
        if self._rut_owner(values["rut"]) is not None:
            raise ConflictError(values["rut"])

        user = UserData(
            id=next(self._ids),
            name=values["name"],
            rut=values["rut"],
            email=values.get("email"),
            birthday=values["birthday"],
        )
        self._users[user.id] = user
        return user.model_copy()

    async def list_users(self, query: ListingQuery) -> Tuple[List[UserData], int]:
        rows, total_count = apply_listing(self._users.values(), query)
        return [row.model_copy() for row in rows], total_count

    async def get_user(self, user_id: int) -> UserData:
        user = self._users.get(user_id)
        if user is None:
            raise NotFoundError(user_id)
        return user.model_copy()

    async def insert_user(self, values: Dict[str, Any]) -> UserData:
        return self._insert(values)

    async def update_user(self, user_id: int, values: Dict[str, Any]) -> UserData:
        if user_id not in self._users:
            raise NotFoundError(user_id)

        owner = self._rut_owner(values["rut"])
        if owner is not None and owner != user_id:
            raise ConflictError(values["rut"])

        user = UserData(
            id=user_id,
            name=values["name"],
            rut=values["rut"],
            email=values.get("email"),
            birthday=values["birthday"],
        )
        self._users[user_id] = user
        return user.model_copy()

    async def delete_user(self, user_id: int) -> None:
        if self._users.pop(user_id, None) is None:
            raise NotFoundError(user_id)
