"""
Errors raised by the users store
"""


class StoreError(Exception):
    """Base class for store-level failures the service layer translates"""


class NotFoundError(StoreError):
    """No user exists with the requested id"""

    def __init__(self, user_id: int):
        super().__init__(f"User with id {user_id} not found")
        self.user_id = user_id


class ConflictError(StoreError):
    """Another user already holds the requested rut"""

    def __init__(self, rut: str):
        super().__init__(f"A user with rut '{rut}' already exists")
        self.rut = rut
