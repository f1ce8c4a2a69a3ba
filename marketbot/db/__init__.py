from marketbot.db.database import get_connection, init_db
from marketbot.db.repositories import add_rotation_log, get_rotation_log

__all__ = [
    "add_rotation_log",
    "get_connection",
    "get_rotation_log",
    "init_db",
]
