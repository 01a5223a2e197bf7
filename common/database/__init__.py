"""
Database module - Generic async MongoDB connection using Beanie ODM.

Usage:
    from common.database import MongoDB, set_main_database, get_main_database

    db = MongoDB()
    await db.connect(uri, database_name, models)
    set_main_database(db)

    main_db = get_main_database()
    collection = main_db.get_collection("members")
"""

from common.database.mongodb import (
    MongoDB,
    set_main_database,
    get_main_database,
)
from common.database.base_document import BaseDocument

__all__ = [
    "MongoDB",
    "BaseDocument",
    "set_main_database",
    "get_main_database",
]
