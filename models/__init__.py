"""Models package: exposes the process-wide DBStorage instance.

The engine is configured by the application factory (api.create_app) from
DATABASE_URL, so importing models never touches the database.
"""
from models.db_storage import DBStorage

storage = DBStorage()
