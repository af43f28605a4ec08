# Overview: Flask extension instances for database, migrations, and item locks.

from flask_sqlalchemy import SQLAlchemy
from flask_migrate import Migrate

from .locks import KeyedLockRegistry

db = SQLAlchemy()
migrate = Migrate()
item_locks = KeyedLockRegistry()
