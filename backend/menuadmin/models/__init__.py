"""All menu admin database models.

Import all models here so Alembic and SQLAlchemy can discover them.
"""

from menuadmin.models.base import Base, BaseModel  # noqa: F401

# Users
from menuadmin.models.user import Profile, User  # noqa: F401

# Stores
from menuadmin.models.store import Store, StoreBranch, StoreType  # noqa: F401

# Menu
from menuadmin.models.menu import Category, Item  # noqa: F401

# Files
from menuadmin.models.file import File  # noqa: F401
