from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    """
    Declarative base shared by every table of the booking service.

    Alembic's ``env.py`` and the test fixtures both read ``Base.metadata``, so
    every model module must be imported before either uses it.
    """

    pass
