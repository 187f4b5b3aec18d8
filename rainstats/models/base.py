from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    """
    Declarative base of the ORM models.

    The service only reads the observation store; the metadata is used to
    create the table in local and test databases.
    """
    pass
