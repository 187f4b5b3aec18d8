from rainstats.core.db import engine
from rainstats.models import Base


async def init_db() -> None:
    """
    Initialize the database schema.

    Creates the `weather_data` table if it does not already exist, so a
    fresh local database can be seeded and queried.

    Notes:
    - In deployments the table is owned by the ingestion side; `create_all`
      never alters an existing table, so running it there is harmless.
    """
    async with engine.begin() as conn:
        # Run the synchronous SQLAlchemy `create_all` operation
        # inside an asynchronous context.
        await conn.run_sync(Base.metadata.create_all)
