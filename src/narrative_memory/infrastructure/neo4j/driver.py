"""Neo4j driver and connection management.

This module provides an async-first Neo4j driver factory and a small query
executor that translates driver failures into the application's error taxonomy.
"""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any, LiteralString

from neo4j import AsyncDriver, AsyncGraphDatabase
from neo4j.exceptions import DriverError, Neo4jError, ServiceUnavailable, SessionExpired

from narrative_memory.core.base import ServiceErrorDetails
from narrative_memory.core.config import Settings
from narrative_memory.core.errors import StoreOperationError, StoreUnavailableError
from narrative_memory.core.logging import get_logger
from narrative_memory.infrastructure.neo4j.queries import SchemaQueries

logger = get_logger(__name__)


@asynccontextmanager
async def translate_neo4j_errors(operation: str, collection: str | None = None) -> AsyncIterator[None]:
    """Map neo4j driver exceptions onto StoreUnavailableError / StoreOperationError."""
    details = ServiceErrorDetails(
        source="neo4j",
        operation=operation,
        service_name="Neo4j",
        endpoint=collection,
    )
    try:
        yield
    except (ServiceUnavailable, SessionExpired, OSError) as e:
        raise StoreUnavailableError(message=f"Neo4j unavailable during {operation}: {e!s}", details=details) from e
    except (Neo4jError, DriverError) as e:
        raise StoreOperationError(message=f"Neo4j rejected {operation}: {e!s}", details=details) from e


async def create_neo4j_driver(
    settings: Settings,
    max_connection_pool_size: int = 50,
    max_connection_lifetime: int = 3600,
) -> AsyncDriver:
    """Create a Neo4j driver and verify connectivity.

    Args:
        settings: Settings providing the URI and credentials
        max_connection_pool_size: Maximum size of the connection pool
        max_connection_lifetime: Maximum lifetime of connections in seconds

    Returns:
        AsyncDriver: Connected Neo4j driver

    Raises:
        StoreUnavailableError: If the database cannot be reached
    """
    logger.info(
        "Creating Neo4j driver",
        uri=settings.neo4j_uri,
        pool_size=max_connection_pool_size,
        connection_lifetime=max_connection_lifetime,
    )

    driver = AsyncGraphDatabase.driver(
        settings.neo4j_uri,
        auth=(settings.neo4j_user, settings.neo4j_password.get_secret_value()),
        max_connection_pool_size=max_connection_pool_size,
        max_connection_lifetime=max_connection_lifetime,
    )

    try:
        async with translate_neo4j_errors("verify_connectivity"):
            await driver.verify_connectivity()
    except StoreUnavailableError:
        await driver.close()
        raise
    except StoreOperationError as e:
        # Authentication failures and the like still mean the store cannot be used.
        await driver.close()
        raise StoreUnavailableError(message=e.message, details=e.details) from e

    logger.info("Neo4j connection established")
    return driver


async def ensure_schema(driver: AsyncDriver) -> None:
    """Create the constraints the collection store relies on (idempotent)."""
    async with translate_neo4j_errors("ensure_schema"), driver.session() as session:
        for query, _ in (SchemaQueries.record_key_constraint(), SchemaQueries.collection_name_constraint()):
            result = await session.run(query)
            await result.consume()
    logger.info("Neo4j schema constraints ensured")


class Neo4jQuery:
    """Neo4j query executor returning plain dict rows.

    Every call opens its own session so concurrent conversations never share one.
    """

    def __init__(self, driver: AsyncDriver) -> None:
        self.driver: AsyncDriver = driver

    async def execute_list(
        self,
        query: LiteralString,
        params: dict[str, Any] | None = None,
        operation: str = "query",
        collection: str | None = None,
    ) -> list[dict[str, Any]]:
        """Execute a query and return all records as dicts.

        Raises:
            StoreUnavailableError: If the database cannot be reached
            StoreOperationError: If the query is rejected
        """
        logger.debug("Executing Neo4j query", operation=operation, collection=collection)

        async with translate_neo4j_errors(operation, collection), self.driver.session() as session:
            result = await session.run(query, parameters=params or {})
            return [record.data() async for record in result]

    async def execute_value(
        self,
        query: LiteralString,
        params: dict[str, Any] | None = None,
        operation: str = "query",
        collection: str | None = None,
    ) -> Any:
        """Execute a query and return the first value of the first record, or None."""
        async with translate_neo4j_errors(operation, collection), self.driver.session() as session:
            result = await session.run(query, parameters=params or {})
            record = await result.single(strict=False)
            if record and len(record) > 0:
                return record[0]
            return None

    async def execute_write(
        self,
        statements: list[tuple[LiteralString, dict[str, Any]]],
        operation: str = "write",
        collection: str | None = None,
    ) -> None:
        """Run several statements in one write transaction."""

        async def work(tx: Any) -> None:
            for query, params in statements:
                result = await tx.run(query, params)
                await result.consume()

        async with translate_neo4j_errors(operation, collection), self.driver.session() as session:
            await session.execute_write(work)
