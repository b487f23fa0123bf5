"""Async Cassandra connection using cassandra-asyncio-driver.

Provides:
- Cluster/session lifecycle
- Session with aexecute() for non-blocking queries
- Keyspace and table bootstrap

Enrollment and progress rows are written with lightweight transactions, so the
default execution profile pins both the regular and the serial consistency
level.
"""

import structlog
from cassandra import ConsistencyLevel
from cassandra.auth import PlainTextAuthProvider
from cassandra.cluster import EXEC_PROFILE_DEFAULT, ExecutionProfile
from cassandra.policies import DCAwareRoundRobinPolicy, TokenAwarePolicy
from cassandra_asyncio.cluster import Cluster

from src.catalog.models import CATALOG_TABLES_CQL
from src.config.settings import Settings, get_settings
from src.progress.models import PROGRESS_TABLES_CQL


logger = structlog.get_logger(__name__)


def build_execution_profile(settings: Settings) -> ExecutionProfile:
    """Default profile: token-aware routing, quorum reads/writes, LWT serial."""
    return ExecutionProfile(
        load_balancing_policy=TokenAwarePolicy(DCAwareRoundRobinPolicy()),
        consistency_level=ConsistencyLevel.name_to_value[
            settings.cassandra_consistency
        ],
        serial_consistency_level=ConsistencyLevel.name_to_value[
            settings.cassandra_serial_consistency
        ],
        request_timeout=settings.cassandra_request_timeout,
    )


class AsyncCassandraConnection:
    """Async Cassandra connection manager.

    Connecting is synchronous; queries run through ``session.aexecute()``.
    """

    _cluster: Cluster | None = None
    _session = None  # Session type from cassandra_asyncio

    @classmethod
    def connect(cls):
        """Establish connection to Cassandra cluster.

        Returns:
            Active Cassandra session with aexecute() support

        Raises:
            ConnectionError: If connection fails
        """
        if cls._session is not None:
            return cls._session

        settings = get_settings()

        auth_provider = None
        if settings.cassandra_username and settings.cassandra_password:
            auth_provider = PlainTextAuthProvider(
                username=settings.cassandra_username,
                password=settings.cassandra_password,
            )

        profile = build_execution_profile(settings)
        cls._cluster = Cluster(
            contact_points=settings.cassandra_hosts,
            port=settings.cassandra_port,
            auth_provider=auth_provider,
            protocol_version=settings.cassandra_protocol_version,
            execution_profiles={EXEC_PROFILE_DEFAULT: profile},
            connect_timeout=settings.cassandra_connect_timeout,
        )

        try:
            cls._session = cls._cluster.connect()
            logger.info(
                "async_cassandra_connected",
                hosts=settings.cassandra_hosts,
                port=settings.cassandra_port,
                consistency=settings.cassandra_consistency,
                serial_consistency=settings.cassandra_serial_consistency,
            )
        except Exception as e:
            logger.error("async_cassandra_connection_failed", error=str(e))
            raise ConnectionError(f"Failed to connect to Cassandra: {e}") from e

        return cls._session

    @classmethod
    def disconnect(cls) -> None:
        """Close session and cluster."""
        if cls._session is not None:
            cls._session.shutdown()
            cls._session = None

        if cls._cluster is not None:
            cls._cluster.shutdown()
            cls._cluster = None
            logger.info("async_cassandra_disconnected")

    @classmethod
    def is_connected(cls) -> bool:
        """Check if connection is active."""
        return cls._session is not None and not cls._session.is_shutdown


async def init_async_keyspace(session, keyspace: str) -> None:
    """Create keyspace if not exists.

    Args:
        session: Active Cassandra session with aexecute()
        keyspace: Keyspace name
    """
    settings = get_settings()

    if settings.is_production:
        replication = "'class': 'NetworkTopologyStrategy', 'datacenter1': 3"
    else:
        replication = "'class': 'SimpleStrategy', 'replication_factor': 1"

    await session.aexecute(f"""
        CREATE KEYSPACE IF NOT EXISTS {keyspace}
        WITH replication = {{{replication}}}
        AND durable_writes = true
    """)
    logger.info("async_keyspace_created", keyspace=keyspace)


async def init_async_tables(
    session, keyspace: str, tables: list[str], name: str
) -> None:
    """Run a list of CREATE TABLE templates."""
    for cql_template in tables:
        await session.aexecute(cql_template.format(keyspace=keyspace))
    logger.info("async_tables_created", keyspace=keyspace, group=name)


async def init_async_cassandra():
    """Connect and bootstrap keyspace and tables.

    Catalog tables belong to the course management service and are only
    created when ``cassandra_bootstrap_catalog`` is set (development).

    Returns:
        Configured Cassandra session with aexecute() support
    """
    settings = get_settings()
    keyspace = settings.cassandra_keyspace

    session = AsyncCassandraConnection.connect()
    await init_async_keyspace(session, keyspace)
    session.set_keyspace(keyspace)

    if settings.cassandra_bootstrap_catalog:
        await init_async_tables(session, keyspace, CATALOG_TABLES_CQL, "catalog")
    await init_async_tables(session, keyspace, PROGRESS_TABLES_CQL, "progress")

    logger.info("async_cassandra_initialized", keyspace=keyspace)
    return session


async def shutdown_async_cassandra() -> None:
    """Shutdown async Cassandra connection."""
    AsyncCassandraConnection.disconnect()
