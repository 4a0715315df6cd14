"""aiohttp client session factory."""

import aiohttp


def create_session(
    max_connections: int = 100,
    max_connections_per_host: int = 10,
    timeout_total: float = 60,
    timeout_connect: float = 30,
    timeout_sock_read: float = 60,
) -> aiohttp.ClientSession:
    """
    Create aiohttp ClientSession with connection pooling and timeouts.

    Connection pool configuration balances performance and resource usage:
    - max_connections: Total concurrent connections across all hosts
    - max_connections_per_host: Concurrent connections to single host

    Timeout configuration prevents indefinite hangs:
    - timeout_total: Total time for the entire request (default: 60s)
    - timeout_connect: Time to establish connection (default: 30s)
    - timeout_sock_read: Time between reads (default: 60s)

    Returns:
        Configured aiohttp.ClientSession

    Note:
        Caller is responsible for session lifecycle management.
        Use async context manager for automatic cleanup:

        async with create_session() as session:
            executor = RequestExecutor(auth, session)
    """
    connector = aiohttp.TCPConnector(
        limit=max_connections,
        limit_per_host=max_connections_per_host,
        ttl_dns_cache=300,
    )

    timeout = aiohttp.ClientTimeout(
        total=timeout_total,
        connect=timeout_connect,
        sock_read=timeout_sock_read,
    )

    return aiohttp.ClientSession(connector=connector, timeout=timeout)


__all__ = ["create_session"]
