"""
Metrics Abstraction Layer for Pings

This module provides a small metrics interface so request handling code does not depend on a
particular backend. Two implementations exist:

- TelegrafMetricsClient: Wrapper for aio-statsd's TelegrafStatsdClient
- NoOpMetricsClient: Used when no StatsD host is configured, and in tests

`create_metrics_client` selects the implementation from settings.
"""

import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional, Union

from aio_statsd import TelegrafStatsdClient

logger = logging.getLogger(__name__)


class MetricsClient(ABC):
    """
    Abstract metrics client interface.

    Tag handling follows StatsD-style tag dictionaries, which Telegraf turns into dimensions.
    """

    @abstractmethod
    def increment(
        self,
        name: str,
        value: Union[int, float] = 1,
        tag_dict: Optional[Dict[str, Any]] = None,
    ) -> None:
        """
        Increment a counter metric by the specified value.

        Args:
            name: Metric name (e.g., 'pings.server.request.count')
            value: Amount to increment by (default: 1)
            tag_dict: Optional tags for metric dimensions
        """

    @abstractmethod
    def timer(
        self,
        name: str,
        value: Union[int, float],
        tag_dict: Optional[Dict[str, Any]] = None,
    ) -> None:
        """
        Record a duration, in seconds.

        Args:
            name: Metric name (e.g., 'pings.server.request.time')
            value: Duration in seconds
            tag_dict: Optional tags for metric dimensions
        """

    async def connect(self) -> None:
        """Open any network resources the client needs."""

    @abstractmethod
    async def close(self) -> None:
        """Flush pending metrics and release network resources."""


class TelegrafMetricsClient(MetricsClient):
    """Delegates to a TelegrafStatsdClient."""

    def __init__(self, telegraf_client: TelegrafStatsdClient):
        self.client = telegraf_client

    def increment(
        self,
        name: str,
        value: Union[int, float] = 1,
        tag_dict: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.client.increment(name, value, tag_dict=tag_dict or {})

    def timer(
        self,
        name: str,
        value: Union[int, float],
        tag_dict: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.client.timer(name, value, tag_dict=tag_dict or {})

    async def connect(self) -> None:
        await self.client.connect()

    async def close(self) -> None:
        try:
            await self.client.close()
        except Exception as e:
            logger.warning(f"Error closing Telegraf client: {e}")


class NoOpMetricsClient(MetricsClient):
    """Discards every metric."""

    def increment(
        self,
        name: str,
        value: Union[int, float] = 1,
        tag_dict: Optional[Dict[str, Any]] = None,
    ) -> None:
        pass

    def timer(
        self,
        name: str,
        value: Union[int, float],
        tag_dict: Optional[Dict[str, Any]] = None,
    ) -> None:
        pass

    async def close(self) -> None:
        pass


def create_metrics_client(
    statsd_host: Optional[str], statsd_port: int = 8125, debug: bool = False
) -> MetricsClient:
    """
    Build the metrics client for the configured backend.

    Args:
        statsd_host: StatsD/Telegraf host, or None to disable metrics
        statsd_port: StatsD/Telegraf UDP port
        debug: Passed through to the Telegraf client for verbose logging

    Returns:
        A TelegrafMetricsClient when a host is configured, otherwise a NoOpMetricsClient
    """
    if not statsd_host:
        logger.info("No StatsD host configured, metrics disabled")
        return NoOpMetricsClient()

    return TelegrafMetricsClient(
        TelegrafStatsdClient(host=statsd_host, port=statsd_port, debug=debug)
    )
