"""
Session factory reading a named connection string once and opening
sessions on demand.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Callable, Optional

from ..adapters.base import ConnectionConfig, DatabaseAdapter
from ..adapters.sqlite import SQLiteAdapter
from ..config import DEFAULT_CONNECTION, ConfigurationSource
from ..utils import get_logger
from .session import Session

if TYPE_CHECKING:
    from .aio import AsyncSession


class SessionFactory:
    """
    Creates independent sessions against one configured database. Each
    session owns its own adapter and connection.
    """

    def __init__(
        self,
        source: ConfigurationSource,
        name: str = DEFAULT_CONNECTION,
        *,
        no_tracking: bool = False,
        adapter_factory: Callable[[], DatabaseAdapter] = SQLiteAdapter,
    ) -> None:
        self.name = name
        self.no_tracking = no_tracking
        self.adapter_factory = adapter_factory
        self.connection_config = ConnectionConfig.from_dsn(
            source.get_connection_string(name), source=name
        )
        self.logger = get_logger("persistence.factory")
        self.logger.debug("Session factory configured for %s", self.connection_config.descriptive_label())

    def create_session(self, *, no_tracking: Optional[bool] = None) -> Session:
        return Session(
            self.adapter_factory(),
            connection_config=self.connection_config,
            no_tracking=self.no_tracking if no_tracking is None else no_tracking,
        )

    async def create_async_session(self, *, no_tracking: Optional[bool] = None) -> "AsyncSession":
        from .aio import AsyncSession

        return await AsyncSession.open(
            self.adapter_factory(),
            connection_config=self.connection_config,
            no_tracking=self.no_tracking if no_tracking is None else no_tracking,
        )
