from abc import ABC, abstractmethod

import pandas as pd
from sqlalchemy.ext.asyncio import AsyncEngine

from services.orders_repository import OrderFilters


class BaseAnalyticsEngine(ABC):
    def __init__(
        self,
        engine: AsyncEngine,
        filters: OrderFilters | None = None,
    ):
        self.engine = engine
        self.filters = filters or OrderFilters()
        self._frame: pd.DataFrame | None = None

    @abstractmethod
    async def load_data(self) -> pd.DataFrame:
        """
        Must return one row per stored order matching self.filters.
        """
        ...

    @abstractmethod
    def compute(self, df: pd.DataFrame) -> dict:
        """
        Must return JSON-serializable analytics
        """
        ...

    async def frame(self) -> pd.DataFrame:
        # one select per engine instance; every view reuses it
        if self._frame is None:
            self._frame = await self.load_data()
        return self._frame

    async def run(self) -> dict:
        return self.compute(await self.frame())
