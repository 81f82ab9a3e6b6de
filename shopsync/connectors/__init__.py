"""Shopee partner API connectors"""

from shopsync.connectors.base_connector import BaseConnector
from shopsync.connectors.shopee_client import ShopeeClient, AiohttpTransport
from shopsync.connectors.paginated_fetcher import PaginatedFetcher, ListPage, DetailBatch

__all__ = [
    "BaseConnector",
    "ShopeeClient",
    "AiohttpTransport",
    "PaginatedFetcher",
    "ListPage",
    "DetailBatch",
]
