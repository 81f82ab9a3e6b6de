"""
Pagination and ID batching for Shopee list/detail endpoint pairs.

List endpoints are paged with offset + page_size (or limit) per status;
detail endpoints take a comma-joined id list capped per call. Calls are
strictly sequential with a fixed pause between them. A failing page ends
that status's listing and a failing batch is skipped; whatever succeeded is
returned.
"""
import asyncio
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, Iterable, List, Mapping, Optional, Sequence

from shopsync.config import get_settings
from shopsync.exceptions import CredentialError, ShopeeAPIError
from shopsync.utils.helpers import chunk_list, unique_in_order
from shopsync.utils.logger import log

settings = get_settings()

MAX_PAGES_PER_STATUS = 500


@dataclass(frozen=True)
class ListPage:
    """How to walk one list endpoint"""
    path: str
    list_key: str                         # array under response["response"]
    id_key: Optional[str] = None          # id field on each entry
    status_param: Optional[str] = None    # e.g. item_status
    limit_param: str = "page_size"
    page_size: Optional[int] = None
    more_key: Optional[str] = "has_next_page"
    next_offset_key: Optional[str] = "next_offset"
    total_key: Optional[str] = None       # for endpoints that only report a total
    extra_params: Mapping[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class DetailBatch:
    """How to call one detail endpoint"""
    path: str
    id_param: str
    list_key: str
    batch_size: Optional[int] = None
    extra_params: Mapping[str, Any] = field(default_factory=dict)


class PaginatedFetcher:
    """Drives list paging and detail batching through a ShopeeClient"""

    def __init__(
        self,
        client,
        delay_ms: Optional[int] = None,
        page_size: Optional[int] = None,
        batch_size: Optional[int] = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        self.client = client
        self.delay = (settings.api_call_delay_ms if delay_ms is None else delay_ms) / 1000.0
        self.page_size = page_size or settings.list_page_size
        self.batch_size = batch_size or settings.item_detail_batch_size
        self.sleep = sleep
        self.calls_made = 0
        self.failures: List[str] = []

    async def fetch_all_list(
        self,
        shop_id: int,
        list_page: ListPage,
        detail_batch: DetailBatch,
        filter_statuses: Sequence[Optional[str]] = (None,),
    ) -> List[Dict[str, Any]]:
        """List ids for every status, then fetch their details in batches"""
        ids = await self.fetch_ids(shop_id, list_page, filter_statuses)
        if not ids:
            return []
        return await self.fetch_details(shop_id, detail_batch, ids)

    async def fetch_ids(
        self,
        shop_id: int,
        list_page: ListPage,
        filter_statuses: Sequence[Optional[str]] = (None,),
        raise_on_error: bool = False,
    ) -> List[Any]:
        if not list_page.id_key:
            raise ValueError(f"{list_page.path} has no id_key")
        entries = []
        for status in filter_statuses or (None,):
            entries.extend(await self.fetch_list(shop_id, list_page, status, raise_on_error))
        ids = unique_in_order(e.get(list_page.id_key) for e in entries if e.get(list_page.id_key) is not None)
        log.info(f"Shop {shop_id} {list_page.path}: {len(ids)} ids across {len(filter_statuses or [None])} status(es)")
        return ids

    async def fetch_list(
        self,
        shop_id: int,
        list_page: ListPage,
        status: Optional[str] = None,
        raise_on_error: bool = False,
    ) -> List[Dict[str, Any]]:
        """Every entry of one list endpoint for one status.

        With raise_on_error a failing page raises instead of ending the
        listing early; use it when a short list would be mistaken for the
        full set.
        """
        size = list_page.page_size or self.page_size
        offset = 0
        entries: List[Dict[str, Any]] = []

        for _ in range(MAX_PAGES_PER_STATUS):
            params = dict(list_page.extra_params)
            params["offset"] = offset
            params[list_page.limit_param] = size
            if status is not None and list_page.status_param:
                params[list_page.status_param] = status

            body = await self._call(
                shop_id, list_page.path, params, f"page offset={offset} status={status}", raise_on_error
            )
            if body is None:
                break

            chunk = body.get(list_page.list_key) or []
            entries.extend(chunk)

            next_offset = self._next_offset(list_page, body, offset, len(chunk), len(entries))
            if next_offset is None or next_offset <= offset:
                break
            offset = next_offset
        else:
            log.warning(f"Shop {shop_id} {list_page.path}: stopped after {MAX_PAGES_PER_STATUS} pages")

        return entries

    async def fetch_details(
        self,
        shop_id: int,
        detail_batch: DetailBatch,
        ids: Iterable[Any],
    ) -> List[Dict[str, Any]]:
        """Detail records for ids, skipping batches that fail"""
        size = detail_batch.batch_size or self.batch_size
        results: List[Dict[str, Any]] = []
        batches = chunk_list(unique_in_order(ids), size)

        for index, batch in enumerate(batches, start=1):
            params = dict(detail_batch.extra_params)
            params[detail_batch.id_param] = batch
            body = await self._call(shop_id, detail_batch.path, params, f"batch {index}/{len(batches)}")
            if body is None:
                continue
            results.extend(body.get(detail_batch.list_key) or [])

        log.info(f"Shop {shop_id} {detail_batch.path}: {len(results)} records from {len(batches)} batch(es)")
        return results

    async def fetch_each(
        self,
        shop_id: int,
        path: str,
        id_param: str,
        ids: Iterable[Any],
        extra_params: Optional[Mapping[str, Any]] = None,
    ) -> Dict[Any, Dict[str, Any]]:
        """One call per id (endpoints without a batch form), keyed by id"""
        results = {}
        for id_ in unique_in_order(ids):
            params = dict(extra_params or {})
            params[id_param] = id_
            body = await self._call(shop_id, path, params, f"{id_param}={id_}")
            if body is not None:
                results[id_] = body
        return results

    async def _call(self, shop_id, path, params, context, raise_on_error=False) -> Optional[Dict[str, Any]]:
        """Paced call returning response["response"], or None when it failed"""
        if self.calls_made and self.delay > 0:
            await self.sleep(self.delay)
        self.calls_made += 1

        try:
            response = await self.client.call(shop_id, path, params=params)
        except CredentialError:
            raise
        except Exception as e:
            if raise_on_error:
                raise
            self._skip(shop_id, path, context, f"{type(e).__name__}: {e}")
            return None

        if response.get("error"):
            if raise_on_error:
                raise ShopeeAPIError.from_response(response, path)
            self._skip(shop_id, path, context, f"{response.get('error')} {response.get('message', '')}".strip())
            return None
        return response.get("response") or {}

    def _skip(self, shop_id, path, context, reason):
        self.failures.append(f"{path} {context}: {reason}")
        log.warning(f"Shop {shop_id} {path} {context} skipped: {reason}")

    @staticmethod
    def _next_offset(list_page, body, offset, chunk_len, fetched) -> Optional[int]:
        if list_page.more_key and list_page.more_key in body:
            if not body.get(list_page.more_key):
                return None
            if not list_page.next_offset_key:
                return offset + chunk_len
            next_offset = body.get(list_page.next_offset_key)
            return int(next_offset) if next_offset is not None else None
        if list_page.total_key and list_page.total_key in body:
            if chunk_len == 0 or fetched >= int(body.get(list_page.total_key) or 0):
                return None
            return offset + chunk_len
        return None
