"""
Product and model snapshot sync
"""
from typing import Any, Callable, Dict, List, Tuple

from shopsync.connectors.paginated_fetcher import DetailBatch, ListPage, PaginatedFetcher
from shopsync.exceptions import ShopeeAPIError
from shopsync.services.reconciler import Reconciler, ResourceKind
from shopsync.utils.helpers import from_epoch, to_float, to_int
from shopsync.utils.logger import log

ITEM_LIST_PATH = "/api/v2/product/get_item_list"
ITEM_BASE_INFO_PATH = "/api/v2/product/get_item_base_info"
MODEL_LIST_PATH = "/api/v2/product/get_model_list"

ITEM_STATUSES = ("NORMAL", "UNLIST", "BANNED")

ITEM_LIST = ListPage(
    path=ITEM_LIST_PATH,
    list_key="item",
    id_key="item_id",
    status_param="item_status",
)

ITEM_BASE_INFO = DetailBatch(
    path=ITEM_BASE_INFO_PATH,
    id_param="item_id_list",
    list_key="item_list",
)


def available_stock(entry: Dict[str, Any]) -> int:
    """stock_info_v2 summary, else the sum of legacy stock_info entries"""
    summary = (entry.get("stock_info_v2") or {}).get("summary_info") or {}
    if summary.get("total_available_stock") is not None:
        return to_int(summary.get("total_available_stock"))
    return sum(to_int(s.get("current_stock")) for s in entry.get("stock_info") or [])


def _price_info(entry: Dict[str, Any]) -> Dict[str, Any]:
    prices = entry.get("price_info") or []
    return prices[0] if prices else {}


def model_records(item_id: int, model_response: Dict[str, Any]) -> List[Dict[str, Any]]:
    """Rows for get_model_list; names and images come from tier_variation options"""
    tiers = model_response.get("tier_variation") or []
    records = []
    for model in model_response.get("model") or []:
        tier_index = model.get("tier_index") or []
        names = []
        image_url = None
        for position, option_index in enumerate(tier_index):
            if position >= len(tiers):
                break
            options = tiers[position].get("option_list") or []
            if option_index is None or option_index >= len(options):
                continue
            option = options[option_index]
            if option.get("option"):
                names.append(option["option"])
            if position == 0:
                image_url = (option.get("image") or {}).get("image_url")
        price = _price_info(model)
        records.append({
            "item_id": item_id,
            "model_id": model.get("model_id"),
            "model_sku": model.get("model_sku"),
            "model_name": " - ".join(names) or None,
            "image_url": image_url,
            "tier_index": tier_index,
            "current_price": to_float(price.get("current_price"), None),
            "original_price": to_float(price.get("original_price"), None),
            "total_available_stock": available_stock(model),
            "model_status": model.get("model_status"),
        })
    return records


def product_record(item: Dict[str, Any], models: List[Dict[str, Any]], tiers: List[Any]) -> Dict[str, Any]:
    """Row for get_item_base_info; prices and stock roll up from models when present"""
    price = _price_info(item)
    images = (item.get("image") or {}).get("image_url_list") or []
    record = {
        "item_id": item.get("item_id"),
        "item_name": item.get("item_name"),
        "item_sku": item.get("item_sku"),
        "item_status": item.get("item_status"),
        "category_id": item.get("category_id"),
        "image_url": images[0] if images else None,
        "image_url_list": images,
        "currency": price.get("currency"),
        "current_price": to_float(price.get("current_price"), None),
        "original_price": to_float(price.get("original_price"), None),
        "total_available_stock": available_stock(item),
        "has_model": bool(item.get("has_model")),
        "tier_variations": tiers or None,
        "create_time": from_epoch(item.get("create_time")),
        "update_time": from_epoch(item.get("update_time")),
    }
    if models:
        positive = [m["current_price"] for m in models if (m["current_price"] or 0) > 0]
        originals = [m["original_price"] for m in models if m["original_price"] is not None]
        if positive:
            record["current_price"] = min(positive)
        if originals:
            record["original_price"] = max(originals)
        elif positive:
            record["original_price"] = max(positive)
        record["total_available_stock"] = sum(m["total_available_stock"] or 0 for m in models)
    return record


class ProductSync:
    """Replaces a shop's products and product_models rows"""

    resource_kind = "products"

    def __init__(self, fetcher_factory: Callable[[], PaginatedFetcher], reconciler: Reconciler):
        self.fetcher_factory = fetcher_factory
        self.reconciler = reconciler

    async def run(self, shop_id: int, progress: Callable[[str, int], None]) -> Dict[str, Any]:
        fetcher = self.fetcher_factory()

        progress("fetching_products", 10)
        items = await fetcher.fetch_all_list(shop_id, ITEM_LIST, ITEM_BASE_INFO, ITEM_STATUSES)
        if not items and fetcher.failures:
            raise ShopeeAPIError("fetch_failed", f"no products fetched: {fetcher.failures[0]}", api_path=ITEM_LIST_PATH)

        progress("fetching_models", 50)
        products, models = await self._with_models(shop_id, fetcher, items)

        progress("saving_products", 85)
        product_count = self.reconciler.reconcile(shop_id, ResourceKind.PRODUCTS, products)
        model_count = self.reconciler.reconcile(shop_id, ResourceKind.PRODUCT_MODELS, models)
        return {
            "products_synced": product_count,
            "models_synced": model_count,
            "skipped_calls": len(fetcher.failures),
        }

    async def _with_models(self, shop_id, fetcher, items) -> Tuple[List[Dict], List[Dict]]:
        variant_ids = [i.get("item_id") for i in items if i.get("has_model")]
        model_responses = await fetcher.fetch_each(shop_id, MODEL_LIST_PATH, "item_id", variant_ids)
        log.info(f"Shop {shop_id}: models fetched for {len(model_responses)}/{len(variant_ids)} variant items")

        products, models = [], []
        for item in items:
            response = model_responses.get(item.get("item_id")) or {}
            item_models = model_records(item.get("item_id"), response) if item.get("has_model") else []
            products.append(product_record(item, item_models, response.get("tier_variation") or []))
            models.extend(item_models)
        return products, models
