"""
Builds the `items` payload for add_shop_flash_sale_items from template items.

Shopee represents a product without variants two ways: as a single
synthetic model with model_id 0, or with the promotion price directly on
the item and no models at all. Both become a flat entry; real variants
become a `models` array. Anything without a positive price is dropped.
"""
from typing import Any, Dict, Iterable, List, Optional

ENABLED = 1
NO_VARIANT_MODEL_ID = 0


def _positive(value: Any) -> Optional[float]:
    try:
        price = float(value)
    except (TypeError, ValueError):
        return None
    return value if price > 0 else None


def _flat(item: Dict[str, Any], price: Any, stock: Any) -> Dict[str, Any]:
    return {
        "item_id": item["item_id"],
        "purchase_limit": item.get("purchase_limit") or 0,
        "item_input_promo_price": price,
        "item_stock": stock or 0,
    }


def normalize_item(item: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    """Payload entry for one template item, or None to drop it"""
    enabled = [m for m in item.get("models") or [] if m.get("status") == ENABLED]

    if len(enabled) == 1 and enabled[0].get("model_id") == NO_VARIANT_MODEL_ID:
        model = enabled[0]
        price = _positive(model.get("input_promotion_price"))
        if price is None:
            return None
        return _flat(item, price, model.get("campaign_stock"))

    if not enabled:
        price = _positive(item.get("input_promotion_price"))
        if price is None:
            return None
        return _flat(item, price, item.get("campaign_stock"))

    return {
        "item_id": item["item_id"],
        "purchase_limit": item.get("purchase_limit") or 0,
        "models": [
            {
                "model_id": m.get("model_id"),
                "input_promo_price": m.get("input_promotion_price") or 0,
                "stock": m.get("campaign_stock") or 0,
            }
            for m in enabled
        ],
    }


def is_valid_payload(entry: Optional[Dict[str, Any]]) -> bool:
    if not entry:
        return False
    if "models" in entry:
        models = entry["models"] or []
        return bool(models) and all(_positive(m.get("input_promo_price")) is not None for m in models)
    if "item_input_promo_price" in entry:
        return _positive(entry["item_input_promo_price"]) is not None
    return False


def normalize(template_items: Iterable[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """Payload entries for every template item that has a usable price"""
    return [entry for entry in (normalize_item(i) for i in template_items) if is_valid_payload(entry)]


def collect_template_items(item_info: Iterable[Dict[str, Any]], models: Iterable[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """Join get_shop_flash_sale_items' item_info and models by item_id, keeping enabled items"""
    by_item: Dict[Any, List[Dict[str, Any]]] = {}
    for model in models or []:
        by_item.setdefault(model.get("item_id"), []).append(model)
    return [
        {**item, "models": by_item.get(item.get("item_id"), [])}
        for item in item_info or []
        if item.get("status") == ENABLED
    ]
