"""
Flash sale item payload tests.

Guards against:
1. No-variant products (synthetic model_id 0 or item-level price) being sent
   as a variant array
2. Zero or missing prices reaching add_shop_flash_sale_items
"""
from shopsync.services.item_normalizer import collect_template_items, normalize, normalize_item


def _model(model_id, price, stock=5, status=1):
    return {"model_id": model_id, "input_promotion_price": price, "campaign_stock": stock, "status": status}


def test_single_synthetic_model_becomes_flat_item():
    item = {"item_id": 1, "purchase_limit": 2, "input_promotion_price": 999,
            "campaign_stock": 99, "models": [_model(0, 50000, stock=10)]}

    assert normalize([item]) == [{
        "item_id": 1,
        "purchase_limit": 2,
        "item_input_promo_price": 50000,
        "item_stock": 10,
    }]


def test_item_level_price_without_models():
    item = {"item_id": 2, "input_promotion_price": 12000, "campaign_stock": 3, "models": []}

    assert normalize([item]) == [{
        "item_id": 2,
        "purchase_limit": 0,
        "item_input_promo_price": 12000,
        "item_stock": 3,
    }]


def test_no_models_and_no_price_is_dropped():
    assert normalize([{"item_id": 3, "models": []}]) == []
    assert normalize([{"item_id": 3, "input_promotion_price": 0}]) == []


def test_real_variants_become_models_array():
    item = {"item_id": 4, "models": [_model(11, 100), _model(12, 200, stock=0), _model(13, 300, status=2)]}

    assert normalize([item]) == [{
        "item_id": 4,
        "purchase_limit": 0,
        "models": [
            {"model_id": 11, "input_promo_price": 100, "stock": 5},
            {"model_id": 12, "input_promo_price": 200, "stock": 0},
        ],
    }]


def test_variant_with_zero_price_drops_the_item():
    item = {"item_id": 5, "models": [_model(11, 100), _model(12, 0)]}
    assert normalize([item]) == []


def test_synthetic_model_without_price_is_dropped():
    item = {"item_id": 6, "input_promotion_price": 500, "models": [_model(0, 0)]}
    assert normalize_item(item) is None


def test_disabled_models_fall_back_to_item_price():
    item = {"item_id": 7, "input_promotion_price": 800, "campaign_stock": 1, "models": [_model(21, 100, status=0)]}
    assert normalize([item])[0]["item_input_promo_price"] == 800


def test_collect_joins_models_and_skips_disabled_items():
    item_info = [{"item_id": 1, "status": 1}, {"item_id": 2, "status": 0}, {"item_id": 3, "status": 1}]
    models = [{"item_id": 1, "model_id": 10}, {"item_id": 1, "model_id": 11}, {"item_id": 2, "model_id": 20}]

    items = collect_template_items(item_info, models)

    assert [i["item_id"] for i in items] == [1, 3]
    assert [m["model_id"] for m in items[0]["models"]] == [10, 11]
    assert items[1]["models"] == []
