"""
Scan and price-refresh flows on top of the repository functions in CRUD.
"""
from __future__ import annotations
from typing import List, Optional, Tuple

from sqlalchemy.orm import Session

from pricescan.common.eco import eco_score_label
from pricescan.common.logger import logger
from pricescan.common.pricing import (
    average_price,
    calculate_savings,
    find_best_price,
    find_highest_price,
)
from pricescan.common.Schemas.product_schemas import ProductDetail
from pricescan.common.tools.barcode_apis import AggregatedProduct, fetch_product_data
from pricescan.common.tools.pricing_apis import get_all_merchant_prices
from pricescan.db import CRUD
from pricescan.db.Models.product_models import Price, Product


def best_price_of(product: Product) -> Optional[Price]:
    return find_best_price(list(product.prices), key=lambda p: p.price)


def product_detail(product: Product, sources: Optional[List[str]] = None) -> ProductDetail:
    best = best_price_of(product)
    detail = ProductDetail.model_validate(product)
    highest = find_highest_price(list(product.prices), key=lambda p: p.price)
    detail.best_price = best.price if best else None
    detail.highest_price = highest.price if highest else None
    detail.average_price = round(average_price(list(product.prices), key=lambda p: p.price), 2)
    detail.savings = calculate_savings(list(product.prices), key=lambda p: p.price)
    detail.eco_label = eco_score_label(product.eco_score)
    detail.sources = sources or []
    return detail


def _store_lookup(db: Session, barcode: str, found: AggregatedProduct) -> Product:
    info = found.product
    product = CRUD.create_product(
        db,
        {
            "barcode": barcode,
            "name": info.name,
            "brand": info.brand,
            "description": info.description,
            "image_url": info.image_url,
            "category": info.category,
        },
    )
    if found.prices:
        product = CRUD.replace_prices(db, product, [p.model_dump() for p in found.prices])
    return product


def find_or_fetch_product(db: Session, barcode: str) -> Tuple[Optional[Product], List[str]]:
    """
    Local catalogue first; otherwise ask the external barcode databases and
    store what they return. (None, sources) when nobody knows the barcode.
    """
    product = CRUD.get_product_by_barcode(db, barcode)
    if product is not None:
        return product, []

    found = fetch_product_data(barcode)
    if found.product is None:
        logger.info("Barcode %s not found in any source", barcode)
        return None, found.sources
    return _store_lookup(db, barcode, found), found.sources


def scan_barcode(db: Session, barcode: str, user_id: Optional[str] = None) -> Optional[ProductDetail]:
    product, sources = find_or_fetch_product(db, barcode)
    if product is None:
        return None

    detail = product_detail(product, sources)
    CRUD.add_scan_history(
        db,
        barcode=barcode,
        product_name=product.name,
        best_price=detail.best_price,
        user_id=user_id,
    )
    if user_id is not None:
        CRUD.increment_daily_scan_count(db, user_id)
    return detail


def refresh_prices(db: Session, product: Product) -> ProductDetail:
    """
    Replace stored prices with the merchant comparison sources' offers.
    Existing prices are kept when no source returns anything.
    """
    pricing = get_all_merchant_prices(product.barcode, product.name)
    if pricing.prices:
        product = CRUD.replace_prices(db, product, [p.as_offer() for p in pricing.prices])
    else:
        logger.info("No merchant prices for %s; keeping stored prices", product.barcode)
    return product_detail(product, pricing.sources)
