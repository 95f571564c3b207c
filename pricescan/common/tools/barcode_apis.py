"""
Product lookups by barcode against public UPC/EAN databases and retailer APIs.

Every source returns a normalized result and never raises: network errors,
bad status codes and unexpected payloads are logged and reported as an
unsuccessful lookup (or an empty price list for the retailer sources).
"""
from __future__ import annotations

from typing import Callable, List, Optional, Tuple

from pydantic import BaseModel, Field

from pricescan.common.logger import logger
from pricescan.common.pricing import dedupe_by_retailer, format_price, parse_price
from pricescan.common.tools.http_client import SOURCE_ERRORS, get_json
from pricescan.settings.db_settings import settings

UNKNOWN_PRODUCT = "Unknown Product"


class ProductInfo(BaseModel):
    upc: str
    name: str = UNKNOWN_PRODUCT
    brand: Optional[str] = None
    description: Optional[str] = None
    image_url: Optional[str] = None
    category: Optional[str] = None


class PriceInfo(BaseModel):
    retailer: str
    price: str  # "$1.99"
    currency: str = "USD"
    availability: str = "Check availability"
    url: Optional[str] = None


class LookupResult(BaseModel):
    success: bool
    product: Optional[ProductInfo] = None
    prices: List[PriceInfo] = Field(default_factory=list)
    error: Optional[str] = None


class AggregatedProduct(BaseModel):
    product: Optional[ProductInfo] = None
    prices: List[PriceInfo] = Field(default_factory=list)
    sources: List[str] = Field(default_factory=list)


def _first(values) -> Optional[str]:
    if isinstance(values, list) and values:
        return values[0]
    return None


def _failed(source: str, error: Exception) -> LookupResult:
    logger.warning("%s lookup failed: %s", source, error)
    return LookupResult(success=False, error=f"{source} error: {error}")

# ---------------- Product databases ---------------- #

def fetch_from_upcitemdb(barcode: str) -> LookupResult:
    """UPCitemdb trial endpoint; offers carry merchant prices."""
    try:
        data = get_json("https://api.upcitemdb.com/prod/trial/lookup", params={"upc": barcode})
        items = data.get("items") or []
        if data.get("code") != "OK" or not items:
            return LookupResult(success=False, error="Product not found in UPC database")

        item = items[0]
        prices: List[PriceInfo] = []
        for offer in item.get("offers") or []:
            amount = parse_price(offer.get("price"))
            if not offer.get("merchant") or amount is None:
                continue
            prices.append(
                PriceInfo(
                    retailer=offer["merchant"],
                    price=format_price(amount),
                    currency=offer.get("currency") or "USD",
                    availability=offer.get("availability") or offer.get("condition") or "Check availability",
                    url=offer.get("link"),
                )
            )
        logger.debug("UPCitemdb: %s offers for %s", len(prices), barcode)

        return LookupResult(
            success=True,
            product=ProductInfo(
                upc=barcode,
                name=item.get("title") or UNKNOWN_PRODUCT,
                brand=item.get("brand") or None,
                description=item.get("description") or None,
                image_url=_first(item.get("images")),
                category=item.get("category") or None,
            ),
            prices=prices,
        )
    except SOURCE_ERRORS as e:
        return _failed("UPC API", e)


def fetch_from_barcode_lookup(barcode: str) -> LookupResult:
    if not settings.BARCODE_LOOKUP_API_KEY:
        return LookupResult(success=False, error="BARCODE_LOOKUP_API_KEY not configured")
    try:
        data = get_json(
            "https://api.barcodelookup.com/v3/products",
            params={"barcode": barcode, "formatted": "y", "key": settings.BARCODE_LOOKUP_API_KEY},
        )
        products = data.get("products") or []
        if not products:
            return LookupResult(success=False, error="Product not found in Barcode Lookup")

        product = products[0]
        prices = [
            PriceInfo(
                retailer=store["store_name"],
                price=store["store_price"],
                availability="Available",
                url=store.get("product_url") or None,
            )
            for store in product.get("stores") or []
            if store.get("store_name") and store.get("store_price")
        ]
        return LookupResult(
            success=True,
            product=ProductInfo(
                upc=barcode,
                name=product.get("title") or product.get("product_name") or UNKNOWN_PRODUCT,
                brand=product.get("brand") or product.get("manufacturer") or None,
                description=product.get("description") or None,
                image_url=_first(product.get("images")),
                category=product.get("category") or None,
            ),
            prices=prices,
        )
    except SOURCE_ERRORS as e:
        return _failed("Barcode Lookup", e)


def fetch_from_open_food_facts(barcode: str) -> LookupResult:
    """Food products only; no prices."""
    try:
        data = get_json(f"https://world.openfoodfacts.org/api/v0/product/{barcode}.json")
        product = data.get("product")
        if data.get("status") != 1 or not product:
            return LookupResult(success=False, error="Product not found in Open Food Facts")
        return LookupResult(
            success=True,
            product=ProductInfo(
                upc=barcode,
                name=product.get("product_name") or product.get("product_name_en") or UNKNOWN_PRODUCT,
                brand=product.get("brands") or None,
                description=product.get("ingredients_text") or None,
                image_url=product.get("image_url") or product.get("image_front_url") or None,
                category=product.get("categories") or None,
            ),
        )
    except SOURCE_ERRORS as e:
        return _failed("Open Food Facts", e)


def fetch_from_barcode_spider(barcode: str) -> LookupResult:
    if not settings.BARCODE_SPIDER_API_KEY:
        return LookupResult(success=False, error="BARCODE_SPIDER_API_KEY not configured")
    try:
        data = get_json(
            "https://api.barcodespider.com/v1/lookup",
            params={"token": settings.BARCODE_SPIDER_API_KEY, "upc": barcode},
        )
        response = data.get("item_response") or {}
        if response.get("code") != 200:
            return LookupResult(success=False, error="Product not found in Barcode Spider")
        item = response.get("item") or {}
        return LookupResult(
            success=True,
            product=ProductInfo(
                upc=barcode,
                name=item.get("title") or UNKNOWN_PRODUCT,
                brand=item.get("brand") or None,
                description=item.get("description") or None,
                image_url=_first(item.get("images")),
                category=item.get("category") or None,
            ),
        )
    except SOURCE_ERRORS as e:
        return _failed("Barcode Spider", e)

# ---------------- Retailer prices ---------------- #

def fetch_walmart_prices(upc: str) -> List[PriceInfo]:
    if not settings.WALMART_API_KEY:
        logger.info("WALMART_API_KEY not configured")
        return []
    try:
        data = get_json(
            "https://api.walmartlabs.com/v1/items",
            params={"apikey": settings.WALMART_API_KEY, "upc": upc},
        )
        out: List[PriceInfo] = []
        for item in data.get("items") or []:
            amount = parse_price(item.get("salePrice") or item.get("msrp"))
            if amount is None:
                continue
            out.append(
                PriceInfo(
                    retailer="Walmart",
                    price=format_price(amount),
                    availability="In Stock" if item.get("availableOnline") else "Out of Stock",
                    url=item.get("productUrl"),
                )
            )
        return out
    except SOURCE_ERRORS as e:
        logger.warning("Walmart API error: %s", e)
        return []


def fetch_target_prices(upc: str) -> List[PriceInfo]:
    if not settings.TARGET_REDSKY_KEY:
        logger.info("TARGET_REDSKY_KEY not configured")
        return []
    try:
        data = get_json(
            "https://redsky.target.com/redsky_aggregations/v1/web/pdp_client_v1",
            params={"key": settings.TARGET_REDSKY_KEY, "tcin": upc, "pricing_store_id": "3991"},
        )
        product = (data.get("data") or {}).get("product") or {}
        amount = parse_price((product.get("price") or {}).get("current_retail"))
        if amount is None:
            return []
        fulfillment = product.get("fulfillment") or {}
        return [
            PriceInfo(
                retailer="Target",
                price=format_price(amount),
                availability="Out of Stock"
                if fulfillment.get("is_out_of_stock_in_all_store_locations")
                else "In Stock",
                url=f"https://www.target.com/p/-/A-{product.get('tcin', upc)}",
            )
        ]
    except SOURCE_ERRORS as e:
        logger.warning("Target API error: %s", e)
        return []

# ---------------- Aggregation ---------------- #

PRODUCT_SOURCES: List[Tuple[str, Callable[[str], LookupResult]]] = [
    ("UPC Database", fetch_from_upcitemdb),
    ("Barcode Lookup", fetch_from_barcode_lookup),
    ("Open Food Facts", fetch_from_open_food_facts),
    ("Barcode Spider", fetch_from_barcode_spider),
]

RETAILER_SOURCES: List[Tuple[str, Callable[[str], List[PriceInfo]]]] = [
    ("Walmart", fetch_walmart_prices),
    ("Target", fetch_target_prices),
]


def sort_offers(prices: List[PriceInfo]) -> List[PriceInfo]:
    """Dedupe by retailer (first wins), then cheapest first; unparsable prices go last."""
    unique = dedupe_by_retailer(prices, key=lambda p: p.retailer)
    return sorted(unique, key=lambda p: (parse_price(p.price) is None, parse_price(p.price) or 0.0))


def fetch_product_data(barcode: str) -> AggregatedProduct:
    """
    Query every source in order. The product comes from the first source that
    knows the barcode; prices from all of them.
    """
    product: Optional[ProductInfo] = None
    prices: List[PriceInfo] = []
    sources: List[str] = []

    for name, source in PRODUCT_SOURCES:
        result = source(barcode)
        if not result.success:
            continue
        sources.append(name)
        prices.extend(result.prices)
        if product is None:
            product = result.product

    for name, source in RETAILER_SOURCES:
        offers = source(barcode)
        if offers:
            prices.extend(offers)
            sources.append(name)

    logger.info(
        "Lookup %s: product=%s, prices=%s, sources=%s",
        barcode, product.name if product else None, len(prices), sources,
    )
    return AggregatedProduct(product=product, prices=sort_offers(prices), sources=sources)
