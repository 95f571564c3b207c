"""
Merchant price comparison sources, used to refresh the prices of a product
that is already known.
"""
from __future__ import annotations

import re
from datetime import datetime, timezone
from typing import Callable, Dict, List, Literal, Optional, Tuple
from urllib.parse import urlparse

from pydantic import BaseModel, Field

from pricescan.common.logger import logger
from pricescan.common.pricing import dedupe_by_retailer, format_price, parse_price
from pricescan.common.tools.http_client import SOURCE_ERRORS, get_json, post_json
from pricescan.settings.db_settings import settings

Availability = Literal["in_stock", "out_of_stock", "limited", "unknown"]

_SNIPPET_PRICE = re.compile(r"\$(\d+(?:\.\d{2})?)")


class MerchantPrice(BaseModel):
    merchant: str
    price: float
    currency: str = "USD"
    availability: Availability = "unknown"
    url: Optional[str] = None
    shipping: Optional[str] = None
    last_updated: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    def as_offer(self) -> Dict[str, Optional[str]]:
        """Shape accepted by CRUD.replace_prices."""
        return {
            "retailer": self.merchant,
            "price": format_price(self.price),
            "availability": self.availability,
            "url": self.url,
        }


class PricingResponse(BaseModel):
    barcode: str
    prices: List[MerchantPrice] = Field(default_factory=list)
    sources: List[str] = Field(default_factory=list)
    success: bool = True
    error: Optional[str] = None


def _as_list(value) -> list:
    if value is None:
        return []
    return value if isinstance(value, list) else [value]

# ---------------- Sources ---------------- #

def fetch_shopping_com_prices(upc: str, product_name: Optional[str] = None) -> List[MerchantPrice]:
    if not settings.SHOPPING_API_KEY:
        logger.info("SHOPPING_API_KEY not configured")
        return []
    try:
        data = get_json(
            "https://api.shopping.com/publisher/3.0/rest/GeneralSearch",
            params={
                "apiKey": settings.SHOPPING_API_KEY,
                "trackingId": "7000610",
                "categoryId": "0",
                "productIdType": "UPC",
                "productId": upc,
                "numItems": 20,
            },
        )
        prices: List[MerchantPrice] = []
        for product in _as_list((data.get("products") or {}).get("product")):
            for offer in _as_list((product.get("offers") or {}).get("offer")):
                amount = parse_price(offer.get("basePrice"))
                if amount is None:
                    continue
                prices.append(
                    MerchantPrice(
                        merchant=offer["merchant"]["name"],
                        price=amount,
                        availability="in_stock" if offer.get("stockStatus") == "in stock" else "unknown",
                        url=offer.get("offerURL"),
                        shipping=f"${offer['shippingCost']}" if offer.get("shippingCost") else None,
                    )
                )
        return prices
    except SOURCE_ERRORS as e:
        logger.warning("Shopping API error: %s", e)
        return []


def fetch_google_shopping_prices(upc: str, product_name: Optional[str] = None) -> List[MerchantPrice]:
    """Custom Search results; the price is read from the result snippet."""
    if not settings.GOOGLE_API_KEY or not settings.GOOGLE_SHOPPING_CX:
        logger.info("Google Shopping API credentials not configured")
        return []
    try:
        query = f"{product_name} {upc}" if product_name else upc
        data = get_json(
            "https://www.googleapis.com/customsearch/v1",
            params={"key": settings.GOOGLE_API_KEY, "cx": settings.GOOGLE_SHOPPING_CX, "q": query},
        )
        prices: List[MerchantPrice] = []
        for item in (data.get("items") or [])[:10]:
            match = _SNIPPET_PRICE.search(item.get("snippet") or "")
            if not match or not item.get("link"):
                continue
            prices.append(
                MerchantPrice(
                    merchant=urlparse(item["link"]).hostname.replace("www.", ""),
                    price=float(match.group(1)),
                    url=item["link"],
                )
            )
        return prices
    except SOURCE_ERRORS as e:
        logger.warning("Google Shopping API error: %s", e)
        return []


def fetch_keepa_amazon_prices(upc: str, product_name: Optional[str] = None) -> List[MerchantPrice]:
    """Keepa reports Amazon prices in cents."""
    if not settings.KEEPA_API_KEY:
        logger.info("KEEPA_API_KEY not configured")
        return []
    try:
        data = get_json(
            "https://api.keepa.com/product",
            params={
                "key": settings.KEEPA_API_KEY,
                "domain": 1,
                "code": upc,
                "stats": 180,
                "buybox": 1,
                "offers": 20,
            },
        )
        products = data.get("products") or []
        if not products:
            return []
        product = products[0]
        url = f"https://www.amazon.com/dp/{product.get('asin')}"
        prices: List[MerchantPrice] = []

        current = ((product.get("stats") or {}).get("current") or [None])[0]
        if current is not None and current >= 0:
            prices.append(MerchantPrice(merchant="Amazon", price=current / 100, availability="in_stock", url=url))

        for offer in (product.get("offers") or [])[:5]:
            if not offer.get("price"):
                continue
            prices.append(
                MerchantPrice(
                    merchant=f"Amazon ({offer.get('sellerName') or 'Third-party'})",
                    price=offer["price"] / 100,
                    availability="in_stock" if offer.get("isPrime") else "limited",
                    url=url,
                    shipping=format_price(offer["shippingCost"] / 100) if offer.get("shippingCost") else None,
                )
            )
        return prices
    except SOURCE_ERRORS as e:
        logger.warning("Keepa API error: %s", e)
        return []


def fetch_priceapi_prices(upc: str, product_name: Optional[str] = None) -> List[MerchantPrice]:
    """Submits a PriceAPI job. Results arrive asynchronously and are not polled."""
    if not settings.PRICEAPI_KEY:
        logger.info("PRICEAPI_KEY not configured")
        return []
    try:
        data = post_json(
            "https://api.priceapi.com/v2/jobs",
            {
                "source": "google_shopping",
                "country": "us",
                "topic": "product_and_offers",
                "key": upc,
                "max_pages": 3,
            },
            headers={"Authorization": f"Bearer {settings.PRICEAPI_KEY}"},
        )
        if data.get("job_id"):
            logger.info("PriceAPI job created: %s", data["job_id"])
        return []
    except SOURCE_ERRORS as e:
        logger.warning("PriceAPI error: %s", e)
        return []

# ---------------- Aggregation ---------------- #

PRICING_SOURCES: List[Tuple[str, Callable[[str, Optional[str]], List[MerchantPrice]]]] = [
    ("Shopping.com", fetch_shopping_com_prices),
    ("Google Shopping", fetch_google_shopping_prices),
    ("Keepa (Amazon)", fetch_keepa_amazon_prices),
    ("PriceAPI", fetch_priceapi_prices),
]


def get_all_merchant_prices(upc: str, product_name: Optional[str] = None) -> PricingResponse:
    """All sources in order, one price per merchant (first seen), cheapest first."""
    all_prices: List[MerchantPrice] = []
    sources: List[str] = []

    for name, source in PRICING_SOURCES:
        prices = source(upc, product_name)
        if prices:
            all_prices.extend(prices)
            sources.append(name)

    unique = dedupe_by_retailer(all_prices, key=lambda p: p.merchant)
    unique.sort(key=lambda p: p.price)
    logger.info("Merchant prices for %s: %s offers from %s", upc, len(unique), sources)
    return PricingResponse(barcode=upc, prices=unique, sources=sources)
