from __future__ import annotations
from datetime import datetime
from difflib import SequenceMatcher
from typing import Any, Dict, Iterable, List, Optional, Tuple

import re
from sqlalchemy import delete, func, or_, select
from sqlalchemy.orm import Session

from pricescan.common.logger import logger
from pricescan.common.tools.http_client import get_json
from pricescan.db.database import Base, engine
from pricescan.db.Models.product_models import Price, Product, Retailer
from pricescan.db.Models.user_models import (
    AffiliateClick,
    ChatMessage,
    Favorite,
    ScanHistory,
    ShoppingListItem,
    User,
    utcnow,
)
from pricescan.settings.db_settings import settings

# ---------- service operations ----------

def create_db() -> str:
    try:
        Base.metadata.create_all(bind=engine)
    except Exception as exp:
        if "already exists" in str(exp):
            logger.info("Database already exists")
            return "Database already exists"
        raise
    else:
        return "Database created successfully"

def drop_db() -> str:
    try:
        Base.metadata.drop_all(bind=engine)
    except Exception as exp:
        if "does not exist" in str(exp):
            logger.info("Database does not exist")
            return "Database does not exist"
        raise
    else:
        return "Database dropped successfully"

# ---------- users ----------

def get_user(db: Session, user_id: str) -> Optional[User]:
    return db.get(User, user_id)

def upsert_user(db: Session, data: Dict[str, Any]) -> User:
    user = db.get(User, data["id"])
    if user is None:
        user = User(**data)
        db.add(user)
    else:
        for key, value in data.items():
            setattr(user, key, value)
        user.updated_at = utcnow()
    db.commit()
    db.refresh(user)
    return user

def update_user_subscription(
    db: Session, user_id: str, tier: str, expires_at: Optional[datetime]
) -> Optional[User]:
    user = db.get(User, user_id)
    if user is None:
        return None
    user.subscription_tier = tier
    user.subscription_expires_at = expires_at
    db.commit()
    return user

def reset_daily_scan_count(db: Session, user_id: str) -> None:
    user = db.get(User, user_id)
    if user is None:
        return
    user.daily_scans_count = 0
    user.last_scan_reset_date = utcnow()
    db.commit()

def increment_daily_scan_count(db: Session, user_id: str) -> int:
    user = db.get(User, user_id)
    if user is None:
        return 0
    today = utcnow()
    if user.last_scan_reset_date is None or user.last_scan_reset_date.date() != today.date():
        user.daily_scans_count = 0
        user.last_scan_reset_date = today
    user.daily_scans_count = (user.daily_scans_count or 0) + 1
    db.commit()
    return user.daily_scans_count

# ---------- products ----------

def get_product(db: Session, product_id: int) -> Optional[Product]:
    return db.get(Product, product_id)

def get_product_by_barcode(db: Session, barcode: str) -> Optional[Product]:
    return db.scalar(select(Product).where(Product.barcode == barcode))

def create_product(db: Session, data: Dict[str, Any]) -> Product:
    product = Product(**data)
    db.add(product)
    db.commit()
    db.refresh(product)
    logger.info("Product created: %s (%s)", product.name, product.barcode)
    return product

def update_product(db: Session, product_id: int, updates: Dict[str, Any]) -> Product:
    product = db.get(Product, product_id)
    if product is None:
        raise LookupError(f"Product {product_id} not found")
    for key, value in updates.items():
        setattr(product, key, value)
    db.commit()
    db.refresh(product)
    return product

# ---------- retailers / prices ----------

def get_all_retailers(db: Session) -> List[Retailer]:
    return list(db.scalars(select(Retailer).order_by(Retailer.id)).all())

def get_retailer(db: Session, retailer_id: int) -> Optional[Retailer]:
    return db.get(Retailer, retailer_id)

def get_or_create_retailer(db: Session, name: str, **extra: Any) -> Retailer:
    retailer = db.scalar(select(Retailer).where(Retailer.name == name))
    if retailer is None:
        retailer = Retailer(name=name, logo=extra.pop("logo", name[:1].upper()), **extra)
        db.add(retailer)
        db.flush()
    return retailer

def create_price(
    db: Session,
    product_id: int,
    retailer_id: int,
    price: str,
    stock: Optional[str] = None,
    url: Optional[str] = None,
) -> Price:
    row = Price(product_id=product_id, retailer_id=retailer_id, price=price, stock=stock, url=url)
    db.add(row)
    db.commit()
    db.refresh(row)
    return row

def replace_prices(db: Session, product: Product, offers: Iterable[Dict[str, Any]]) -> Product:
    """
    Replace the stored prices of a product with fresh offers.
    offers: [{"retailer": "...", "price": "$1.99", "availability": "...", "url": "..."}]
    Offers for a retailer seen earlier in the list are skipped.
    """
    product.prices.clear()
    db.flush()
    seen = set()
    for offer in offers:
        name = offer["retailer"]
        if name in seen:
            continue
        seen.add(name)
        product.prices.append(
            Price(
                retailer=get_or_create_retailer(db, name),
                price=offer["price"],
                stock=offer.get("availability"),
                url=offer.get("url"),
            )
        )
    db.commit()
    db.refresh(product)
    return product

# ---------- per-user rows ----------

def _owned_by(column, user_id: Optional[str]):
    """Anonymous rows (user_id NULL) form their own scope."""
    return column.is_(None) if user_id is None else column == user_id

# ---------- scan history ----------

def add_scan_history(
    db: Session,
    barcode: str,
    product_name: str,
    best_price: Optional[str],
    user_id: Optional[str] = None,
) -> ScanHistory:
    row = ScanHistory(barcode=barcode, product_name=product_name, best_price=best_price, user_id=user_id)
    db.add(row)
    db.commit()
    db.refresh(row)
    return row

def get_scan_history(db: Session, user_id: Optional[str] = None) -> List[ScanHistory]:
    q = select(ScanHistory).where(_owned_by(ScanHistory.user_id, user_id))
    q = q.order_by(ScanHistory.scanned_at.desc(), ScanHistory.id.desc())
    return list(db.scalars(q).all())

def clear_scan_history(db: Session, user_id: Optional[str] = None) -> None:
    db.execute(delete(ScanHistory).where(_owned_by(ScanHistory.user_id, user_id)))
    db.commit()

# ---------- favorites ----------

def add_favorite(db: Session, product_id: int, user_id: Optional[str] = None) -> Favorite:
    if get_product(db, product_id) is None:
        raise LookupError(f"Product {product_id} not found")
    row = Favorite(product_id=product_id, user_id=user_id)
    db.add(row)
    db.commit()
    db.refresh(row)
    return row

def remove_favorite(db: Session, product_id: int, user_id: Optional[str] = None) -> None:
    q = select(Favorite).where(
        Favorite.product_id == product_id, _owned_by(Favorite.user_id, user_id)
    )
    favorite = db.scalars(q.order_by(Favorite.id)).first()
    if favorite is not None:
        db.delete(favorite)
        db.commit()

def get_favorites(db: Session, user_id: Optional[str] = None) -> List[Favorite]:
    q = select(Favorite).where(_owned_by(Favorite.user_id, user_id))
    return list(db.scalars(q.order_by(Favorite.id)).unique().all())

# ---------- shopping list ----------

def add_shopping_list_item(db: Session, data: Dict[str, Any]) -> ShoppingListItem:
    if get_product(db, data["product_id"]) is None:
        raise LookupError(f"Product {data['product_id']} not found")
    row = ShoppingListItem(**data)
    db.add(row)
    db.commit()
    db.refresh(row)
    return row

def _get_own_item(db: Session, item_id: int, user_id: Optional[str]) -> ShoppingListItem:
    item = db.get(ShoppingListItem, item_id)
    if item is None or item.user_id != user_id:
        raise LookupError("Shopping list item not found")
    return item

def update_shopping_list_item(
    db: Session, item_id: int, updates: Dict[str, Any], user_id: Optional[str] = None
) -> ShoppingListItem:
    item = _get_own_item(db, item_id, user_id)
    for key, value in updates.items():
        setattr(item, key, value)
    db.commit()
    db.refresh(item)
    return item

def remove_shopping_list_item(db: Session, item_id: int, user_id: Optional[str] = None) -> None:
    item = _get_own_item(db, item_id, user_id)
    db.delete(item)
    db.commit()

def get_shopping_list(db: Session, user_id: Optional[str] = None) -> List[ShoppingListItem]:
    q = select(ShoppingListItem).where(_owned_by(ShoppingListItem.user_id, user_id))
    return list(db.scalars(q.order_by(ShoppingListItem.id)).unique().all())

# ---------- chat ----------

def add_chat_message(db: Session, user_id: str, message: str, is_user: bool) -> ChatMessage:
    row = ChatMessage(user_id=user_id, message=message, is_user=is_user)
    db.add(row)
    db.commit()
    db.refresh(row)
    return row

def get_chat_history(db: Session, user_id: str) -> List[ChatMessage]:
    return list(
        db.scalars(
            select(ChatMessage)
            .where(ChatMessage.user_id == user_id)
            .order_by(ChatMessage.timestamp, ChatMessage.id)
        ).all()
    )

def clear_chat_history(db: Session, user_id: str) -> None:
    db.execute(delete(ChatMessage).where(ChatMessage.user_id == user_id))
    db.commit()

# ---------- affiliate ----------

def track_affiliate_click(db: Session, data: Dict[str, Any]) -> AffiliateClick:
    row = AffiliateClick(**data)
    db.add(row)
    db.commit()
    db.refresh(row)
    return row

# ---------- feed import ----------

def __extract_products_array(json_data: Optional[Dict[str, Any]]) -> List[Dict[str, Any]]:
    if not json_data or "Products" not in json_data:
        raise ValueError("Expected JSON object with key 'Products'")
    products = json_data["Products"]
    if not isinstance(products, list):
        raise ValueError("'Products' must be an array")
    return products

def __parse_feed_products(products: List[Dict[str, Any]]) -> List[Tuple[str, Dict[str, Any], List[Dict[str, Any]]]]:
    """
    -> [(barcode, product_fields, offers)] with prices kept as strings.
    """
    out: List[Tuple[str, Dict[str, Any], List[Dict[str, Any]]]] = []
    for it in products:
        if not isinstance(it, dict):
            continue
        barcode = str(it.get("barcode", "")).strip()
        name = str(it.get("name", "")).strip()
        if not barcode or not name:
            continue
        fields: Dict[str, Any] = {"name": name}
        for key in ("brand", "description", "category"):
            if it.get(key):
                fields[key] = str(it[key]).strip()
        offers: List[Dict[str, Any]] = []
        for offer in it.get("prices") or []:
            if not isinstance(offer, dict):
                continue
            retailer = str(offer.get("retailer", "")).strip()
            price = str(offer.get("price", "")).strip()
            if retailer and price:
                offers.append({"retailer": retailer, "price": price, "url": offer.get("url")})
        out.append((barcode, fields, offers))
    if not out:
        raise ValueError("No valid items in 'Products'")
    return out

def import_products(
    db: Session,
    json_data: Optional[Dict[str, Any]] = None,
    json_url: str = "",
) -> int:
    """
    Without a payload the feed is downloaded from json_url (or PRODUCT_FEED_URL).
    Expects:
    { "Date": "...", "Products": [ { "barcode": "...", "name": "...", "brand": "...",
                                     "prices": [ {"retailer": "...", "price": "$1.99"} ] } ] }
    Upsert by barcode. Offers, when given, replace the stored prices of that product.
    """
    if json_data is None:
        json_url = json_url or settings.PRODUCT_FEED_URL
        if not json_url:
            raise ValueError("Expected JSON object with key 'Products'")
        json_data = get_json(json_url)
    items = __parse_feed_products(__extract_products_array(json_data))

    barcodes = [barcode for barcode, _, _ in items]
    existing = {
        p.barcode: p for p in db.scalars(select(Product).where(Product.barcode.in_(barcodes))).all()
    }

    inserted = updated = 0
    for barcode, fields, offers in items:
        product = existing.get(barcode)
        if product is not None:
            for key, value in fields.items():
                setattr(product, key, value)
            updated += 1
        else:
            product = Product(barcode=barcode, **fields)
            db.add(product)
            existing[barcode] = product
            inserted += 1
        db.flush()
        if offers:
            replace_prices(db, product, offers)
    db.commit()

    total = inserted + updated
    logger.info("import_products: inserted=%s, updated=%s, total=%s", inserted, updated, total)
    return total

# ---------- search ----------
MIN_TOKEN_LEN = 3

LIKE_ESCAPE = "\\"

def _contains(text: str) -> str:
    """LIKE pattern that matches text literally (with escape=LIKE_ESCAPE)."""
    escaped = text.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return f"%{escaped}%"

def _tokenize(q: str) -> List[str]:
    return [t for t in re.split(r"[^\w]+", q.lower()) if len(t) >= MIN_TOKEN_LEN]

def _best_match(query: str, candidates: List[Product]) -> Optional[Product]:
    if not candidates:
        return None
    scored = [(SequenceMatcher(None, query.lower(), p.name.lower()).ratio(), p) for p in candidates]
    scored.sort(key=lambda x: x[0], reverse=True)
    return scored[0][1]

def find_product_best(db: Session, query: str) -> Optional[Product]:
    p = db.scalar(select(Product).where(Product.name.ilike(_contains(query), escape=LIKE_ESCAPE)))
    if p:
        return p
    tokens = _tokenize(query)
    if tokens:
        q = select(Product)
        for t in tokens:
            q = q.where(Product.name.ilike(_contains(t), escape=LIKE_ESCAPE))
        hits = db.scalars(q).all()
        if hits:
            return _best_match(query, list(hits))
        any_token = or_(*[Product.name.ilike(_contains(t), escape=LIKE_ESCAPE) for t in tokens])
        hits = db.scalars(select(Product).where(any_token)).all()
        if hits:
            return _best_match(query, list(hits))
    return None

def search_products(db: Session, query: str, limit: int = 20) -> List[Product]:
    pattern = _contains(query)
    rows = db.scalars(
        select(Product)
        .where(or_(
            Product.name.ilike(pattern, escape=LIKE_ESCAPE),
            Product.brand.ilike(pattern, escape=LIKE_ESCAPE),
        ))
        .order_by(Product.name)
        .limit(limit)
    ).all()
    if rows:
        return list(rows)
    best = find_product_best(db, query)
    return [best] if best else []

# ---------- sample data ----------

SAMPLE_RETAILERS = [("Target", "T"), ("Walmart", "W"), ("Amazon", "A")]
SAMPLE_STOCK = ["In Stock", "Limited Stock", "Prime Shipping"]
SAMPLE_PRODUCTS = [
    (
        {
            "barcode": "123456789012",
            "name": "iPhone 15 Pro Max",
            "brand": "Apple",
            "description": "Latest flagship smartphone with A17 Pro chip, titanium design, and pro camera system",
        },
        [1199.99, 1249.99, 1199.00],
    ),
    (
        {
            "barcode": "789012345678",
            "name": "Coca-Cola Classic",
            "brand": "Coca-Cola",
            "description": "Classic cola soft drink",
            "packaging_type": "recyclable",
        },
        [1.99, 2.29, 1.89],
    ),
]

def seed_sample_data(db: Session) -> int:
    """Insert demo retailers and products; a no-op when products already exist."""
    if db.scalar(select(func.count(Product.id))):
        return 0
    retailers = [get_or_create_retailer(db, name, logo=logo) for name, logo in SAMPLE_RETAILERS]
    for fields, base_prices in SAMPLE_PRODUCTS:
        product = Product(**fields)
        db.add(product)
        db.flush()
        for retailer, amount, stock in zip(retailers, base_prices, SAMPLE_STOCK):
            product.prices.append(
                Price(
                    retailer=retailer,
                    price=f"${amount:.2f}",
                    stock=stock,
                    url=f"https://example.com/product/{product.id}",
                )
            )
    db.commit()
    logger.info("Seeded %s sample products", len(SAMPLE_PRODUCTS))
    return len(SAMPLE_PRODUCTS)
