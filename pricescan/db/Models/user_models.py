from datetime import datetime, timezone

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import relationship

from pricescan.db.database import Base


def utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


class User(Base):
    __tablename__ = "users"
    id = Column(String, primary_key=True)
    email = Column(String, unique=True, nullable=True)
    first_name = Column(String, nullable=True)
    last_name = Column(String, nullable=True)
    profile_image_url = Column(String, nullable=True)

    subscription_tier = Column(String, nullable=False, default="free")
    subscription_expires_at = Column(DateTime, nullable=True)
    daily_scans_count = Column(Integer, nullable=False, default=0)
    last_scan_reset_date = Column(DateTime, nullable=True)

    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)


class ScanHistory(Base):
    __tablename__ = "scan_history"
    id = Column(Integer, primary_key=True)
    user_id = Column(String, ForeignKey("users.id"), nullable=True, index=True)
    barcode = Column(String, nullable=False)
    product_name = Column(String, nullable=False)
    scanned_at = Column(DateTime, default=utcnow, index=True)
    best_price = Column(String, nullable=True)


class Favorite(Base):
    __tablename__ = "favorites"
    id = Column(Integer, primary_key=True)
    user_id = Column(String, ForeignKey("users.id"), nullable=True, index=True)
    product_id = Column(Integer, ForeignKey("products.id"), nullable=False)
    added_at = Column(DateTime, default=utcnow)

    product = relationship("Product", lazy="joined")


class ShoppingListItem(Base):
    __tablename__ = "shopping_list_items"
    id = Column(Integer, primary_key=True)
    user_id = Column(String, ForeignKey("users.id"), nullable=True, index=True)
    product_id = Column(Integer, ForeignKey("products.id"), nullable=False)
    quantity = Column(Integer, nullable=False, default=1)
    unit_price = Column(String, nullable=True)  # user override
    completed = Column(Boolean, nullable=False, default=False)
    added_at = Column(DateTime, default=utcnow)

    product = relationship("Product", lazy="joined")


class ChatMessage(Base):
    __tablename__ = "chat_messages"
    id = Column(Integer, primary_key=True)
    user_id = Column(String, nullable=False, index=True)
    message = Column(Text, nullable=False)
    is_user = Column(Boolean, nullable=False, default=True)
    timestamp = Column(DateTime, default=utcnow)


class AffiliateClick(Base):
    __tablename__ = "affiliate_clicks"
    id = Column(Integer, primary_key=True)
    user_id = Column(String, nullable=True)
    product_id = Column(Integer, ForeignKey("products.id"), nullable=False)
    retailer_id = Column(Integer, ForeignKey("retailers.id"), nullable=False)
    affiliate_url = Column(String, nullable=False)
    commission_rate = Column(String, nullable=True)
    estimated_commission = Column(String, nullable=True)
    conversion_tracked = Column(Boolean, nullable=False, default=False)
    actual_commission = Column(String, nullable=True)
    clicked_at = Column(DateTime, default=utcnow)
