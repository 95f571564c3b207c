from sqlalchemy import JSON, Boolean, Column, ForeignKey, Integer, String, Text
from sqlalchemy.orm import relationship

from pricescan.db.database import Base

class Product(Base):
    __tablename__ = "products"
    id = Column(Integer, primary_key=True)
    barcode = Column(String, unique=True, index=True, nullable=False)
    name = Column(String, index=True, nullable=False)
    brand = Column(String, nullable=True)
    description = Column(Text, nullable=True)
    image_url = Column(String, nullable=True)
    category = Column(String, nullable=True)

    # eco impact, entered manually or taken from feeds
    eco_score = Column(Integer, nullable=True)  # 0..100
    carbon_footprint = Column(String, nullable=True)
    packaging_type = Column(String, nullable=True)
    sustainability_certifications = Column(JSON, nullable=True)
    is_eco_friendly = Column(Boolean, nullable=False, default=False)

    prices = relationship(
        "Price", back_populates="product", cascade="all, delete-orphan", lazy="selectin"
    )

class Retailer(Base):
    __tablename__ = "retailers"
    id = Column(Integer, primary_key=True)
    name = Column(String, unique=True, index=True, nullable=False)
    logo = Column(String, nullable=True)
    affiliate_program = Column(Boolean, nullable=False, default=False)
    affiliate_base_url = Column(String, nullable=True)
    affiliate_commission_rate = Column(String, nullable=True)  # "4%"

    prices = relationship("Price", back_populates="retailer")

class Price(Base):
    __tablename__ = "prices"
    id = Column(Integer, primary_key=True)
    product_id = Column(Integer, ForeignKey("products.id"), nullable=False, index=True)
    retailer_id = Column(Integer, ForeignKey("retailers.id"), nullable=False)
    price = Column(String, nullable=False)  # kept as displayed, e.g. "$1.99"
    stock = Column(String, nullable=True)
    url = Column(String, nullable=True)

    product = relationship("Product", back_populates="prices")
    retailer = relationship("Retailer", back_populates="prices", lazy="joined")
