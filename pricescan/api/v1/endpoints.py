from __future__ import annotations

from typing import Any, Dict, List, Optional

import requests  # type: ignore
from fastapi import APIRouter, Body, Depends, HTTPException, Query
from sqlalchemy import text
from sqlalchemy.orm import Session
from starlette import status
from starlette.requests import Request

from pricescan.api.v1.errors import not_found, server_error
from pricescan.common.auth import current_user_id
from pricescan.common.catalog import product_detail, refresh_prices, scan_barcode
from pricescan.common.eco import eco_summary
from pricescan.common.monetization import check_scan_limit
from pricescan.common.pricing import parse_price
from pricescan.common.Schemas.account_schemas import AnalyticsOut
from pricescan.common.Schemas.product_schemas import (
    ProductCreate,
    ProductDetail,
    ProductOut,
    ProductUpdate,
    RetailerOut,
    ScanHistoryOut,
    ScanRequest,
    ScanResult,
)
from pricescan.db import CRUD
from pricescan.db.database import get_db

router: APIRouter = APIRouter()

# ---------------- Products ---------------- #

@router.post("/products", response_model=ProductOut, tags=["Products"])
async def create_product(payload: ProductCreate, db: Session = Depends(get_db)) -> Any:
    if CRUD.get_product_by_barcode(db, payload.barcode) is not None:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"Product with barcode {payload.barcode} already exists",
        )
    try:
        return CRUD.create_product(db, payload.model_dump())
    except Exception as e:
        raise server_error("Create product", e)


@router.get("/products", response_model=List[ProductOut], tags=["Products"])
async def search_products(
    search: str = Query(..., min_length=2),
    limit: int = Query(20, ge=1, le=100),
    db: Session = Depends(get_db),
) -> Any:
    try:
        return CRUD.search_products(db, search, limit=limit)
    except Exception as e:
        raise server_error("Search products", e)


@router.post("/products/import", tags=["Products"])
def import_products(
    payload: Optional[dict] = Body(default=None),
    url: str = Query("", description="Feed to download when the body is empty"),
    db: Session = Depends(get_db),
) -> Dict[str, Any]:
    """
    Bulk upsert from a product feed. An empty POST downloads the feed from
    `url` or PRODUCT_FEED_URL. With a body it expects:
    {
      "Date": "2025-09-09T10:14:58Z",
      "Products": [
        { "barcode": "012345678905", "name": "…", "brand": "…",
          "prices": [ {"retailer": "Target", "price": "$1.99"} ] }
      ]
    }
    """
    try:
        total = CRUD.import_products(db, json_data=payload, json_url=url)
        return {
            "status_code": status.HTTP_202_ACCEPTED,
            "message": f"Total updated: {total}",
        }
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except requests.RequestException as e:
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=f"Feed download failed: {e}")
    except Exception as e:
        raise server_error("Import products", e)


@router.get("/products/{barcode}", response_model=ProductDetail, tags=["Products"])
async def get_product(barcode: str, db: Session = Depends(get_db)) -> Any:
    product = CRUD.get_product_by_barcode(db, barcode)
    if product is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Product not found")
    return product_detail(product)


@router.patch("/products/{product_id}", response_model=ProductOut, tags=["Products"])
async def update_product(
    product_id: int,
    updates: ProductUpdate,
    db: Session = Depends(get_db),
) -> Any:
    try:
        return CRUD.update_product(db, product_id, updates.model_dump(exclude_unset=True))
    except LookupError as e:
        raise not_found(e)
    except Exception as e:
        raise server_error("Update product", e)


@router.post("/products/{barcode}/refresh-prices", response_model=ProductDetail, tags=["Products"])
def refresh_product_prices(barcode: str, db: Session = Depends(get_db)) -> Any:
    product = CRUD.get_product_by_barcode(db, barcode)
    if product is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Product not found")
    try:
        return refresh_prices(db, product)
    except Exception as e:
        raise server_error("Refresh prices", e)

# ---------------- Retailers ---------------- #

@router.get("/retailers", response_model=List[RetailerOut], tags=["Retailers"])
async def get_retailers(db: Session = Depends(get_db)) -> Any:
    try:
        return CRUD.get_all_retailers(db)
    except Exception as e:
        raise server_error("Retailers", e)

# ---------------- Scan ---------------- #

@router.post("/scan", response_model=ScanResult, tags=["Scan"])
def scan(
    request: Request,
    payload: Optional[ScanRequest] = None,
    db: Session = Depends(get_db),
) -> Any:
    barcode = ((payload.barcode if payload else None) or "").strip()
    if not barcode:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Barcode is required")

    user_id = current_user_id(request)
    if user_id is not None:
        limit = check_scan_limit(db, user_id)
        if not limit.can_scan:
            raise HTTPException(
                status_code=status.HTTP_429_TOO_MANY_REQUESTS,
                detail="Daily scan limit reached, upgrade to scan more",
            )

    try:
        detail = scan_barcode(db, barcode, user_id=user_id)
    except Exception as e:
        raise server_error("Scan", e)

    if detail is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Product not found")
    return ScanResult(product=detail, best_price=detail.best_price)

# ---------------- History ---------------- #

@router.get("/history", response_model=List[ScanHistoryOut], tags=["History"])
async def get_history(request: Request, db: Session = Depends(get_db)) -> Any:
    try:
        return CRUD.get_scan_history(db, current_user_id(request))
    except Exception as e:
        raise server_error("History", e)


@router.delete("/history", tags=["History"])
async def clear_history(request: Request, db: Session = Depends(get_db)) -> Dict[str, Any]:
    try:
        CRUD.clear_scan_history(db, current_user_id(request))
        return {"success": True}
    except Exception as e:
        raise server_error("Clear history", e)

# ---------------- Analytics ---------------- #

@router.get("/analytics", response_model=AnalyticsOut, tags=["Analytics"])
async def get_analytics(request: Request, db: Session = Depends(get_db)) -> Any:
    user_id = current_user_id(request)
    try:
        history = CRUD.get_scan_history(db, user_id)
        favorites = CRUD.get_favorites(db, user_id)
    except Exception as e:
        raise server_error("Analytics", e)

    spent = [p for p in (parse_price(h.best_price) for h in history) if p is not None]
    total = round(sum(spent), 2)
    return AnalyticsOut(
        total_scans=len(history),
        total_best_price=total,
        average_best_price=round(total / len(spent), 2) if spent else 0.0,
        favorites_count=len(favorites),
        **eco_summary(f.product for f in favorites),
    )

# ---------------- DB utils ---------------- #

@router.get("/status_DB", tags=["database"])
async def get_db_status(db: Session = Depends(get_db)) -> Dict[str, Any]:
    """
    Health-check: runs a trivial query against the configured database.
    """
    try:
        db.scalar(text("SELECT 1"))
        return {"status": status.HTTP_200_OK, "DB_dialect": db.get_bind().dialect.name}
    except Exception as e:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Error connecting to DB: {e}",
        )


@router.post("/create_DB", tags=["database"])
async def create_tables() -> Dict[str, Any]:
    """
    Creates the tables if they are missing.
    """
    try:
        message = CRUD.create_db()
        return {"status_code": status.HTTP_200_OK, "transaction": message}
    except Exception:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST, detail="Error creating tables"
        )
