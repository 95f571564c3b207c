from typing import Any, Dict, List

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session
from starlette import status
from starlette.requests import Request

from pricescan.api.v1.errors import not_found, server_error
from pricescan.common.auth import current_user_id, login_session, logout_session
from pricescan.common.logger import logger
from pricescan.common.monetization import (
    FREE_TIER,
    SUBSCRIPTION_PLANS,
    check_scan_limit,
    check_subscription_status,
    generate_affiliate_url,
    subscribe,
)
from pricescan.common.Schemas.account_schemas import (
    AffiliateClickOut,
    AffiliateClickRequest,
    LoginRequest,
    SubscribeRequest,
    SubscriptionPlan,
    SubscriptionStatusOut,
    UserOut,
)
from pricescan.db import CRUD
from pricescan.db.database import get_db

router: APIRouter = APIRouter()


def _require_user(request: Request) -> str:
    user_id = current_user_id(request)
    if user_id is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized")
    return user_id

# ---------------- Auth ---------------- #

@router.post("/auth/login", response_model=UserOut, tags=["Auth"])
async def login(payload: LoginRequest, request: Request, db: Session = Depends(get_db)) -> Any:
    try:
        user = CRUD.upsert_user(db, payload.model_dump(exclude_unset=True))
    except Exception as e:
        raise server_error("Login", e)
    login_session(request, user.id)
    logger.info("User %s logged in", user.id)
    return user


@router.get("/auth/user", response_model=UserOut, tags=["Auth"])
async def get_current_user(request: Request, db: Session = Depends(get_db)) -> Any:
    user = CRUD.get_user(db, _require_user(request))
    if user is None:
        # session outlived the user row
        logout_session(request)
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized")
    return user


@router.get("/logout", tags=["Auth"])
async def logout(request: Request) -> Dict[str, Any]:
    logout_session(request)
    return {"success": True}

# ---------------- Subscription ---------------- #

@router.get("/subscription/plans", response_model=List[SubscriptionPlan], tags=["Subscription"])
async def get_plans() -> Any:
    return SUBSCRIPTION_PLANS


@router.get("/subscription/status", response_model=SubscriptionStatusOut, tags=["Subscription"])
async def get_subscription_status(request: Request, db: Session = Depends(get_db)) -> Any:
    user_id = current_user_id(request)
    if user_id is None:
        return SubscriptionStatusOut(is_active=False, tier=FREE_TIER)
    try:
        current = check_subscription_status(db, user_id)
        limit = check_scan_limit(db, user_id)
    except Exception as e:
        raise server_error("Subscription status", e)
    return SubscriptionStatusOut(**current.model_dump(), scan_limit=limit)


@router.post("/subscription/subscribe", response_model=SubscriptionStatusOut, tags=["Subscription"])
async def subscribe_to_plan(
    payload: SubscribeRequest,
    request: Request,
    db: Session = Depends(get_db),
) -> Any:
    user_id = _require_user(request)
    try:
        current = subscribe(db, user_id, payload.plan_id)
        limit = check_scan_limit(db, user_id)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except LookupError as e:
        raise not_found(e)
    except Exception as e:
        raise server_error("Subscribe", e)
    return SubscriptionStatusOut(**current.model_dump(), scan_limit=limit)

# ---------------- Affiliate ---------------- #

@router.post("/affiliate/click", response_model=AffiliateClickOut, tags=["Affiliate"])
async def affiliate_click(
    payload: AffiliateClickRequest,
    request: Request,
    db: Session = Depends(get_db),
) -> Any:
    try:
        url = generate_affiliate_url(
            db,
            current_user_id(request),
            payload.product_id,
            payload.retailer_id,
            payload.url,
        )
    except Exception as e:
        raise server_error("Affiliate click", e)
    return AffiliateClickOut(url=url)
