from __future__ import annotations

from typing import Any, Dict, List

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from starlette.requests import Request

from pricescan.api.v1.errors import not_found, server_error
from pricescan.common.auth import current_user_id
from pricescan.common.Schemas.product_schemas import (
    FavoriteCreate,
    FavoriteOut,
    ShoppingListItemCreate,
    ShoppingListItemOut,
    ShoppingListItemUpdate,
)
from pricescan.db import CRUD
from pricescan.db.database import get_db

router: APIRouter = APIRouter()

# ---------------- Favorites ---------------- #

@router.get("/favorites", response_model=List[FavoriteOut], tags=["Favorites"])
async def get_favorites(request: Request, db: Session = Depends(get_db)) -> Any:
    try:
        return CRUD.get_favorites(db, current_user_id(request))
    except Exception as e:
        raise server_error("Favorites", e)


@router.post("/favorites", response_model=FavoriteOut, tags=["Favorites"])
async def add_favorite(
    payload: FavoriteCreate,
    request: Request,
    db: Session = Depends(get_db),
) -> Any:
    try:
        return CRUD.add_favorite(db, payload.product_id, user_id=current_user_id(request))
    except LookupError as e:
        raise not_found(e)
    except Exception as e:
        raise server_error("Add favorite", e)


@router.delete("/favorites/{product_id}", tags=["Favorites"])
async def remove_favorite(
    product_id: int,
    request: Request,
    db: Session = Depends(get_db),
) -> Dict[str, Any]:
    try:
        CRUD.remove_favorite(db, product_id, current_user_id(request))
        return {"success": True}
    except Exception as e:
        raise server_error("Remove favorite", e)

# ---------------- Shopping list ---------------- #

@router.get("/shopping-list", response_model=List[ShoppingListItemOut], tags=["Shopping list"])
async def get_shopping_list(request: Request, db: Session = Depends(get_db)) -> Any:
    try:
        return CRUD.get_shopping_list(db, current_user_id(request))
    except Exception as e:
        raise server_error("Shopping list", e)


@router.post("/shopping-list", response_model=ShoppingListItemOut, tags=["Shopping list"])
async def add_shopping_list_item(
    payload: ShoppingListItemCreate,
    request: Request,
    db: Session = Depends(get_db),
) -> Any:
    data = payload.model_dump()
    data["user_id"] = current_user_id(request)
    try:
        return CRUD.add_shopping_list_item(db, data)
    except LookupError as e:
        raise not_found(e)
    except Exception as e:
        raise server_error("Add shopping list item", e)


@router.patch("/shopping-list/{item_id}", response_model=ShoppingListItemOut, tags=["Shopping list"])
async def update_shopping_list_item(
    item_id: int,
    updates: ShoppingListItemUpdate,
    request: Request,
    db: Session = Depends(get_db),
) -> Any:
    try:
        return CRUD.update_shopping_list_item(
            db, item_id, updates.model_dump(exclude_unset=True), user_id=current_user_id(request)
        )
    except LookupError as e:
        raise not_found(e)
    except Exception as e:
        raise server_error("Update shopping list item", e)


@router.delete("/shopping-list/{item_id}", tags=["Shopping list"])
async def remove_shopping_list_item(
    item_id: int,
    request: Request,
    db: Session = Depends(get_db),
) -> Dict[str, Any]:
    try:
        CRUD.remove_shopping_list_item(db, item_id, user_id=current_user_id(request))
        return {"success": True}
    except LookupError as e:
        raise not_found(e)
    except Exception as e:
        raise server_error("Remove shopping list item", e)
