from fastapi import FastAPI
from starlette.middleware.sessions import SessionMiddleware

from pricescan.api.v1 import account, chat, endpoints, lists
from pricescan.common.logger import logger
from pricescan.db import CRUD
from pricescan.db.database import Base, SessionLocal, engine
from pricescan.db.Models import product_models as _product_models  # models must be imported before create_all
from pricescan.db.Models import user_models as _user_models
from pricescan.settings.db_settings import settings

app = FastAPI(title=settings.APP_NAME, version=settings.APP_VERSION)

Base.metadata.create_all(bind=engine)

if settings.SEED_SAMPLE_DATA:
    with SessionLocal() as db:
        CRUD.seed_sample_data(db)

app.add_middleware(SessionMiddleware, secret_key=settings.SESSION_SECRET)

app.include_router(endpoints.router, prefix="/api")
app.include_router(lists.router, prefix="/api")
app.include_router(chat.router, prefix="/api")
app.include_router(account.router, prefix="/api")

logger.info("Starting %s %s", settings.APP_NAME, settings.APP_VERSION)
