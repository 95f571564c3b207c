from fastapi import HTTPException
from starlette import status

from pricescan.common.logger import logger


def server_error(action: str, e: Exception) -> HTTPException:
    logger.error("%s error - %s", action, e, exc_info=True)
    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Internal server error"
    )


def not_found(e: LookupError) -> HTTPException:
    return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
