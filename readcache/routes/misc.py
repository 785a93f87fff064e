"""
Miscellaneous routes: health check.
"""

import logging

from fastapi import APIRouter

from .. import __version__
from ..config import state
from ..exceptions import StoreUnavailable

logger = logging.getLogger(__name__)

router = APIRouter(tags=["misc"])


@router.get("/status")
async def health_check() -> dict:
    """API health check, including store reachability."""
    store_status = "unavailable"
    if state.store:
        try:
            await state.store.ping()
            store_status = "ok"
        except StoreUnavailable as e:
            logger.warning(f"Health check could not reach store: {e}")

    return {
        "status": "ok",
        "version": __version__,
        "store": store_status,
    }
