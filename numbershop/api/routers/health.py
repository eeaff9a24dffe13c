# numbershop/api/routers/health.py
from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.orm import Session

from numbershop.api.dependencies import get_db, get_cart_store
from numbershop.services.cart_service import CartStore
from numbershop.utils.logging import get_logger

logger = get_logger(__name__)

router = APIRouter(tags=["health"])


@router.get("/health")
def health(db: Session = Depends(get_db), store: CartStore = Depends(get_cart_store)):
    checks = {}

    try:
        db.execute(text("SELECT 1"))
        checks["database"] = True
    except Exception as e:
        logger.error(f"Health: database unreachable: {e}")
        checks["database"] = False

    try:
        checks["redis"] = store.ping()
    except Exception as e:
        logger.error(f"Health: redis unreachable: {e}")
        checks["redis"] = False

    ok = all(checks.values())
    return JSONResponse(status_code=200 if ok else 503, content={"status": "ok" if ok else "degraded", **checks})
