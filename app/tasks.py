"""
Celery tasks for async processing

Tasks:
- reconcile_pending_orders: settle PENDING orders whose webhook never arrived
"""
import logging

from app.celery_app import celery_app
from app.config import settings
from app.database import SessionLocal

logger = logging.getLogger(__name__)


@celery_app.task(name="reconcile_pending_orders", bind=True, max_retries=0)
def reconcile_pending_orders(self):
    """Poll PushinPay for stale PENDING orders and apply the result."""
    from app.services import orders

    if not settings.reconcile_pending_enabled:
        logger.info("Pending order reconciliation disabled")
        return {"status": "disabled"}

    db = SessionLocal()
    try:
        return orders.reconcile_pending_orders(db)
    except Exception:
        db.rollback()
        logger.exception("Pending order reconciliation failed")
        raise
    finally:
        db.close()
