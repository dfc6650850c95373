"""
Celery Tasks
Background work queued by the API after a bill is generated.
"""

import logging
import time

from restopos.celery_worker import celery_app
from restopos.services.ledger import BillLedger

logger = logging.getLogger(__name__)


@celery_app.task(
    bind=True,
    max_retries=3,
    default_retry_delay=5,
    autoretry_for=(OSError,),
    retry_backoff=True,
)
def export_bill_to_ledger(self, bill: dict) -> dict:
    """
    Append a generated bill to the spreadsheet ledger.

    Args:
        bill: JSON bill view (order id, totals, payment method, lines)

    Returns:
        dict: Result of the export operation
    """
    task_id = self.request.id
    order_id = bill.get("order_id", "unknown")

    logger.info(f"Task {task_id}: exporting bill {order_id}")
    start_time = time.time()

    result = BillLedger().append_bill(bill)

    elapsed = round(time.time() - start_time, 3)
    result["task_id"] = task_id
    result["processing_time_seconds"] = elapsed

    if result["success"]:
        logger.info(f"Task {task_id}: bill {order_id} done in {elapsed}s")
    else:
        logger.warning(f"Task {task_id}: bill {order_id} failed - {result['message']}")

    return result

