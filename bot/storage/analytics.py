"""Event log and aggregate usage statistics."""
from typing import Any, Dict, Optional
import logging

from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError

from storage.database import SessionLocal, Group, ReceiptScan, Split, UserEvent

logger = logging.getLogger(__name__)

# A scan counts as accurate when subtotal plus charges lands within 1% of the total.
OCR_ACCURACY_MARGIN = 0.01


def log_event(user_id: int, chat_id: int, event_type: str, username: Optional[str] = None, extra: Optional[str] = None) -> None:
    try:
        with SessionLocal() as session:
            session.add(UserEvent(user_id=user_id, chat_id=chat_id, event_type=event_type, username=username, extra=extra))
            session.commit()
    except (SQLAlchemyError, RuntimeError) as e:
        logger.warning(f"Failed to log event {event_type} for {user_id}: {e}")


def _count(session, statement) -> int:
    return session.scalar(statement) or 0


def get_analytics() -> Dict[str, Any]:
    with SessionLocal() as session:
        total_receipts = _count(session, select(func.count()).select_from(ReceiptScan))
        successful_scans = _count(session, select(func.count()).select_from(ReceiptScan).where(ReceiptScan.success.is_(True)))
        total_splits = _count(session, select(func.count()).select_from(Split))
        manual_splits = _count(session, select(func.count()).select_from(Split).where(Split.is_manual_split.is_(True)))
        receipt_splits = _count(session, select(func.count()).select_from(Split).where(Split.is_manual_split.is_(False)))
        total_groups = _count(session, select(func.count()).select_from(Group))

        scans = session.scalars(
            select(ReceiptScan).where(
                ReceiptScan.success.is_(True),
                ReceiptScan.total.is_not(None),
                ReceiptScan.subtotal.is_not(None),
            )
        ).all()

    accurate = 0
    processed = 0
    for scan in scans:
        if not scan.total or not scan.subtotal:
            continue
        processed += 1
        calculated = scan.subtotal + (scan.service_charge or 0) + (scan.service_tax or 0)
        if abs(calculated - scan.total) / scan.total < OCR_ACCURACY_MARGIN:
            accurate += 1

    ocr_accuracy = (accurate / processed) * 100 if processed else 0.0

    results = {
        "total_receipts": total_receipts,
        "successful_scans": successful_scans,
        "total_splits": total_splits,
        "manual_splits": manual_splits,
        "receipt_splits": receipt_splits,
        "total_groups": total_groups,
        "ocr_accuracy": round(ocr_accuracy, 2),
        "processed_receipts": processed,
    }
    logger.info(f"Analytics results: {results}")
    return results
