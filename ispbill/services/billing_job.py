# ispbill/services/billing_job.py
import logging
from datetime import date

from sqlmodel import Session

from ..core.tenancy import Principal
from ..db.engine import engine
from .invoice_service import InvoiceLifecycleManager

logger = logging.getLogger("BillingJob")


def run_invoice_generation(today: date | None = None) -> int:
    """
    Generates the invoices due today.
    Called daily by APScheduler at BILLING_INVOICE_TIME.
    """
    logger.info("--- RUNNING INVOICE GENERATION ---")
    try:
        with Session(engine) as session:
            manager = InvoiceLifecycleManager(session, Principal.system())
            created = manager.generate_due_invoices(today)
            logger.info(f"--- END OF INVOICE GENERATION. {len(created)} invoice(s) created ---")
            return len(created)
    except Exception as e:
        logger.critical(f"Critical error in invoice generation: {e}", exc_info=True)
        raise


def run_overdue_check(today: date | None = None) -> dict:
    """
    Marks overdue invoices and reports services eligible for isolation.
    Called daily by APScheduler at BILLING_ISOLATION_TIME.
    """
    logger.info("--- RUNNING OVERDUE CHECK ---")
    try:
        with Session(engine) as session:
            manager = InvoiceLifecycleManager(session, Principal.system())
            overdue = manager.mark_overdue(today)
            candidates = manager.isolation_candidates(today)
            for service in candidates:
                logger.info(
                    f"   - Service {service.id} ({service.username_pppoe or 'no PPPoE user'}) "
                    f"eligible for isolation"
                )
            stats = {"overdue": overdue, "isolation_candidates": [s.id for s in candidates]}
            logger.info(f"--- END OF OVERDUE CHECK. Summary: {stats} ---")
            return stats
    except Exception as e:
        logger.critical(f"Critical error in overdue check: {e}", exc_info=True)
        raise
