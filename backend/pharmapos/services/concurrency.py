# Overview: Service-layer helpers for concurrency; retries optimistic-write conflicts.

from __future__ import annotations

import logging
import time

from sqlalchemy.exc import OperationalError
from sqlalchemy.orm.exc import StaleDataError

from ..extensions import db
from .document_store import StaleDocumentError


logger = logging.getLogger(__name__)


def run_with_retry(func, *, attempts: int = 3, backoff_base: float = 0.1):
    """
    Execute a store operation with retry on concurrency-related failures.

    Retries on OperationalError (locks), StaleDataError and
    StaleDocumentError (compare-and-swap conflicts). The callable must be
    safe to re-run from the top: it re-reads whatever it writes.
    """
    last_exc = None
    for attempt in range(attempts):
        try:
            return func()
        except (OperationalError, StaleDataError, StaleDocumentError) as exc:
            db.session.rollback()
            last_exc = exc
            if attempt >= attempts - 1:
                raise
            logger.warning("Retrying after concurrent write (attempt %d): %s", attempt + 1, exc)
            time.sleep(backoff_base * (2 ** attempt))
    if last_exc:
        raise last_exc
