"""
Shared FastAPI dependencies.
"""
from fastapi import Depends
from sqlalchemy.orm import Session
from tripledger.db.session import get_db
from tripledger.services.settlement_service import log_payment_reminder
from tripledger.services.trip_ledger import TripLedger
from tripledger.storage.sql import SqlLedgerStore

# Listeners notified when a payment leaves an expense unsettled
reminder_listeners = [log_payment_reminder]


def get_ledger(db: Session = Depends(get_db)) -> TripLedger:
    """
    Dependency for getting a ledger bound to the request's session.

    The ledger lives for one request, so balances are recomputed from the
    session's snapshot each time; the version memo only pays off for a
    long-lived ledger.
    """
    return TripLedger(SqlLedgerStore(db), listeners=reminder_listeners)
