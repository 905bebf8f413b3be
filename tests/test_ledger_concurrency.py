"""Same-lot operations racing from separate sessions must serialize."""

import threading
from decimal import Decimal

import pytest

from app.teatrade.core.context import RequestContext
from app.teatrade.core.error_catalog import AppError
from app.teatrade.db.models import StockAssignment
from app.teatrade.repos.assignments import AssignmentRepository
from app.teatrade.repos.stocks import StockRepository
from app.teatrade.services.assignments import AssignmentService
from app.teatrade.services.stocks import StockService
from tests.ledger_helpers import reload_stock, weight


def _admin() -> RequestContext:
    return RequestContext(user_id="admin-1", role="admin", email=None, trace_id="trace-race")


def _pause_after(monkeypatch, owner, name: str, wait_seconds: float = 0.5) -> None:
    """Hold each caller after its read until both have read, or the wait expires."""
    original = getattr(owner, name)
    guard = threading.Lock()
    callers = []
    both_read = threading.Event()

    def paused(self, *args, **kwargs):
        result = original(self, *args, **kwargs)
        with guard:
            callers.append(threading.get_ident())
            if len(callers) >= 2:
                both_read.set()
        both_read.wait(timeout=wait_seconds)
        return result

    monkeypatch.setattr(owner, name, paused)


def _race(*calls) -> list[str]:
    from app.teatrade.db.session import SessionLocal

    outcomes: list[str | None] = [None] * len(calls)

    def run(index, call):
        db = SessionLocal()
        try:
            call(db)
            outcomes[index] = "ok"
        except AppError as exc:
            outcomes[index] = exc.error.code
        finally:
            db.close()

    threads = [threading.Thread(target=run, args=(index, call)) for index, call in enumerate(calls)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join(timeout=30)
    return sorted(str(outcome) for outcome in outcomes)


def test_concurrent_reductions_cannot_overdraw_a_lot(client, db_session, make_stock, monkeypatch):
    stock = make_stock(weight="100.00", bags=10)
    _pause_after(monkeypatch, StockRepository, "get_for_update")

    def reduce(db):
        StockService(db, _admin()).adjust(stock.id, Decimal("-60"), "Sample draw")

    outcomes = _race(reduce, reduce)

    assert outcomes == ["INVALID_ADJUSTMENT", "ok"]
    refreshed = reload_stock(db_session, stock.id)
    assert refreshed.weight == weight("40.00")
    assert refreshed.bags == 4


@pytest.mark.parametrize("second_call", ["assign", "bulk_assign"])
def test_concurrent_assignments_leave_one_assignee(
    client, db_session, make_user, make_stock, monkeypatch, second_call
):
    make_user("user-1")
    make_user("user-2")
    stock = make_stock()
    _pause_after(monkeypatch, AssignmentRepository, "for_stocks")

    def assign_first(db):
        AssignmentService(db, _admin()).assign(stock.id, "user-1")

    def assign_second(db):
        service = AssignmentService(db, _admin())
        if second_call == "assign":
            service.assign(stock.id, "user-2")
        else:
            service.bulk_assign("user-2", [(stock.id, None)])

    outcomes = _race(assign_first, assign_second)

    assert outcomes == ["ALREADY_ASSIGNED", "ok"]
    assert db_session.query(StockAssignment).filter_by(stocks_id=stock.id).count() == 1
