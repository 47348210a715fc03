import threading

from conftest import add_user, build_ledger

from profitpro.domain.errors import InsufficientStockError
from profitpro.repositories.memory_repo import InMemoryRepository
from profitpro.repositories.sqlite_repo import SqliteRepository


def _race(ledger, agent, pid, quantities):
    barrier = threading.Barrier(len(quantities))
    outcomes = []
    lock = threading.Lock()

    def worker(q):
        barrier.wait()
        try:
            ledger.record_sale(agent, pid, q)
            result = "ok"
        except InsufficientStockError:
            result = "insufficient"
        with lock:
            outcomes.append(result)

    threads = [threading.Thread(target=worker, args=(q,)) for q in quantities]
    for t in threads:
        t.start()
    for t in threads:
        t.join()
    return outcomes


def test_two_sales_that_fit_alone_but_not_together_memory():
    repo = InMemoryRepository()
    agent = add_user(repo, "agent@shop.test")
    pid = repo.add_product("Widget", 5.0, 8.0, 5)
    ledger = build_ledger(repo)

    for _ in range(20):
        repo.update_product(pid, "Widget", 5.0, 8.0, 5)
        for sale in repo.list_sales():
            repo.delete_sale(sale.id, sale.quantity)

        outcomes = _race(ledger, agent, pid, [3, 4])

        assert outcomes.count("ok") == 1
        assert outcomes.count("insufficient") == 1
        product = repo.get_product(pid)
        assert product.stock >= 0
        assert product.stock == 5 - sum(s.quantity for s in repo.list_sales())


def test_parallel_sales_never_oversell_sqlite(tmp_path):
    repo = SqliteRepository(tmp_path / "race.db", timeout=30.0)
    repo.init_db()
    agent = add_user(repo, "agent@shop.test")
    pid = repo.add_product("Widget", 5.0, 8.0, 5)
    ledger = build_ledger(repo)

    outcomes = _race(ledger, agent, pid, [1] * 8)

    assert outcomes.count("ok") == 5
    assert outcomes.count("insufficient") == 3
    assert repo.get_product(pid).stock == 0
    assert len(repo.list_sales()) == 5


def test_guarded_adjust_rejects_going_negative(repo):
    pid = repo.add_product("Widget", 5.0, 8.0, 5)

    assert repo.adjust_stock(pid, -6) is None
    assert repo.get_product(pid).stock == 5
    assert repo.adjust_stock(pid, -5) == 0
    assert repo.adjust_stock(999, 1) is None


def test_stale_read_before_decrement_reports_current_stock(repo, people, monkeypatch):
    _admin, agent = people
    ledger = build_ledger(repo)
    pid = repo.add_product("Widget", 5.0, 8.0, 10)
    stale = repo.get_product(pid)
    repo.adjust_stock(pid, -8)
    real_get = repo.get_product
    calls = []

    def get_product(product_id):
        calls.append(product_id)
        return stale if len(calls) == 1 else real_get(product_id)

    monkeypatch.setattr(repo, "get_product", get_product)

    try:
        ledger.record_sale(agent, pid, 5)
    except InsufficientStockError as e:
        assert e.available == 2
    else:
        raise AssertionError("sale should have been refused")
    assert real_get(pid).stock == 2
