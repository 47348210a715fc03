import pytest

from conftest import build_ledger

from profitpro.domain.errors import InsufficientStockError, NotFoundError, ValidationError


def _active_quantity(repo, pid):
    return sum(s.quantity for s in repo.list_sales() if s.product_id == pid)


def test_stock_matches_initial_minus_active_sales_after_mixed_operations(repo, people):
    admin, agent = people
    ledger = build_ledger(repo)
    pid = repo.add_product("Mouse", 15.0, 30.0, 20)
    other = repo.add_product("Keyboard", 60.0, 100.0, 5)

    a = ledger.record_sale(agent, pid, 3).sale_id
    b = ledger.record_sale(agent, pid, 7).sale_id
    ledger.record_sale(agent, other, 5)
    ledger.revise_sale(admin, a, 9)
    ledger.retract_sale(admin, b)
    c = ledger.record_sale(admin, pid, 11).sale_id
    with pytest.raises(InsufficientStockError):
        ledger.record_sale(agent, pid, 1)
    ledger.revise_sale(admin, c, 1)

    for product_id, initial in ((pid, 20), (other, 5)):
        product = repo.get_product(product_id)
        assert product.stock >= 0
        assert product.stock == initial - _active_quantity(repo, product_id)


def test_revise_above_available_is_rejected_without_changes(repo, people):
    admin, agent = people
    ledger = build_ledger(repo)
    pid = repo.add_product("Monitor", 250.0, 400.0, 6)
    sale_id = ledger.record_sale(agent, pid, 4).sale_id
    before_sale = repo.get_sale(sale_id)

    with pytest.raises(InsufficientStockError, match="Only 6 units") as err:
        ledger.revise_sale(admin, sale_id, 7, product_id=pid, old_quantity=4)

    assert err.value.available == 6
    assert repo.get_product(pid).stock == 2
    assert repo.get_sale(sale_id) == before_sale


def test_retract_restocks_exactly_the_sale_quantity(repo, people):
    admin, agent = people
    ledger = build_ledger(repo)
    pid = repo.add_product("Webcam", 45.0, 75.0, 9)
    keep = ledger.record_sale(agent, pid, 2).sale_id
    drop = ledger.record_sale(agent, pid, 3).sale_id

    ledger.retract_sale(admin, drop)

    assert repo.get_product(pid).stock == 7
    assert [s.id for s in repo.list_sales()] == [keep]


@pytest.mark.parametrize("qty", [0, -2])
def test_record_sale_rejects_non_positive_quantity(repo, people, qty):
    _admin, agent = people
    ledger = build_ledger(repo)
    pid = repo.add_product("Chair", 180.0, 350.0, 3)

    with pytest.raises(ValidationError, match="at least 1"):
        ledger.record_sale(agent, pid, qty)
    assert repo.get_product(pid).stock == 3


def test_revise_rejects_zero_quantity(repo, people):
    admin, agent = people
    ledger = build_ledger(repo)
    pid = repo.add_product("Chair", 180.0, 350.0, 3)
    sale_id = ledger.record_sale(agent, pid, 1).sale_id

    with pytest.raises(ValidationError):
        ledger.revise_sale(admin, sale_id, 0)
    assert repo.get_sale(sale_id).quantity == 1


@pytest.mark.parametrize("qty", [2.7, True, "2", None])
def test_fractional_or_non_numeric_quantity_is_rejected_untouched(repo, people, qty):
    admin, agent = people
    ledger = build_ledger(repo)
    pid = repo.add_product("Desk", 90.0, 160.0, 10)
    sale_id = ledger.record_sale(agent, pid, 3).sale_id
    before = repo.list_sales()

    with pytest.raises(ValidationError, match="whole number"):
        ledger.record_sale(agent, pid, qty)
    with pytest.raises(ValidationError, match="whole number"):
        ledger.revise_sale(admin, sale_id, qty)

    assert repo.get_product(pid).stock == 7
    assert repo.list_sales() == before


def test_integral_float_quantity_is_accepted(repo, people):
    _admin, agent = people
    ledger = build_ledger(repo)
    pid = repo.add_product("Desk", 90.0, 160.0, 10)

    ledger.record_sale(agent, pid, 2.0)

    assert repo.get_product(pid).stock == 8
    assert repo.list_sales()[0].quantity == 2


def test_missing_product_and_sale_are_not_found(repo, people):
    admin, agent = people
    ledger = build_ledger(repo)

    with pytest.raises(NotFoundError, match="Product not found"):
        ledger.record_sale(agent, 999, 1)
    with pytest.raises(NotFoundError, match="Sale not found"):
        ledger.revise_sale(admin, 999, 1)
    with pytest.raises(NotFoundError, match="Sale not found"):
        ledger.retract_sale(admin, 999)


def test_retract_after_product_deleted_is_not_found(repo, people):
    admin, agent = people
    ledger = build_ledger(repo)
    pid = repo.add_product("Headphones", 80.0, 150.0, 4)
    sale_id = ledger.record_sale(agent, pid, 1).sale_id

    assert repo.delete_product(pid)

    with pytest.raises(NotFoundError, match="Product not found"):
        ledger.retract_sale(admin, sale_id)
    assert repo.get_sale(sale_id).product_id is None


def test_reprice_on_revise_uses_current_prices(repo, people):
    admin, agent = people
    ledger = build_ledger(repo)
    pid = repo.add_product("Widget", 5.0, 8.0, 10)
    sale_id = ledger.record_sale(agent, pid, 2).sale_id
    repo.update_product(pid, "Widget", 6.0, 10.0, repo.get_product(pid).stock)

    ledger.revise_sale(admin, sale_id, 3)

    sale = repo.get_sale(sale_id)
    assert (sale.total_revenue, sale.total_cost, sale.profit) == (30.0, 18.0, 12.0)


def test_revise_can_keep_original_sale_prices(repo, people):
    admin, agent = people
    ledger = build_ledger(repo, reprice_on_revise=False)
    pid = repo.add_product("Widget", 5.0, 8.0, 10)
    sale_id = ledger.record_sale(agent, pid, 2).sale_id
    repo.update_product(pid, "Widget", 6.0, 10.0, repo.get_product(pid).stock)

    ledger.revise_sale(admin, sale_id, 3)

    sale = repo.get_sale(sale_id)
    assert (sale.unit_price, sale.unit_cost) == (8.0, 5.0)
    assert sale.total_revenue == 24.0
