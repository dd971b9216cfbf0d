import pytest

from pos_cart.app_container import AppContainer
from pos_cart.models import OrderDetails, PaymentRequest, SaleState, Totals
from pos_cart.services import (
    BackendError,
    EmptySaleError,
    NoResumableItems,
    SessionBusy,
    StoreNotSelected,
)

from conftest import COFFEE, MUFFIN, make_unit


def _fill(controller, session):
    controller.add_unit(session, COFFEE, 2)
    controller.add_unit(session, MUFFIN, 1)
    controller.apply_discount(session, 50)


# ═══════════════════════════════════════════════════════════════════════════
# GUARDAR COMO PENDIENTE
# ═══════════════════════════════════════════════════════════════════════════

def test_park_empty_cart_makes_no_backend_call(controller, session, backend):
    with pytest.raises(EmptySaleError):
        controller.park_sale(session, 'MESA-1')
    assert backend.calls['create_sale'] == 0


def test_park_sends_pending_request_and_clears_cart(controller, session, backend):
    session.cart.customer_id = 'c7'
    _fill(controller, session)

    sale = controller.park_sale(session, 'MESA-1', OrderDetails(adults_count=2))

    request = backend.requests[-1]
    assert request['status'] == 'pending'
    assert request['payments'] == []
    assert request['orderId'] == 'MESA-1'
    assert request['storeId'] == 's1'
    assert request['customerId'] == 'c7'
    assert request['discountCents'] == 50
    assert request['items'] == [
        {'productVariantId': 'v1', 'quantity': 2},
        {'productVariantId': 'v2', 'quantity': 1},
    ]
    assert request['orderType'] == 'DINE_IN'
    assert request['adultsCount'] == 2
    assert request['salesSource'] == 'POS'

    assert session.engine.is_empty()
    assert session.engine.compute_totals() == Totals(0, 0, 0)
    assert session.state == SaleState.BUILDING
    assert session.parked_state == SaleState.PARKED
    assert session.parked_sale_id == sale.id


def test_park_failure_keeps_cart(controller, session, backend):
    _fill(controller, session)
    backend.fail.add('create_sale')

    with pytest.raises(BackendError):
        controller.park_sale(session, 'MESA-1')

    assert [l.unit_id for l in session.cart.lines] == ['v1', 'v2']
    assert session.cart.discount_cents == 50
    assert session.state == SaleState.BUILDING


def test_park_requires_store(controller, session, backend):
    controller.add_unit(session, MUFFIN)
    session.cart.store_id = None

    with pytest.raises(StoreNotSelected):
        controller.park_sale(session)
    assert backend.calls['create_sale'] == 0


# ═══════════════════════════════════════════════════════════════════════════
# RETOMAR
# ═══════════════════════════════════════════════════════════════════════════

def test_park_then_resume_round_trip_ignores_new_prices(controller, session, backend, catalog):
    session.cart.customer_id = 'c7'
    _fill(controller, session)
    original = [(l.unit_id, l.quantity) for l in session.cart.lines]
    sale = controller.park_sale(session, 'MESA-1', OrderDetails(order_type='TAKEAWAY'))

    backend.units = [make_unit(price_cents=9999), MUFFIN]
    catalog.refresh('s1')
    result = controller.resume_sale(session, sale.id)

    assert [(l.unit_id, l.quantity) for l in session.cart.lines] == original
    assert session.engine.get_line('v1').unit_price_cents == 1000
    assert session.cart.discount_cents == 50
    assert session.cart.customer_id == 'c7'
    assert session.order_ref == 'MESA-1'
    assert session.order_details.order_type == 'TAKEAWAY'
    assert session.resumed_sale_id == sale.id
    assert session.parked_sale_id is None
    assert session.state == SaleState.BUILDING
    assert result.stock_warnings == []


def test_resume_reports_lines_above_current_stock(controller, session, backend):
    controller.add_unit(session, COFFEE, 3)
    sale = controller.park_sale(session)

    backend.units = [make_unit(available_quantity=1), MUFFIN]
    result = controller.resume_sale(session, sale.id)

    line = session.engine.get_line('v1')
    assert line.quantity == 3
    assert line.available_quantity == 1
    assert [l.unit_id for l in result.stock_warnings] == ['v1']


def test_resume_skips_items_that_no_longer_exist(controller, session, backend):
    _fill(controller, session)
    sale = controller.park_sale(session)

    backend.units = [MUFFIN]
    result = controller.resume_sale(session, sale.id)

    assert [l.unit_id for l in session.cart.lines] == ['v2']
    assert result.skipped_items == 1


def test_resume_skips_items_without_quantity(controller, session, backend):
    _fill(controller, session)
    sale = controller.park_sale(session)
    backend.raw_sales[sale.id]['items'][0]['quantity'] = 0

    result = controller.resume_sale(session, sale.id)

    assert [(l.unit_id, l.quantity) for l in session.cart.lines] == [('v2', 1)]
    assert result.skipped_items == 1


def test_resume_with_only_invalid_quantities_leaves_cart_untouched(controller, session, backend):
    controller.add_unit(session, COFFEE)
    sale = controller.park_sale(session)
    backend.raw_sales[sale.id]['items'][0]['quantity'] = 'abc'
    controller.add_unit(session, MUFFIN, 2)

    with pytest.raises(NoResumableItems):
        controller.resume_sale(session, sale.id)

    assert [(l.unit_id, l.quantity) for l in session.cart.lines] == [('v2', 2)]
    assert all(l.quantity >= 1 for l in session.cart.lines)


def test_resume_without_valid_items_leaves_cart_untouched(controller, session, backend):
    controller.add_unit(session, COFFEE)
    sale = controller.park_sale(session)
    controller.add_unit(session, MUFFIN, 2)

    backend.units = []
    with pytest.raises(NoResumableItems):
        controller.resume_sale(session, sale.id)

    assert [(l.unit_id, l.quantity) for l in session.cart.lines] == [('v2', 2)]


def test_resume_backend_failure_leaves_cart_untouched(controller, session, backend):
    controller.add_unit(session, MUFFIN, 2)
    backend.fail.add('fetch_sale')

    with pytest.raises(BackendError):
        controller.resume_sale(session, 'x')
    assert session.engine.get_line('v2').quantity == 2


# ═══════════════════════════════════════════════════════════════════════════
# COBRO
# ═══════════════════════════════════════════════════════════════════════════

def test_payment_clears_cart_and_returns_backend_sale(controller, session, backend, audit_service):
    session.cart.customer_id = 'c7'
    _fill(controller, session)
    controller.begin_payment(session)
    assert session.state == SaleState.PAYING

    sale = controller.process_payment(session, 'MESA-1', PaymentRequest('CASH', 3000))

    request = backend.requests[-1]
    assert 'status' not in request
    assert request['payments'] == [{'method': 'CASH', 'amountCents': 3000, 'reference': None}]
    assert sale.total_cents == 2000 + 100 + 350 - 50
    assert session.engine.compute_totals() == Totals(0, 0, 0)
    assert session.cart.customer_id is None
    assert session.cart.store_id == 's1'
    assert session.state == SaleState.COMPLETED
    assert session.last_sale is sale

    payments = [log for log in audit_service.get_all_logs() if log['type'] == 'PAGO']
    assert len(payments) == 1
    assert payments[0]['details']['change_cents'] == 3000 - sale.total_cents


def test_payment_on_empty_cart(controller, session, backend):
    with pytest.raises(EmptySaleError):
        controller.process_payment(session, None, PaymentRequest('CASH', 100))
    assert backend.calls['create_sale'] == 0


def test_payment_failure_keeps_cart_for_retry(controller, session, backend):
    _fill(controller, session)
    backend.fail.add('create_sale')

    with pytest.raises(BackendError):
        controller.process_payment(session, 'MESA-1', PaymentRequest('CARD', 2400))

    assert len(session.cart.lines) == 2
    backend.fail.clear()
    sale = controller.process_payment(session, 'MESA-1', PaymentRequest('CARD', 2400))
    assert backend.requests[-1]['payments'][0]['reference'] == 'CARD_TRANSACTION'
    assert sale.is_paid


def test_backend_total_wins_and_mismatch_is_audited(controller, session, backend, audit_service):
    controller.add_unit(session, COFFEE)
    backend.total_override = 1049

    sale = controller.process_payment(session, None, PaymentRequest('CASH', 1100))

    assert sale.total_cents == 1049
    mismatches = [log for log in audit_service.get_all_logs() if log['type'] == 'SISTEMA']
    assert mismatches[0]['details'] == {'local_total': 1050, 'backend_total': 1049}


def test_editing_after_payment_starts_new_sale(controller, session):
    controller.add_unit(session, MUFFIN)
    controller.process_payment(session, None, PaymentRequest('CASH', 350))

    controller.add_unit(session, MUFFIN)
    assert session.state == SaleState.BUILDING


def test_begin_and_cancel_payment(controller, session):
    with pytest.raises(EmptySaleError):
        controller.begin_payment(session)

    controller.add_unit(session, MUFFIN)
    controller.begin_payment(session)
    controller.cancel_payment(session)
    assert session.state == SaleState.BUILDING


# ═══════════════════════════════════════════════════════════════════════════
# ELIMINAR PENDIENTES Y BÚSQUEDA
# ═══════════════════════════════════════════════════════════════════════════

def test_remove_parked_sale(controller, session, backend):
    controller.add_unit(session, MUFFIN)
    sale = controller.park_sale(session)

    controller.remove_parked_sale(sale.id, session)

    assert sale.id not in backend.raw_sales
    assert session.parked_state == SaleState.REMOVED
    assert session.state == SaleState.BUILDING


def test_remove_missing_sale_counts_as_success(controller):
    controller.remove_parked_sale('does-not-exist')


def test_remove_propagates_server_errors(controller, backend):
    backend.delete_error = BackendError("Prohibido", status_code=403)

    with pytest.raises(BackendError) as exc:
        controller.remove_parked_sale('x')
    assert exc.value.status_code == 403


def test_lookup_tabs_and_search(controller, session, backend):
    controller.add_unit(session, MUFFIN)
    pending = controller.park_sale(session)
    controller.add_unit(session, MUFFIN)
    paid = controller.process_payment(session, None, PaymentRequest('CASH', 350))

    assert [s.id for s in controller.lookup_sales('all')] == [paid.id, pending.id]
    assert [s.id for s in controller.lookup_sales('pending')] == [pending.id]
    assert [s.id for s in controller.lookup_sales('completed')] == [paid.id]
    assert controller.lookup_sales('on_delivery') == []
    assert [s.id for s in controller.lookup_sales('all', 'inv-0001')] == [pending.id]
    with pytest.raises(ValueError):
        controller.lookup_sales('archived')


# ═══════════════════════════════════════════════════════════════════════════
# SESIONES POR CAJA
# ═══════════════════════════════════════════════════════════════════════════

def test_second_operation_on_busy_register_fails_fast(backend, tmp_path):
    AppContainer.reset_instance()
    container = AppContainer({'DATA_DIR': str(tmp_path)}, backend=backend)
    try:
        with container.session('caja-1') as first:
            with pytest.raises(SessionBusy):
                with container.session('caja-1'):
                    pass
            with container.session('caja-2') as other:
                assert other is not first
        with container.session('caja-1') as again:
            assert again is first
    finally:
        AppContainer.reset_instance()
