import pytest

from pos_cart import performance_logger
from pos_cart.config import load_config
from pos_cart.formatters import format_line_name, format_price, format_variant_attributes
from pos_cart.models import OrderDetails, PaymentRequest, Sale
from pos_cart.repositories import AuditRepository


def test_format_price():
    assert format_price(1050) == 'AED 10.50'
    assert format_price(5, 'USD') == 'USD 0.05'
    assert format_price(-200) == 'AED -2.00'


def test_format_variant_attributes_keeps_order():
    assert format_variant_attributes({'size': 'L', 'color': 'Rojo'}) == 'L, Rojo'
    assert format_variant_attributes({}) is None
    assert format_line_name('Polo', {'size': 'M'}) == 'Polo (M)'
    assert format_line_name('Polo', None) == 'Polo'


def test_load_config_from_environment():
    config = load_config({
        'POS_BACKEND': 'HTTP',
        'POS_API_BASE_URL': 'https://erp.example.com/api',
        'POS_API_TIMEOUT': '2.5',
        'POS_ENABLE_PROFILING': '0',
        'POS_SLOW_WARNING_MS': 'abc',
        'POS_DATA_DIR': '/tmp/pos',
    })

    assert config['POS_BACKEND'] == 'http'
    assert config['API_TIMEOUT'] == 2.5
    assert config['ENABLE_PROFILING'] is False
    assert config['SLOW_WARNING_MS'] == 300
    assert config['LOGS_DIR'].startswith('/tmp/pos')
    assert config['CURRENCY'] == 'AED'


def test_load_config_rejects_unknown_backend():
    with pytest.raises(ValueError):
        load_config({'POS_BACKEND': 'ftp'})


def test_order_details_validation():
    with pytest.raises(ValueError):
        OrderDetails(order_type='PICNIC')
    with pytest.raises(ValueError):
        OrderDetails(kids_count=-1)

    lenient = OrderDetails.from_dict({'orderType': 'PICNIC', 'adultsCount': -2}, strict=False)
    assert lenient.order_type == 'DINE_IN'
    assert lenient.adults_count == 0


def test_payment_change_and_card_reference():
    assert PaymentRequest('CASH', 2500).change_due(2100) == 400
    assert PaymentRequest('CASH', 2000).change_due(2100) == 0
    assert PaymentRequest('CARD', 2100).reference == 'CARD_TRANSACTION'
    with pytest.raises(ValueError):
        PaymentRequest('CASH', -1)
    with pytest.raises(ValueError):
        PaymentRequest('BITCOIN', 100)
    with pytest.raises(ValueError):
        PaymentRequest.from_dict({'method': 'CASH', 'amount_cents': 'abc'})
    assert PaymentRequest.from_dict({'method': 'BANK_TRANSFER', 'amountCents': '250'}).amount_cents == 250


def test_sale_from_backend_json():
    sale = Sale.from_dict({
        'id': 7, 'customerId': '', 'storeId': 1, 'status': 'pending',
        'items': [
            {'quantity': 2, 'priceCents': 500, 'productVariant': {
                'id': 10, 'product': {'name': 'Café'},
                'taxRate': {'id': 1, 'name': 'VAT', 'percent': '5'},
                'attributes': {'size': 'L'}, 'quantity': 1,
            }},
            {'quantity': 1, 'priceCents': 100, 'productVariant': None},
        ],
    })

    assert sale.id == '7'
    assert sale.customer_id is None
    assert sale.store_id == '1'
    assert sale.items[0].unit_id == '10'
    assert sale.items[0].tax_rate == 5.0
    assert sale.items[0].available_quantity == 1
    assert sale.items[1].unit_id is None


def test_audit_repository_keeps_newest_first(tmp_path):
    repo = AuditRepository(str(tmp_path))
    repo.log('VENTA', 'caja-1', 'primero')
    repo.log('PAGO', '', 'segundo')

    logs = repo.get_all()
    assert [log['message'] for log in logs] == ['segundo', 'primero']
    assert logs[0]['user'] == 'sistema'
    assert [log['message'] for log in repo.get_logs_by_type('VENTA')] == ['primero']


def test_profile_function_collects_stats(monkeypatch):
    monkeypatch.setattr(performance_logger, 'ENABLE_PROFILING', True)
    performance_logger.reset_stats()

    @performance_logger.profile_function(name='prueba')
    def work(x):
        return x * 2

    assert work(2) == 4
    assert work(3) == 6
    assert performance_logger.get_function_stats()['prueba']['calls'] == 2
