import uuid
from collections import Counter
from typing import Any, Dict, List, Optional

import pytest

from pos_cart.models import Cart, Sale, SellableUnit, line_tax_cents
from pos_cart.repositories import AuditRepository
from pos_cart.services import (
    AuditService,
    BackendError,
    CartEngine,
    CatalogIndex,
    SaleLifecycleController,
    SaleNotFound,
    SaleSession,
)


def make_unit(**overrides) -> SellableUnit:
    data = dict(
        id='v1',
        name='Café',
        price_cents=1000,
        tax_rate=5.0,
        tax_name='VAT',
        attributes={'size': 'L'},
        available_quantity=3,
        barcode='750100',
        sku='CAF-L',
        product_id='p1',
        category='Bebidas',
        active=True,
    )
    data.update(overrides)
    return SellableUnit(**data)


COFFEE = make_unit()
MUFFIN = make_unit(
    id='v2', name='Muffin', price_cents=350, tax_rate=None, tax_name=None,
    attributes={}, available_quantity=10, barcode='750200', sku='MUF',
    product_id='p2', category='Panadería',
)
SOLD_OUT = make_unit(
    id='v3', name='Té verde', price_cents=500, available_quantity=0,
    barcode='750300', sku='TEA', product_id='p3',
)
INACTIVE = make_unit(
    id='v4', name='Jugo', price_cents=800, available_quantity=5,
    barcode='750400', sku='JUG', product_id='p4', active=False, category='',
)


class FakeBackend:
    """
    Backend en memoria. Cuenta las llamadas y guarda las peticiones.
    Los ítems de la venta se hidratan al leerlos con el stock actual
    de self.units, como hace el servidor.
    """

    def __init__(self, units: Optional[List[SellableUnit]] = None):
        self.units = list(units if units is not None else [COFFEE, MUFFIN, SOLD_OUT, INACTIVE])
        self.raw_sales: Dict[str, Dict[str, Any]] = {}
        self.calls = Counter()
        self.requests: List[Dict[str, Any]] = []
        self.fail = set()
        self.total_override: Optional[int] = None
        self.delete_error: Optional[Exception] = None

    def _check(self, operation: str) -> None:
        self.calls[operation] += 1
        if operation in self.fail:
            raise BackendError(f"{operation} falló", status_code=500)

    def _unit(self, unit_id: str) -> Optional[SellableUnit]:
        for unit in self.units:
            if unit.id == unit_id:
                return unit
        return None

    def _hydrate(self, raw: Dict[str, Any]) -> Sale:
        data = dict(raw)
        items = []
        for item in raw['items']:
            unit = self._unit(item['productVariantId'])
            hydrated = dict(item)
            if unit is None:
                hydrated['productVariant'] = None
            else:
                hydrated['productVariant'] = {
                    'id': unit.id,
                    'product': {'name': item['productName']},
                    'taxRate': (
                        {'name': item['taxRateName'], 'percent': item['taxRatePercent']}
                        if item['taxRatePercent'] is not None else None
                    ),
                    'attributes': item['attributes'],
                    'quantity': unit.available_quantity,
                }
            items.append(hydrated)
        data['items'] = items
        return Sale.from_dict(data)

    def fetch_catalog(self, store_id):
        self._check('fetch_catalog')
        return list(self.units)

    def create_sale(self, sale_request):
        self._check('create_sale')
        self.requests.append(sale_request)
        items = []
        subtotal = tax = 0
        for req in sale_request['items']:
            unit = self._unit(req['productVariantId'])
            line = unit.price_cents * req['quantity']
            subtotal += line
            tax += line_tax_cents(line, unit.tax_rate)
            items.append({
                'productVariantId': unit.id,
                'productName': unit.name,
                'quantity': req['quantity'],
                'priceCents': unit.price_cents,
                'taxRateName': unit.tax_name,
                'taxRatePercent': unit.tax_rate,
                'attributes': dict(unit.attributes),
            })
        total = subtotal + tax - sale_request.get('discountCents', 0)
        if self.total_override is not None:
            total = self.total_override
        is_pending = sale_request.get('status') == 'pending'
        raw = dict(sale_request)
        raw.update({
            'id': uuid.uuid4().hex,
            'invoiceNo': f'INV-{len(self.raw_sales) + 1:04d}',
            'invoiceDate': f'2024-01-01T10:00:{len(self.raw_sales):02d}',
            'status': 'pending' if is_pending else 'completed',
            'paymentStatus': 'unpaid' if is_pending else 'paid',
            'items': items,
            'subtotalCents': subtotal,
            'taxCents': tax,
            'totalCents': total,
        })
        self.raw_sales[raw['id']] = raw
        return self._hydrate(raw)

    def fetch_sale(self, sale_id):
        self._check('fetch_sale')
        if sale_id not in self.raw_sales:
            raise SaleNotFound(sale_id)
        return self._hydrate(self.raw_sales[sale_id])

    def delete_sale(self, sale_id):
        self._check('delete_sale')
        if self.delete_error is not None:
            raise self.delete_error
        if sale_id not in self.raw_sales:
            raise SaleNotFound(sale_id)
        del self.raw_sales[sale_id]

    def list_sales(self):
        self._check('list_sales')
        return [self._hydrate(raw) for raw in self.raw_sales.values()]


@pytest.fixture
def backend():
    return FakeBackend()


@pytest.fixture
def catalog(backend):
    index = CatalogIndex(backend)
    index.refresh('s1')
    return index


@pytest.fixture
def engine():
    return CartEngine(Cart(store_id='s1'))


@pytest.fixture
def audit_service(tmp_path):
    return AuditService(AuditRepository(str(tmp_path)))


@pytest.fixture
def controller(backend, catalog, audit_service):
    return SaleLifecycleController(backend, catalog, audit_service)


@pytest.fixture
def session():
    s = SaleSession(register_id='caja-1')
    s.cart.store_id = 's1'
    return s
