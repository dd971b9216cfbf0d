import pytest

from pos_cart.services import CatalogIndex, CatalogUnavailable

from conftest import COFFEE, MUFFIN, FakeBackend, make_unit


def test_refresh_replaces_snapshot_wholesale():
    backend = FakeBackend([COFFEE, MUFFIN])
    index = CatalogIndex(backend)
    index.refresh('s1')
    assert index.lookup_by_id('v2') is not None

    backend.units = [make_unit(available_quantity=9)]
    index.refresh('s2')

    assert index.store_id == 's2'
    assert index.lookup_by_id('v2') is None
    assert index.lookup_by_id('v1').available_quantity == 9
    assert backend.calls['fetch_catalog'] == 2


def test_failed_refresh_keeps_previous_snapshot(catalog, backend):
    before = catalog.units()
    backend.fail.add('fetch_catalog')

    with pytest.raises(CatalogUnavailable):
        catalog.refresh('s2')

    assert catalog.units() is before
    assert catalog.store_id == 's1'


def test_barcode_lookup_is_exact_and_case_sensitive():
    index = CatalogIndex(FakeBackend([make_unit(barcode='AbC-1')]))
    index.refresh('s1')

    assert index.lookup_by_barcode('AbC-1').id == 'v1'
    assert index.lookup_by_barcode('abc-1') is None
    assert index.lookup_by_barcode('AbC') is None
    assert index.lookup_by_barcode('AbC-1\n').id == 'v1'
    assert index.lookup_by_barcode('') is None


def test_barcode_lookup_skips_inactive(catalog):
    assert catalog.lookup_by_barcode('750400') is None
    assert catalog.lookup_by_barcode('750400', include_inactive=True).id == 'v4'


def test_barcode_lookup_returns_first_active_match():
    index = CatalogIndex(FakeBackend([
        make_unit(id='a', barcode='111', active=False),
        make_unit(id='b', barcode='111'),
        make_unit(id='c', barcode='111'),
    ]))
    index.refresh('s1')

    assert index.lookup_by_barcode('111').id == 'b'


def test_search_by_name_sku_and_category(catalog):
    assert [u.id for u in catalog.search('caf')] == ['v1']
    assert [u.id for u in catalog.search('muf')] == ['v2']
    assert [u.id for u in catalog.search(category='Panadería')] == ['v2']
    assert [u.id for u in catalog.search(category='Uncategorized')] == []
    assert [u.id for u in catalog.search(category='Uncategorized', include_inactive=True)] == ['v4']
    assert len(catalog.search()) == 3


def test_categories(catalog):
    assert catalog.categories() == ['Bebidas', 'Panadería']
