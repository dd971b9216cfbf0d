# ==============================================================================
# BACKEND LOCAL - Productos y ventas en archivos JSON
# ==============================================================================
# Implementa IPosBackend sobre products.json y sales.json para trabajar sin
# el servidor remoto (modo offline, demo y tests). Se comporta como el
# backend real: recalcula los totales, numera las facturas y descuenta el
# stock de las ventas completadas.
# ==============================================================================

import logging
import os
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple

from pos_cart.models import (
    Sale,
    SaleStatus,
    SellableUnit,
    line_tax_cents,
)
from pos_cart.models.entities import PAYMENT_STATUS_PAID
from pos_cart.repositories.base import BaseRepository, DictRepository, ListRepository
from pos_cart.services.errors import BackendError, SaleNotFound

logger = logging.getLogger(__name__)


class ProductRepository(DictRepository):
    """
    Repositorio de productos con sus variantes y stock por tienda.

    Formato de datos en products.json:
    {
        "1": {
            "id": "1", "name": "Café", "sku": "CAF", "active": true,
            "categoryName": "Bebidas",
            "variants": [
                {"id": "v1", "barcode": "750100", "priceCents": 1000,
                 "taxRateId": "t5", "taxRateName": "VAT", "taxRatePercent": 5,
                 "attributes": {"size": "L"},
                 "stocks": [{"storeId": "s1", "quantity": 10}]}
            ]
        }
    }
    """

    def __init__(self, base_path: str):
        super().__init__(os.path.join(base_path, 'products.json'))

    def upsert_product(self, product: Dict[str, Any]) -> None:
        """Crea o reemplaza un producto (carga inicial / demo)."""
        with self.editing() as data:
            data[str(product['id'])] = product

    def find_variant(
        self,
        data: Dict[str, Any],
        variant_id: str
    ) -> Tuple[Optional[Dict[str, Any]], Optional[Dict[str, Any]]]:
        """
        Busca una variante en todos los productos.

        Returns:
            Tupla (producto, variante) o (None, None)
        """
        for product in data.values():
            for variant in product.get('variants', []):
                if str(variant.get('id')) == str(variant_id):
                    return product, variant
        return None, None


class SalesRepository(ListRepository):
    """
    Repositorio de ventas.

    Las ventas se guardan en el mismo formato camelCase que devuelve el
    backend remoto; los ítems guardan su precio e impuesto capturados.
    """

    INVOICE_PREFIX = 'INV-'

    def __init__(self, base_path: str):
        super().__init__(os.path.join(base_path, 'sales.json'))

    def get_next_invoice_number(self) -> str:
        """
        Genera el siguiente número de factura.
        Formato: INV-XXXX donde XXXX es número secuencial.
        """
        max_num = 0
        for sale in self.get_all():
            invoice = sale.get('invoiceNo') or ''
            if invoice.startswith(self.INVOICE_PREFIX):
                try:
                    max_num = max(max_num, int(invoice[len(self.INVOICE_PREFIX):]))
                except ValueError:
                    continue
        return f"{self.INVOICE_PREFIX}{max_num + 1:04d}"


class LocalPosBackend:
    """
    Backend del punto de venta sobre archivos JSON.

    Reglas (las mismas que aplica el servidor):
    - Los totales se recalculan aquí, con impuesto redondeado por línea
    - Una venta 'pending' no toca el stock
    - Una venta completada exige stock suficiente y lo descuenta
    - Solo se pueden eliminar ventas pendientes
    """

    def __init__(self, base_path: str):
        """
        Args:
            base_path: Directorio donde viven products.json y sales.json
        """
        self.products = ProductRepository(base_path)
        self.sales = SalesRepository(base_path)

    # =========================================================================
    # CATÁLOGO
    # =========================================================================

    def fetch_catalog(self, store_id: Any) -> List[SellableUnit]:
        units = []
        for product in self.products.get_all().values():
            for variant in product.get('variants', []):
                units.append(SellableUnit.from_variant(product, variant, store_id))
        return units

    # =========================================================================
    # VENTAS
    # =========================================================================

    def create_sale(self, sale_request: Dict[str, Any]) -> Sale:
        """
        Crea una venta pendiente o completada.

        Raises:
            BackendError: Petición inválida o stock insuficiente (400)
        """
        items = sale_request.get('items') or []
        if not items:
            raise BackendError("La venta no tiene ítems", status_code=400)
        store_id = sale_request.get('storeId')
        if store_id in (None, ''):
            raise BackendError("storeId es requerido", status_code=400)

        is_pending = sale_request.get('status') == SaleStatus.PENDING.value
        payments = sale_request.get('payments') or []
        if not is_pending and not payments:
            raise BackendError("Una venta completada requiere al menos un pago", status_code=400)

        with BaseRepository._file_lock:
            catalog = self.products.get_all()
            sale_items = []
            requested: Dict[str, int] = {}
            for item in items:
                variant_id = str(item.get('productVariantId'))
                quantity = int(item.get('quantity') or 0)
                if quantity < 1:
                    raise BackendError(f"Cantidad inválida para {variant_id}", status_code=400)
                product, variant = self.products.find_variant(catalog, variant_id)
                if variant is None:
                    raise BackendError(f"Variante {variant_id} no encontrada", status_code=400)
                requested[variant_id] = requested.get(variant_id, 0) + quantity
                sale_items.append({
                    'productVariantId': variant_id,
                    'productName': product.get('name', ''),
                    'quantity': quantity,
                    'priceCents': int(variant.get('priceCents') or 0),
                    'taxRateName': variant.get('taxRateName'),
                    'taxRatePercent': variant.get('taxRatePercent'),
                })

            if not is_pending:
                self._check_and_take_stock(catalog, requested, store_id)

            subtotal, tax = self._compute_totals(sale_items)
            discount = int(sale_request.get('discountCents') or 0)
            total = subtotal + tax - discount
            paid = sum(int(p.get('amountCents') or 0) for p in payments)

            sale = {
                'id': uuid.uuid4().hex,
                'orderId': sale_request.get('orderId'),
                'invoiceNo': self.sales.get_next_invoice_number(),
                'invoiceDate': datetime.now(timezone.utc).isoformat(),
                'status': SaleStatus.PENDING.value if is_pending else SaleStatus.COMPLETED.value,
                'paymentStatus': self._payment_status(paid, total),
                'items': sale_items,
                'discountCents': discount,
                'storeId': store_id,
                'customerId': sale_request.get('customerId'),
                'customerName': sale_request.get('customerName'),
                'orderType': sale_request.get('orderType'),
                'adultsCount': sale_request.get('adultsCount', 0),
                'kidsCount': sale_request.get('kidsCount', 0),
                'salesSource': sale_request.get('salesSource'),
                'subtotalCents': subtotal,
                'taxCents': tax,
                'totalCents': total,
                'payments': payments,
            }

            if not is_pending:
                self.products.save_all(catalog)
            self.sales.append(sale)

        logger.info("Venta %s registrada (%s) total=%s", sale['invoiceNo'], sale['status'], total)
        return Sale.from_dict(self._hydrate(sale, catalog))

    def fetch_sale(self, sale_id: str) -> Sale:
        raw = self.sales.find_by('id', sale_id)
        if raw is None:
            raise SaleNotFound(sale_id)
        return Sale.from_dict(self._hydrate(raw, self.products.get_all()))

    def delete_sale(self, sale_id: str) -> None:
        """
        Elimina una venta pendiente.

        Raises:
            SaleNotFound: Si la venta no existe
            BackendError: Si la venta ya fue completada (409)
        """
        with BaseRepository._file_lock:
            raw = self.sales.find_by('id', sale_id)
            if raw is None:
                raise SaleNotFound(sale_id)
            if raw.get('status') != SaleStatus.PENDING.value:
                raise BackendError("Solo se pueden eliminar ventas pendientes", status_code=409)
            self.sales.remove_where('id', sale_id)

    def list_sales(self) -> List[Sale]:
        catalog = self.products.get_all()
        return [Sale.from_dict(self._hydrate(raw, catalog)) for raw in self.sales.get_all()]

    # =========================================================================
    # AUXILIARES
    # =========================================================================

    def _check_and_take_stock(
        self,
        catalog: Dict[str, Any],
        requested: Dict[str, int],
        store_id: Any
    ) -> None:
        """Valida todo el pedido antes de descontar: o se descuenta todo o nada."""
        entries = []
        for variant_id, quantity in requested.items():
            product, variant = self.products.find_variant(catalog, variant_id)
            entry = self._stock_entry(variant, store_id)
            available = int(entry.get('quantity') or 0)
            if quantity > available:
                raise BackendError(
                    f"Stock insuficiente para {product.get('name', variant_id)}. "
                    f"Solicitado: {quantity}, Disponible: {available}",
                    status_code=400
                )
            entries.append((entry, quantity))
        for entry, quantity in entries:
            entry['quantity'] = int(entry.get('quantity') or 0) - quantity

    @staticmethod
    def _stock_entry(variant: Dict[str, Any], store_id: Any) -> Dict[str, Any]:
        stocks = variant.setdefault('stocks', [])
        for entry in stocks:
            if str(entry.get('storeId')) == str(store_id):
                return entry
        entry = {'storeId': store_id, 'quantity': 0}
        stocks.append(entry)
        return entry

    @staticmethod
    def _stock_for(variant: Dict[str, Any], store_id: Any) -> int:
        for entry in variant.get('stocks', []):
            if str(entry.get('storeId')) == str(store_id):
                return int(entry.get('quantity') or 0)
        return 0

    @staticmethod
    def _compute_totals(sale_items: List[Dict[str, Any]]) -> Tuple[int, int]:
        subtotal = 0
        tax = 0
        for item in sale_items:
            line = item['priceCents'] * item['quantity']
            subtotal += line
            rate = item.get('taxRatePercent')
            tax += line_tax_cents(line, float(rate) if rate is not None else None)
        return subtotal, tax

    @staticmethod
    def _payment_status(paid: int, total: int) -> str:
        if paid <= 0:
            return 'unpaid'
        if paid >= total:
            return PAYMENT_STATUS_PAID
        return 'partial'

    def _hydrate(self, raw: Dict[str, Any], catalog: Dict[str, Any]) -> Dict[str, Any]:
        """
        Arma el detalle de la venta como lo entrega el servidor: cada ítem
        con su productVariant (None si la variante ya no existe) y el stock
        actual de la variante en la tienda de la venta.
        """
        sale = dict(raw)
        items = []
        for item in raw.get('items', []):
            product, variant = self.products.find_variant(catalog, item.get('productVariantId'))
            hydrated = dict(item)
            if variant is None:
                hydrated['productVariant'] = None
            else:
                tax = None
                if item.get('taxRatePercent') is not None:
                    tax = {'name': item.get('taxRateName') or 'Tax', 'percent': item['taxRatePercent']}
                hydrated['productVariant'] = {
                    'id': variant.get('id'),
                    'product': {'name': product.get('name', '')},
                    'taxRate': tax,
                    'attributes': variant.get('attributes') or {},
                    'quantity': self._stock_for(variant, raw.get('storeId')),
                }
            items.append(hydrated)
        sale['items'] = items
        return sale
