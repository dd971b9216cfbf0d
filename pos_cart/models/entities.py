# ==============================================================================
# ENTIDADES DEL DOMINIO - Definiciones de dataclasses
# ==============================================================================
# Cada entidad representa un concepto del punto de venta.
# El dinero SIEMPRE se maneja en unidades menores (céntimos) como int.
# Los diccionarios del backend usan camelCase; las entidades, snake_case.
# ==============================================================================

from dataclasses import dataclass, field
from decimal import Decimal, ROUND_HALF_UP
from enum import Enum
from typing import Any, Dict, List, Optional


# ==============================================================================
# ENUMERACIONES - Estados y tipos válidos
# ==============================================================================

class SaleState(str, Enum):
    """Estados de la caja (BUILDING, PAYING, COMPLETED) y de su venta guardada."""
    BUILDING = "building"     # Armando el carrito
    PAYING = "paying"         # Modal de pago abierto
    PARKED = "parked"         # Guardada como pendiente en el backend
    COMPLETED = "completed"   # Pagada (terminal para esa venta)
    REMOVED = "removed"       # Venta pendiente eliminada (terminal)


class SaleStatus(str, Enum):
    """Estados de venta que maneja el backend."""
    PENDING = "pending"
    COMPLETED = "completed"
    DELIVERING = "delivering"


class OrderType(str, Enum):
    """Tipos de pedido."""
    DINE_IN = "DINE_IN"
    TAKEAWAY = "TAKEAWAY"
    DELIVERY = "DELIVERY"


class SalesSource(str, Enum):
    """Canal de origen de la venta."""
    POS = "POS"
    PHONE = "Phone"
    ONLINE = "Online"
    AGGREGATOR = "Aggregator"


class PaymentMethod(str, Enum):
    """Métodos de pago aceptados en caja."""
    CASH = "CASH"
    CARD = "CARD"
    BANK_TRANSFER = "BANK_TRANSFER"
    OTHER = "OTHER"


class LookupTab(str, Enum):
    """Pestañas de la búsqueda de ventas."""
    ALL = "all"
    ON_DELIVERY = "on_delivery"
    PENDING = "pending"
    COMPLETED = "completed"


PAYMENT_STATUS_PAID = 'paid'


def round_half_up(value: Decimal) -> int:
    """Redondea al entero más cercano (0.5 hacia arriba), como hace el backend."""
    return int(value.quantize(Decimal('1'), rounding=ROUND_HALF_UP))


def line_tax_cents(line_subtotal: int, tax_rate: Optional[float]) -> int:
    """
    Impuesto de una línea, redondeado por línea.

    Args:
        line_subtotal: precio unitario × cantidad, en céntimos
        tax_rate: porcentaje (None = sin impuesto)

    Returns:
        Impuesto en céntimos
    """
    if not tax_rate:
        return 0
    return round_half_up(Decimal(line_subtotal) * Decimal(str(tax_rate)) / Decimal(100))


def _to_int(value: Any, default: int = 0) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


def _to_rate(value: Any) -> Optional[float]:
    if value is None or value == '':
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


# ==============================================================================
# CATÁLOGO
# ==============================================================================

@dataclass(frozen=True)
class SellableUnit:
    """
    Unidad vendible (variante a nivel SKU) con su stock en la tienda activa.
    Solo lectura: el carrito nunca la modifica.

    Attributes:
        id: Identificador de la variante
        name: Nombre para mostrar (nombre del producto)
        price_cents: Precio unitario en céntimos
        tax_rate: Porcentaje de impuesto (None = no gravado)
        tax_name: Nombre del impuesto (solo para mostrar)
        attributes: Atributos descriptivos ordenados (talla, color...)
        available_quantity: Stock disponible en la tienda seleccionada
        barcode: Código de barras (búsqueda exacta)
        sku: SKU de la variante
        product_id: ID del producto padre
        category: Categoría del producto ('' = sin categoría)
        active: Si el producto está activo para venta
    """
    id: str
    name: str
    price_cents: int
    tax_rate: Optional[float] = None
    tax_name: Optional[str] = None
    attributes: Dict[str, str] = field(default_factory=dict)
    available_quantity: int = 0
    barcode: Optional[str] = None
    sku: str = ''
    product_id: Optional[str] = None
    category: str = ''
    active: bool = True

    @property
    def is_out_of_stock(self) -> bool:
        return self.available_quantity <= 0

    def to_dict(self) -> Dict[str, Any]:
        """Convierte a diccionario para respuestas JSON."""
        return {
            'id': self.id,
            'name': self.name,
            'price_cents': self.price_cents,
            'tax_rate': self.tax_rate,
            'tax_name': self.tax_name,
            'attributes': dict(self.attributes),
            'available_quantity': self.available_quantity,
            'barcode': self.barcode,
            'sku': self.sku,
            'product_id': self.product_id,
            'category': self.category,
            'active': self.active,
        }

    @classmethod
    def from_variant(
        cls,
        product: Dict[str, Any],
        variant: Dict[str, Any],
        store_id: Any = None
    ) -> 'SellableUnit':
        """
        Crea la unidad desde el JSON de producto/variante del backend.

        El stock por tienda viene en variant['stocks'] = [{storeId, quantity}];
        si no existe, se usa variant['quantity'] (ya filtrado por tienda).

        Args:
            product: Producto del backend (name, sku, active, categoryName...)
            variant: Variante del backend (id, priceCents, taxRatePercent...)
            store_id: Tienda para la que se lee el stock

        Returns:
            Instancia de SellableUnit
        """
        available = _to_int(variant.get('quantity'))
        stocks = variant.get('stocks')
        if stocks is not None:
            available = 0
            for stock in stocks:
                if str(stock.get('storeId')) == str(store_id):
                    available = _to_int(stock.get('quantity'))
                    break

        tax_rate = None
        tax_name = None
        if variant.get('taxRateId') is not None or variant.get('taxRatePercent') is not None:
            tax_rate = _to_rate(variant.get('taxRatePercent')) or 0.0
            tax_name = variant.get('taxRateName') or 'Tax'

        return cls(
            id=str(variant.get('id')),
            name=product.get('name', ''),
            price_cents=_to_int(variant.get('priceCents')),
            tax_rate=tax_rate,
            tax_name=tax_name,
            attributes=dict(variant.get('attributes') or {}),
            available_quantity=available,
            barcode=variant.get('barcode'),
            sku=variant.get('sku') or product.get('sku') or '',
            product_id=str(product['id']) if product.get('id') is not None else None,
            category=product.get('categoryName') or '',
            active=bool(product.get('active', True)),
        )


# ==============================================================================
# CARRITO
# ==============================================================================

@dataclass
class CartLine:
    """
    Línea del carrito con una copia de precio/impuesto/atributos tomada
    al momento de agregarla.

    Attributes:
        unit_id: ID de la unidad vendible
        name: Nombre del producto
        quantity: Cantidad (>= 1)
        unit_price_cents: Precio unitario capturado
        tax_rate: Porcentaje de impuesto capturado (None = sin impuesto)
        tax_name: Nombre del impuesto
        attributes: Atributos de la variante
        available_quantity: Stock disponible capturado (tope de la cantidad)
    """
    unit_id: str
    name: str
    quantity: int
    unit_price_cents: int
    tax_rate: Optional[float] = None
    tax_name: Optional[str] = None
    attributes: Dict[str, str] = field(default_factory=dict)
    available_quantity: int = 0

    @property
    def line_subtotal(self) -> int:
        return self.unit_price_cents * self.quantity

    @property
    def line_tax(self) -> int:
        return line_tax_cents(self.line_subtotal, self.tax_rate)

    @property
    def exceeds_availability(self) -> bool:
        """True solo en líneas reconstruidas de una venta pendiente."""
        return self.quantity > self.available_quantity

    @classmethod
    def from_unit(cls, unit: SellableUnit, quantity: int) -> 'CartLine':
        """Crea una línea capturando los datos actuales de la unidad."""
        return cls(
            unit_id=unit.id,
            name=unit.name,
            quantity=quantity,
            unit_price_cents=unit.price_cents,
            tax_rate=unit.tax_rate,
            tax_name=unit.tax_name,
            attributes=dict(unit.attributes),
            available_quantity=unit.available_quantity,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            'unit_id': self.unit_id,
            'name': self.name,
            'quantity': self.quantity,
            'unit_price_cents': self.unit_price_cents,
            'tax_rate': self.tax_rate,
            'tax_name': self.tax_name,
            'attributes': dict(self.attributes),
            'available_quantity': self.available_quantity,
            'line_subtotal': self.line_subtotal,
            'line_tax': self.line_tax,
        }

    def to_request_item(self) -> Dict[str, Any]:
        """Forma del ítem en la petición de creación de venta."""
        return {'productVariantId': self.unit_id, 'quantity': self.quantity}


@dataclass(frozen=True)
class Totals:
    """Totales derivados del carrito, en céntimos."""
    subtotal: int = 0
    tax: int = 0
    discount: int = 0

    @property
    def total(self) -> int:
        return self.subtotal + self.tax - self.discount

    def to_dict(self) -> Dict[str, int]:
        return {
            'subtotal': self.subtotal,
            'tax': self.tax,
            'discount': self.discount,
            'total': self.total,
        }


@dataclass
class Cart:
    """
    Carrito de la venta en curso.

    Attributes:
        lines: Líneas en orden de inserción (estable para mostrar)
        discount_cents: Descuento total en céntimos (>= 0)
        store_id: Tienda seleccionada
        customer_id: Cliente seleccionado (None = cliente de paso)
    """
    lines: List[CartLine] = field(default_factory=list)
    discount_cents: int = 0
    store_id: Optional[str] = None
    customer_id: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'lines': [line.to_dict() for line in self.lines],
            'discount_cents': self.discount_cents,
            'store_id': self.store_id,
            'customer_id': self.customer_id,
        }


# ==============================================================================
# PEDIDO Y PAGO
# ==============================================================================

@dataclass
class OrderDetails:
    """
    Metadatos del pedido que viajan con la venta.

    Attributes:
        order_type: DINE_IN, TAKEAWAY o DELIVERY
        adults_count: Comensales adultos (solo DINE_IN)
        kids_count: Comensales niños (solo DINE_IN)
        sales_source: Canal de origen (POS, Phone, Online, Aggregator)
    """
    order_type: str = OrderType.DINE_IN.value
    adults_count: int = 0
    kids_count: int = 0
    sales_source: str = SalesSource.POS.value

    def __post_init__(self):
        valid_types = {t.value for t in OrderType}
        if self.order_type not in valid_types:
            raise ValueError(f"Tipo de pedido inválido: {self.order_type}")
        valid_sources = {s.value for s in SalesSource}
        if self.sales_source not in valid_sources:
            raise ValueError(f"Origen de venta inválido: {self.sales_source}")
        if self.adults_count < 0 or self.kids_count < 0:
            raise ValueError("La cantidad de comensales no puede ser negativa")

    def to_request(self) -> Dict[str, Any]:
        return {
            'orderType': self.order_type,
            'adultsCount': self.adults_count,
            'kidsCount': self.kids_count,
            'salesSource': self.sales_source,
        }

    def to_dict(self) -> Dict[str, Any]:
        return {
            'order_type': self.order_type,
            'adults_count': self.adults_count,
            'kids_count': self.kids_count,
            'sales_source': self.sales_source,
        }

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]], strict: bool = True) -> 'OrderDetails':
        """
        Acepta tanto snake_case (API local) como camelCase (backend).

        Con strict=False (datos que vienen del backend) los valores
        desconocidos se reemplazan por los valores por defecto.
        """
        data = data or {}
        order_type = data.get('order_type') or data.get('orderType') or OrderType.DINE_IN.value
        sales_source = data.get('sales_source') or data.get('salesSource') or SalesSource.POS.value
        adults = _to_int(data.get('adults_count', data.get('adultsCount')))
        kids = _to_int(data.get('kids_count', data.get('kidsCount')))
        if not strict:
            if order_type not in {t.value for t in OrderType}:
                order_type = OrderType.DINE_IN.value
            if sales_source not in {s.value for s in SalesSource}:
                sales_source = SalesSource.POS.value
            adults = max(0, adults)
            kids = max(0, kids)
        return cls(
            order_type=order_type,
            adults_count=adults,
            kids_count=kids,
            sales_source=sales_source,
        )


@dataclass
class PaymentRequest:
    """
    Pago enviado junto con la venta.

    Attributes:
        method: Método de pago (CASH, CARD...)
        amount_cents: Monto recibido en céntimos
        reference: Referencia de la transacción (tarjeta)
    """
    method: str
    amount_cents: int
    reference: Optional[str] = None

    def __post_init__(self):
        valid_methods = {m.value for m in PaymentMethod}
        if self.method not in valid_methods:
            raise ValueError(f"Método de pago inválido: {self.method}")
        if isinstance(self.amount_cents, bool) or not isinstance(self.amount_cents, int):
            raise ValueError(f"Monto de pago inválido: {self.amount_cents!r}")
        if self.amount_cents < 0:
            raise ValueError("El monto del pago no puede ser negativo")
        if self.method == PaymentMethod.CARD.value and not self.reference:
            self.reference = 'CARD_TRANSACTION'

    def change_due(self, total_cents: int) -> int:
        """Vuelto a entregar al cliente (nunca negativo)."""
        return max(0, self.amount_cents - total_cents)

    def to_request(self) -> Dict[str, Any]:
        return {
            'method': self.method,
            'amountCents': self.amount_cents,
            'reference': self.reference,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'PaymentRequest':
        """
        Crea el pago desde la petición de la caja.

        Raises:
            ValueError: Si el monto no es un entero o el método no existe
        """
        raw_amount = data.get('amount_cents', data.get('amountCents'))
        try:
            amount = int(raw_amount)
        except (TypeError, ValueError):
            raise ValueError(f"Monto de pago inválido: {raw_amount!r}")
        return cls(
            method=data.get('method') or PaymentMethod.CASH.value,
            amount_cents=amount,
            reference=data.get('reference'),
        )


# ==============================================================================
# VENTAS (registro del backend)
# ==============================================================================

@dataclass
class SaleItem:
    """
    Ítem de una venta persistida, con su propio precio capturado.

    Attributes:
        unit_id: ID de la variante (None si ya no existe)
        product_name: Nombre del producto
        quantity: Cantidad vendida
        price_cents: Precio unitario capturado por la venta
        tax_rate: Porcentaje de impuesto de la variante
        tax_name: Nombre del impuesto
        attributes: Atributos de la variante
        available_quantity: Lectura actual del stock de la variante
    """
    unit_id: Optional[str]
    product_name: str
    quantity: int
    price_cents: int
    tax_rate: Optional[float] = None
    tax_name: Optional[str] = None
    attributes: Dict[str, str] = field(default_factory=dict)
    available_quantity: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            'unit_id': self.unit_id,
            'product_name': self.product_name,
            'quantity': self.quantity,
            'price_cents': self.price_cents,
            'tax_rate': self.tax_rate,
            'tax_name': self.tax_name,
            'attributes': dict(self.attributes),
            'available_quantity': self.available_quantity,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'SaleItem':
        """Crea el ítem desde el JSON de detalle de venta del backend."""
        variant = data.get('productVariant')
        if not variant:
            return cls(
                unit_id=None,
                product_name=data.get('productName', ''),
                quantity=_to_int(data.get('quantity')),
                price_cents=_to_int(data.get('priceCents')),
            )
        tax = variant.get('taxRate')
        product = variant.get('product') or {}
        return cls(
            unit_id=str(variant.get('id')),
            product_name=product.get('name') or data.get('productName', ''),
            quantity=_to_int(data.get('quantity')),
            price_cents=_to_int(data.get('priceCents')),
            tax_rate=(_to_rate(tax.get('percent')) or 0.0) if tax else None,
            tax_name=tax.get('name') if tax else None,
            attributes=dict(variant.get('attributes') or {}),
            available_quantity=_to_int(variant.get('quantity')),
        )


@dataclass
class SalePayment:
    """Pago registrado en una venta."""
    method: str
    amount_cents: int
    reference: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'method': self.method,
            'amount_cents': self.amount_cents,
            'reference': self.reference,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'SalePayment':
        return cls(
            method=data.get('method', ''),
            amount_cents=_to_int(data.get('amountCents')),
            reference=data.get('reference'),
        )


@dataclass
class Sale:
    """
    Venta tal como la devuelve el backend (fuente de verdad de los totales).

    Attributes:
        id: Identificador de la venta en el backend
        order_id: Referencia de pedido dada en caja
        invoice_no: Número de factura asignado por el backend
        status: pending, completed, delivering...
        payment_status: paid, unpaid, partial...
        items: Ítems con su precio capturado
        discount_cents: Descuento aplicado
        store_id: Tienda de la venta
        customer_id: Cliente (None = de paso)
        customer_name: Nombre del cliente para búsquedas
        details: Metadatos del pedido
        subtotal_cents / tax_cents / total_cents: Totales autoritativos
        payments: Pagos registrados
        invoice_date: Fecha ISO de la factura
    """
    id: str
    order_id: Optional[str] = None
    invoice_no: Optional[str] = None
    status: str = SaleStatus.PENDING.value
    payment_status: str = 'unpaid'
    items: List[SaleItem] = field(default_factory=list)
    discount_cents: int = 0
    store_id: Optional[str] = None
    customer_id: Optional[str] = None
    customer_name: Optional[str] = None
    details: OrderDetails = field(default_factory=OrderDetails)
    subtotal_cents: int = 0
    tax_cents: int = 0
    total_cents: int = 0
    payments: List[SalePayment] = field(default_factory=list)
    invoice_date: str = ''

    @property
    def is_pending(self) -> bool:
        return self.status == SaleStatus.PENDING.value

    @property
    def is_paid(self) -> bool:
        return self.payment_status == PAYMENT_STATUS_PAID

    def to_dict(self) -> Dict[str, Any]:
        """Convierte a diccionario para respuestas JSON."""
        return {
            'id': self.id,
            'order_id': self.order_id,
            'invoice_no': self.invoice_no,
            'status': self.status,
            'payment_status': self.payment_status,
            'items': [item.to_dict() for item in self.items],
            'discount_cents': self.discount_cents,
            'store_id': self.store_id,
            'customer_id': self.customer_id,
            'customer_name': self.customer_name,
            'details': self.details.to_dict(),
            'subtotal_cents': self.subtotal_cents,
            'tax_cents': self.tax_cents,
            'total_cents': self.total_cents,
            'payments': [p.to_dict() for p in self.payments],
            'invoice_date': self.invoice_date,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Sale':
        """Crea la venta desde el JSON del backend (camelCase)."""
        customer_id = data.get('customerId')
        store_id = data.get('storeId')
        return cls(
            id=str(data.get('id', '')),
            order_id=data.get('orderId'),
            invoice_no=data.get('invoiceNo'),
            status=data.get('status') or SaleStatus.COMPLETED.value,
            payment_status=data.get('paymentStatus') or 'unpaid',
            items=[SaleItem.from_dict(i) for i in data.get('items') or []],
            discount_cents=_to_int(data.get('discountCents')),
            store_id=str(store_id) if store_id is not None else None,
            customer_id=str(customer_id) if customer_id not in (None, '') else None,
            customer_name=data.get('customerName'),
            details=OrderDetails.from_dict(data, strict=False),
            subtotal_cents=_to_int(data.get('subtotalCents')),
            tax_cents=_to_int(data.get('taxCents')),
            total_cents=_to_int(data.get('totalCents')),
            payments=[SalePayment.from_dict(p) for p in data.get('payments') or []],
            invoice_date=data.get('invoiceDate') or '',
        )
