# ==============================================================================
# CAPA DE MODELOS - Estructuras de datos del punto de venta
# ==============================================================================
# Entidades del dominio como dataclasses, independientes del backend
# (REST remoto o archivos JSON locales).
# ==============================================================================

from .entities import (
    # Estados y tipos
    SaleState,
    SaleStatus,
    OrderType,
    SalesSource,
    PaymentMethod,
    LookupTab,

    # Catálogo
    SellableUnit,

    # Carrito
    CartLine,
    Cart,
    Totals,

    # Pedido y pago
    OrderDetails,
    PaymentRequest,

    # Ventas
    Sale,
    SaleItem,
    SalePayment,

    # Utilidades de dinero
    line_tax_cents,
    round_half_up,
)

__all__ = [
    'SaleState',
    'SaleStatus',
    'OrderType',
    'SalesSource',
    'PaymentMethod',
    'LookupTab',
    'SellableUnit',
    'CartLine',
    'Cart',
    'Totals',
    'OrderDetails',
    'PaymentRequest',
    'Sale',
    'SaleItem',
    'SalePayment',
    'line_tax_cents',
    'round_half_up',
]
