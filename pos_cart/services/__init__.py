# ==============================================================================
# CAPA DE SERVICIOS - Lógica de negocio
# ==============================================================================
# ├── errors.py           → Errores del punto de venta
# ├── catalog_service.py  → Índice del catálogo (CatalogIndex)
# ├── cart_service.py     → Motor del carrito (CartEngine)
# ├── sale_service.py     → Ciclo de vida de la venta
# └── audit_service.py    → Registro de auditoría
# ==============================================================================

from .errors import (
    PosError,
    OutOfStock,
    InsufficientStock,
    LineNotFound,
    EmptySaleError,
    StoreNotSelected,
    NoResumableItems,
    CatalogUnavailable,
    SessionBusy,
    BackendError,
    SaleNotFound,
)
from .audit_service import AuditService
from .catalog_service import CatalogIndex
from .cart_service import CartEngine
from .sale_service import ResumeResult, SaleLifecycleController, SaleSession

__all__ = [
    'PosError',
    'OutOfStock',
    'InsufficientStock',
    'LineNotFound',
    'EmptySaleError',
    'StoreNotSelected',
    'NoResumableItems',
    'CatalogUnavailable',
    'SessionBusy',
    'BackendError',
    'SaleNotFound',
    'AuditService',
    'CatalogIndex',
    'CartEngine',
    'ResumeResult',
    'SaleLifecycleController',
    'SaleSession',
]
