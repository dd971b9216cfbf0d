# ==============================================================================
# CAPA DE REPOSITORIOS - Acceso a datos y backends
# ==============================================================================
# Esta capa encapsula todo el acceso al backend del punto de venta.
#
# ESTRUCTURA:
# ├── interfaces.py        → Protocolos (contratos de los backends)
# ├── base.py              → Clases base para JSON (DictRepository, ListRepository)
# ├── http_backend.py      → API REST remota (requests)
# ├── local_backend.py     → products.json / sales.json
# └── audit_repository.py  → Acceso a audit.json
#
# Los services NO dependen de una implementación concreta: el backend se
# elige en app_container.py según la configuración.
# ==============================================================================

# Interfaces
from .interfaces import IPosBackend, IAuditRepository

# Implementaciones
from .base import BaseRepository, DictRepository, ListRepository
from .http_backend import HttpPosBackend
from .local_backend import LocalPosBackend, ProductRepository, SalesRepository
from .audit_repository import AuditRepository

__all__ = [
    # Interfaces
    'IPosBackend',
    'IAuditRepository',

    # Clases base
    'BaseRepository',
    'DictRepository',
    'ListRepository',

    # Implementaciones
    'HttpPosBackend',
    'LocalPosBackend',
    'ProductRepository',
    'SalesRepository',
    'AuditRepository',
]
