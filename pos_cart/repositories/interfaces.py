# ==============================================================================
# INTERFACES DE REPOSITORIOS
# ==============================================================================
#
# Contratos que deben cumplir los backends del punto de venta. Los servicios
# dependen de estas interfaces, NO de implementaciones concretas:
#
# - HttpPosBackend  → API REST remota (producción)
# - LocalPosBackend → archivos JSON (modo offline / demo / tests)
#
# Para agregar otro backend basta con implementar IPosBackend y cambiar la
# instanciación en app_container.py. Los servicios NO requieren cambios.
#
# ==============================================================================

from typing import Any, Dict, List, Optional, Protocol, runtime_checkable

from pos_cart.models import Sale, SellableUnit


@runtime_checkable
class IPosBackend(Protocol):
    """
    Operaciones lógicas que el núcleo de caja necesita del backend.

    Errores:
        BackendError ante cualquier falla de red/validación/servidor.
        SaleNotFound (subclase) cuando la venta no existe.
    """

    def fetch_catalog(self, store_id: Any) -> List[SellableUnit]:
        """Unidades vendibles con su stock disponible en la tienda."""
        ...

    def create_sale(self, sale_request: Dict[str, Any]) -> Sale:
        """Crea una venta (pendiente si status='pending', completada si no)."""
        ...

    def fetch_sale(self, sale_id: str) -> Sale:
        """Detalle completo de una venta."""
        ...

    def delete_sale(self, sale_id: str) -> None:
        """Elimina una venta pendiente."""
        ...

    def list_sales(self) -> List[Sale]:
        """Listado de ventas para la búsqueda."""
        ...


@runtime_checkable
class IAuditRepository(Protocol):
    """
    Interfaz para el repositorio de auditoría.
    """

    def load(self) -> List[Dict[str, Any]]:
        """Carga todos los logs."""
        ...

    def log(
        self,
        log_type: str,
        user: str,
        message: str,
        related_id: str,
        details: Optional[Dict[str, Any]]
    ) -> None:
        """Registra un evento de auditoría."""
        ...
