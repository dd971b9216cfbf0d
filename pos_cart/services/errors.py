# ==============================================================================
# ERRORES DEL PUNTO DE VENTA
# ==============================================================================
# Todos los errores son recuperables: la operación simplemente no ocurrió y
# el estado local quedó intacto. La capa HTTP los traduce a
# {"ok": False, "error": ..., "code": ...}.
# ==============================================================================

from typing import Optional


class PosError(Exception):
    """Excepción base de los servicios del punto de venta."""

    # Código HTTP con el que la API responde este error
    http_status = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    @property
    def code(self) -> str:
        return type(self).__name__


class OutOfStock(PosError):
    """La unidad no tiene stock disponible al momento de agregarla."""
    http_status = 409

    def __init__(self, unit_id: str, name: str = ''):
        super().__init__(f"{name or unit_id} está agotado.")
        self.unit_id = unit_id


class InsufficientStock(PosError):
    """La cantidad pedida supera el stock capturado de la línea."""
    http_status = 409

    def __init__(self, unit_id: str, requested: int, available: int, name: str = ''):
        super().__init__(
            f"Solo hay {available} unidades disponibles de {name or unit_id} "
            f"(solicitado: {requested})."
        )
        self.unit_id = unit_id
        self.requested = requested
        self.available = available


class LineNotFound(PosError):
    """La línea indicada no está en el carrito."""
    http_status = 404

    def __init__(self, unit_id: str):
        super().__init__(f"El producto {unit_id} no está en el carrito.")
        self.unit_id = unit_id


class EmptySaleError(PosError):
    """Se intentó guardar o cobrar un carrito vacío."""

    def __init__(self, message: str = "No se puede procesar una venta vacía."):
        super().__init__(message)


class StoreNotSelected(PosError):
    """No hay tienda seleccionada para cobrar."""

    def __init__(self):
        super().__init__("Selecciona una tienda antes de cobrar.")


class NoResumableItems(PosError):
    """La venta pendiente no tiene ítems reconstruibles."""
    http_status = 422

    def __init__(self, sale_id: str):
        super().__init__(f"No se pudo retomar la venta {sale_id}: no tiene ítems válidos.")
        self.sale_id = sale_id


class CatalogUnavailable(PosError):
    """Falló la actualización del catálogo; se sigue mostrando el anterior."""
    http_status = 502


class SessionBusy(PosError):
    """Ya hay una operación en curso para esta caja."""
    http_status = 409

    def __init__(self, register_id: str):
        super().__init__(f"Hay una operación en curso en la caja {register_id}. Intenta de nuevo.")
        self.register_id = register_id


class BackendError(PosError):
    """Falló una llamada al backend (red, validación o servidor)."""
    http_status = 502

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class SaleNotFound(BackendError):
    """El backend no tiene la venta solicitada."""
    http_status = 404

    def __init__(self, sale_id: str):
        super().__init__(f"Venta {sale_id} no encontrada", status_code=404)
        self.sale_id = sale_id
