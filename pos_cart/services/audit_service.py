# ==============================================================================
# SERVICIO DE AUDITORÍA
# ==============================================================================
# Centraliza el registro de eventos de la caja con mensajes humanizados.
# ==============================================================================

import logging
from typing import Any, Dict, List, Optional

from pos_cart.formatters import format_price
from pos_cart.repositories.interfaces import IAuditRepository

logger = logging.getLogger(__name__)


class AuditService:
    """
    Servicio para registro y consulta de auditoría.

    Eventos registrados:
    - Venta guardada como pendiente / retomada / eliminada
    - Pago recibido
    - Diferencia de totales entre la caja y el backend

    La regla de oro: Si entra dinero → siempre log de PAGO
    """

    TYPE_VENTA = 'VENTA'
    TYPE_PAGO = 'PAGO'
    TYPE_SISTEMA = 'SISTEMA'

    def __init__(self, audit_repo: IAuditRepository, currency: str = 'AED'):
        """
        Args:
            audit_repo: Repositorio de auditoría
            currency: Moneda para los mensajes
        """
        self.audit_repo = audit_repo
        self.currency = currency

    def _money(self, cents: int) -> str:
        return format_price(cents, self.currency)

    # =========================================================================
    # REGISTRO DE EVENTOS
    # =========================================================================

    def log(
        self,
        log_type: str,
        user: str,
        message: str,
        related_id: str = '',
        details: Optional[Dict[str, Any]] = None
    ) -> None:
        self.audit_repo.log(log_type, user, message, related_id, details)

    def log_sale_parked(self, user: str, sale_id: str, order_ref: str, items_count: int) -> None:
        """
        Registra una venta guardada como pendiente.

        Args:
            user: Caja que guardó la venta
            sale_id: ID de la venta en el backend
            order_ref: Referencia de pedido
            items_count: Cantidad de líneas
        """
        message = f"Venta {order_ref or sale_id} guardada como pendiente - {items_count} items - Caja {user}"
        self.log(
            self.TYPE_VENTA,
            user,
            message,
            sale_id,
            {'order_ref': order_ref, 'items_count': items_count}
        )

    def log_sale_resumed(self, user: str, sale_id: str, lines: int, warnings: int) -> None:
        message = f"Venta pendiente {sale_id} retomada en caja {user} - {lines} líneas"
        if warnings:
            message += f" - {warnings} con stock insuficiente"
        self.log(self.TYPE_VENTA, user, message, sale_id, {'lines': lines, 'stock_warnings': warnings})

    def log_sale_removed(self, user: str, sale_id: str) -> None:
        self.log(self.TYPE_VENTA, user, f"Venta pendiente {sale_id} eliminada - Caja {user}", sale_id)

    def log_payment(
        self,
        user: str,
        invoice: str,
        amount_cents: int,
        method: str,
        total_cents: int,
        change_cents: int = 0
    ) -> None:
        """
        Registra un pago recibido.
        REGLA DE ORO: Si entra dinero, siempre se debe llamar esta función.

        Args:
            user: Caja que registró el pago
            invoice: Número de factura
            amount_cents: Monto recibido
            method: Método de pago
            total_cents: Total de la venta según el backend
            change_cents: Vuelto entregado
        """
        message = (
            f"Pago recibido en {invoice}: {self._money(amount_cents)} ({method}) "
            f"- Total: {self._money(total_cents)} - Caja {user}"
        )
        if change_cents:
            message += f" - Vuelto: {self._money(change_cents)}"
        self.log(
            self.TYPE_PAGO,
            user,
            message,
            invoice,
            {
                'amount_cents': amount_cents,
                'method': method,
                'total_cents': total_cents,
                'change_cents': change_cents,
            }
        )

    def log_totals_mismatch(
        self,
        user: str,
        invoice: str,
        local_total: int,
        backend_total: int
    ) -> None:
        """Registra que el total de la caja no coincide con el del backend."""
        message = (
            f"Diferencia de totales en {invoice}: caja {self._money(local_total)} "
            f"vs backend {self._money(backend_total)}"
        )
        logger.warning(message)
        self.log(
            self.TYPE_SISTEMA,
            user,
            message,
            invoice,
            {'local_total': local_total, 'backend_total': backend_total}
        )

    # =========================================================================
    # CONSULTA DE LOGS
    # =========================================================================

    def get_all_logs(self) -> List[Dict[str, Any]]:
        """Obtiene todos los logs ordenados por fecha."""
        return self.audit_repo.load()
