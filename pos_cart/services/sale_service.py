# ==============================================================================
# SERVICIO DE VENTAS - Ciclo de vida de la venta en caja
# ==============================================================================
# Orquesta la sesión de venta de una caja:
#
#   BUILDING ─► PAYING ─► COMPLETED
#      │  ▲
#      ▼  │ (retomar)
#    PARKED ─► REMOVED
#
# PARKED y REMOVED son estados de la venta guardada (parked_state): al
# guardar, la caja vuelve de inmediato a BUILDING con el carrito vacío.
# Cada caja tiene su propia SaleSession; el controlador no guarda estado
# global, recibe la sesión en cada llamada.
# ==============================================================================

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from pos_cart.models import (
    Cart,
    CartLine,
    LookupTab,
    OrderDetails,
    PaymentRequest,
    Sale,
    SaleState,
    SaleStatus,
    SellableUnit,
    Totals,
)
from pos_cart.repositories.interfaces import IPosBackend
from pos_cart.services.audit_service import AuditService
from pos_cart.services.cart_service import CartEngine
from pos_cart.services.catalog_service import CatalogIndex
from pos_cart.services.errors import (
    EmptySaleError,
    NoResumableItems,
    SaleNotFound,
    StoreNotSelected,
)

logger = logging.getLogger(__name__)


@dataclass
class SaleSession:
    """
    Sesión de venta de una caja.

    Attributes:
        register_id: Identificador de la caja
        cart: Carrito en curso
        state: Estado de la caja (BUILDING, PAYING, COMPLETED)
        order_ref: Referencia de pedido (retomada de una venta pendiente)
        order_details: Tipo de pedido, comensales y canal
        resumed_sale_id: Venta pendiente de la que se retomó el carrito
        parked_sale_id: Última venta guardada como pendiente desde esta caja
        parked_state: PARKED o REMOVED según lo que pasó con esa venta
        last_sale: Última venta completada (para el recibo)
    """
    register_id: str
    cart: Cart = field(default_factory=Cart)
    state: SaleState = SaleState.BUILDING
    order_ref: Optional[str] = None
    order_details: Optional[OrderDetails] = None
    resumed_sale_id: Optional[str] = None
    parked_sale_id: Optional[str] = None
    parked_state: Optional[SaleState] = None
    last_sale: Optional[Sale] = None

    def __post_init__(self):
        self.engine = CartEngine(self.cart)

    def replace_cart(self, cart: Cart) -> None:
        self.cart = cart
        self.engine = CartEngine(cart)

    def reset_order(self) -> None:
        """Olvida los metadatos del pedido en curso."""
        self.order_ref = None
        self.order_details = None
        self.resumed_sale_id = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'register_id': self.register_id,
            'state': self.state.value,
            'cart': self.cart.to_dict(),
            'totals': self.engine.compute_totals().to_dict(),
            'order_ref': self.order_ref,
            'order_details': self.order_details.to_dict() if self.order_details else None,
            'resumed_sale_id': self.resumed_sale_id,
            'parked_sale_id': self.parked_sale_id,
            'parked_state': self.parked_state.value if self.parked_state else None,
            'last_sale': self.last_sale.to_dict() if self.last_sale else None,
        }


@dataclass
class ResumeResult:
    """
    Resultado de retomar una venta pendiente.

    Attributes:
        sale: Venta leída del backend
        lines: Líneas reconstruidas
        stock_warnings: Líneas cuya cantidad supera el stock actual
        skipped_items: Ítems sin variante (ya no existen) que se omitieron
    """
    sale: Sale
    lines: List[CartLine]
    stock_warnings: List[CartLine] = field(default_factory=list)
    skipped_items: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            'sale_id': self.sale.id,
            'lines': [line.to_dict() for line in self.lines],
            'stock_warnings': [line.to_dict() for line in self.stock_warnings],
            'skipped_items': self.skipped_items,
        }


class SaleLifecycleController:
    """
    Controlador del ciclo de vida de la venta.

    Responsabilidades:
    - Editar el carrito de la sesión (delegando en CartEngine)
    - Guardar como pendiente, retomar, cobrar y eliminar ventas pendientes
    - Registrar en auditoría cada venta pendiente y cada pago (REGLA DE ORO)

    Ninguna operación se reintenta: si el backend falla el error se
    propaga y la sesión queda exactamente como estaba.
    """

    def __init__(
        self,
        backend: IPosBackend,
        catalog: CatalogIndex,
        audit_service: Optional[AuditService] = None
    ):
        """
        Args:
            backend: Backend del punto de venta
            catalog: Índice de catálogo compartido
            audit_service: Servicio de auditoría (opcional)
        """
        self.backend = backend
        self.catalog = catalog
        self.audit_service = audit_service

    # =========================================================================
    # EDICIÓN DEL CARRITO
    # =========================================================================

    def _touch(self, session: SaleSession) -> None:
        # Editar después de cobrar empieza una venta nueva
        if session.state == SaleState.COMPLETED:
            session.state = SaleState.BUILDING

    def add_unit(self, session: SaleSession, unit: SellableUnit, quantity: int = 1) -> CartLine:
        line = session.engine.add_unit(unit, quantity)
        self._touch(session)
        return line

    def add_by_barcode(
        self,
        session: SaleSession,
        code: str,
        include_inactive: bool = False
    ) -> Optional[CartLine]:
        """
        Agrega una unidad escaneada.

        Returns:
            La línea, o None si el código no existe en el catálogo
        """
        unit = self.catalog.lookup_by_barcode(code, include_inactive=include_inactive)
        if unit is None:
            return None
        return self.add_unit(session, unit)

    def change_quantity(self, session: SaleSession, unit_id: Any, delta: int) -> CartLine:
        line = session.engine.change_quantity(unit_id, delta)
        self._touch(session)
        return line

    def remove_line(self, session: SaleSession, unit_id: Any) -> bool:
        removed = session.engine.remove_line(unit_id)
        self._touch(session)
        return removed

    def apply_discount(self, session: SaleSession, amount_cents: int) -> None:
        session.engine.apply_discount(amount_cents)
        self._touch(session)

    def clear(self, session: SaleSession) -> None:
        """Vacía el carrito y olvida el pedido retomado (tienda y cliente se mantienen)."""
        session.engine.clear()
        session.reset_order()
        session.state = SaleState.BUILDING

    def select_store(self, session: SaleSession, store_id: Any) -> None:
        session.cart.store_id = str(store_id) if store_id not in (None, '') else None

    def select_customer(self, session: SaleSession, customer_id: Any) -> None:
        session.cart.customer_id = str(customer_id) if customer_id not in (None, '') else None

    # =========================================================================
    # COBRO
    # =========================================================================

    def _require_sellable(self, session: SaleSession) -> None:
        if session.engine.is_empty():
            raise EmptySaleError()
        if not session.cart.store_id:
            raise StoreNotSelected()

    def begin_payment(self, session: SaleSession) -> Totals:
        """
        Abre el cobro: el carrito debe tener líneas y tienda.

        Returns:
            Totales estimados a cobrar
        """
        self._require_sellable(session)
        session.state = SaleState.PAYING
        return session.engine.compute_totals()

    def cancel_payment(self, session: SaleSession) -> None:
        if session.state == SaleState.PAYING:
            session.state = SaleState.BUILDING

    def _build_request(
        self,
        session: SaleSession,
        order_ref: Optional[str],
        details: Optional[OrderDetails]
    ) -> Dict[str, Any]:
        cart = session.cart
        details = details or session.order_details or OrderDetails()
        request = {
            'discountCents': cart.discount_cents,
            'storeId': cart.store_id,
            'customerId': cart.customer_id or None,
            'orderId': order_ref if order_ref is not None else session.order_ref,
            'items': [line.to_request_item() for line in cart.lines],
        }
        request.update(details.to_request())
        return request

    def park_sale(
        self,
        session: SaleSession,
        order_ref: Optional[str] = None,
        details: Optional[OrderDetails] = None
    ) -> Sale:
        """
        Guarda la venta en curso como pendiente.

        La venta queda PARKED (parked_state) y la caja vuelve a BUILDING
        con el carrito vacío, lista para la siguiente venta.

        Args:
            session: Sesión de la caja
            order_ref: Referencia de pedido (por defecto la de la sesión)
            details: Metadatos del pedido (por defecto los de la sesión)

        Returns:
            Venta pendiente creada por el backend

        Raises:
            EmptySaleError: Carrito vacío (no se llama al backend)
            StoreNotSelected: Sin tienda seleccionada
            BackendError: Falla del backend (el carrito queda intacto)
        """
        self._require_sellable(session)
        request = self._build_request(session, order_ref, details)
        request['status'] = SaleStatus.PENDING.value
        request['payments'] = []

        sale = self.backend.create_sale(request)
        items_count = len(session.cart.lines)

        session.engine.clear()
        session.reset_order()
        session.parked_sale_id = sale.id
        session.parked_state = SaleState.PARKED
        session.state = SaleState.BUILDING
        logger.info("Caja %s: venta %s guardada como pendiente", session.register_id, sale.id)

        if self.audit_service:
            self.audit_service.log_sale_parked(
                user=session.register_id,
                sale_id=sale.id,
                order_ref=request.get('orderId') or '',
                items_count=items_count
            )
        return sale

    def resume_sale(self, session: SaleSession, sale_id: str) -> ResumeResult:
        """
        Reconstruye el carrito desde una venta pendiente.

        Se usa el precio e impuesto capturados por la propia venta; el
        catálogo solo completa nombre y atributos que falten. El stock de
        cada línea es la lectura actual de la venta y puede ser menor a la
        cantidad vendida: esas líneas se devuelven en stock_warnings.

        Raises:
            BackendError / SaleNotFound: Si no se pudo leer la venta
            NoResumableItems: Si ningún ítem es reconstruible
        """
        sale = self.backend.fetch_sale(sale_id)

        new_cart = Cart(
            discount_cents=sale.discount_cents,
            store_id=sale.store_id or session.cart.store_id,
            customer_id=sale.customer_id,
        )
        engine = CartEngine(new_cart)
        skipped = 0
        for item in sale.items:
            # Sin variante (ya no existe) o sin cantidad válida
            if item.unit_id is None or item.quantity < 1:
                skipped += 1
                continue
            unit = self.catalog.lookup_by_id(item.unit_id)
            engine.restore_line(CartLine(
                unit_id=item.unit_id,
                name=item.product_name or (unit.name if unit else item.unit_id),
                quantity=item.quantity,
                unit_price_cents=item.price_cents,
                tax_rate=item.tax_rate,
                tax_name=item.tax_name,
                attributes=dict(item.attributes or (unit.attributes if unit else {})),
                available_quantity=item.available_quantity,
            ))

        if engine.is_empty():
            raise NoResumableItems(sale_id)

        session.replace_cart(new_cart)
        session.order_ref = sale.order_id or sale.invoice_no
        session.order_details = sale.details
        session.resumed_sale_id = sale.id
        session.state = SaleState.BUILDING
        if session.parked_sale_id == sale.id:
            session.parked_sale_id = None
            session.parked_state = None

        warnings = [line for line in new_cart.lines if line.exceeds_availability]
        if warnings:
            logger.warning(
                "Caja %s: venta %s retomada con %d líneas sobre el stock actual",
                session.register_id, sale.id, len(warnings)
            )
        if self.audit_service:
            self.audit_service.log_sale_resumed(
                user=session.register_id,
                sale_id=sale.id,
                lines=len(new_cart.lines),
                warnings=len(warnings)
            )
        return ResumeResult(
            sale=sale,
            lines=list(new_cart.lines),
            stock_warnings=warnings,
            skipped_items=skipped,
        )

    def process_payment(
        self,
        session: SaleSession,
        order_ref: Optional[str],
        payment: PaymentRequest,
        details: Optional[OrderDetails] = None
    ) -> Sale:
        """
        Cobra la venta en curso y la registra como completada.

        Los totales del backend son los que valen: si difieren de los
        calculados en caja se registra la diferencia en auditoría.

        Returns:
            Venta completada tal como la devuelve el backend

        Raises:
            EmptySaleError: Carrito vacío (no se llama al backend)
            StoreNotSelected: Sin tienda seleccionada
            BackendError: Falla del backend (el carrito queda intacto)
        """
        self._require_sellable(session)
        request = self._build_request(session, order_ref, details)
        request['payments'] = [payment.to_request()]
        local_totals = session.engine.compute_totals()

        sale = self.backend.create_sale(request)

        session.engine.clear(reset_context=False)
        session.cart.customer_id = None
        session.reset_order()
        session.last_sale = sale
        session.state = SaleState.COMPLETED
        logger.info(
            "Caja %s: venta %s cobrada (%s)", session.register_id, sale.invoice_no or sale.id, payment.method
        )

        backend_total = sale.total_cents
        if self.audit_service:
            self.audit_service.log_payment(
                user=session.register_id,
                invoice=sale.invoice_no or sale.id,
                amount_cents=payment.amount_cents,
                method=payment.method,
                total_cents=backend_total or local_totals.total,
                change_cents=payment.change_due(backend_total or local_totals.total)
            )
            if backend_total and backend_total != local_totals.total:
                self.audit_service.log_totals_mismatch(
                    user=session.register_id,
                    invoice=sale.invoice_no or sale.id,
                    local_total=local_totals.total,
                    backend_total=backend_total
                )
        elif backend_total and backend_total != local_totals.total:
            logger.warning(
                "Venta %s: total en caja %s, total del backend %s",
                sale.invoice_no or sale.id, local_totals.total, backend_total
            )
        return sale

    def remove_parked_sale(self, sale_id: str, session: Optional[SaleSession] = None) -> None:
        """
        Elimina una venta pendiente del backend.
        Si la venta ya no existe se considera eliminada.

        Raises:
            BackendError: Cualquier otra falla del backend
        """
        try:
            self.backend.delete_sale(sale_id)
        except SaleNotFound:
            logger.info("Venta %s ya no existe; se considera eliminada", sale_id)

        if session is not None and session.parked_sale_id == sale_id:
            session.parked_state = SaleState.REMOVED
        if self.audit_service:
            self.audit_service.log_sale_removed(
                user=session.register_id if session else '',
                sale_id=sale_id
            )

    # =========================================================================
    # BÚSQUEDA DE VENTAS
    # =========================================================================

    def lookup_sales(self, tab: str = LookupTab.ALL.value, search: str = '') -> List[Sale]:
        """
        Listado de ventas para la búsqueda.

        Args:
            tab: all, on_delivery, pending o completed
            search: Texto en número de factura o nombre del cliente

        Returns:
            Ventas filtradas, más recientes primero
        """
        tab = LookupTab(tab)
        term = (search or '').strip().lower()
        results = []
        for sale in self.backend.list_sales():
            if tab == LookupTab.ON_DELIVERY and sale.status != SaleStatus.DELIVERING.value:
                continue
            if tab == LookupTab.PENDING and sale.is_paid:
                continue
            if tab == LookupTab.COMPLETED and not (
                sale.status == SaleStatus.COMPLETED.value and sale.is_paid
            ):
                continue
            if term and term not in (sale.invoice_no or '').lower() \
                    and term not in (sale.customer_name or '').lower():
                continue
            results.append(sale)
        results.sort(key=lambda s: s.invoice_date or '', reverse=True)
        return results
