# ==============================================================================
# SERVICIO DE CARRITO
# ==============================================================================
# Lógica del carrito de la venta en curso: líneas, tope de stock,
# descuento y totales. No hace llamadas de red; cada operación se aplica
# completa o lanza un error dejando el carrito como estaba.
# ==============================================================================

from typing import Any, List, Optional

from pos_cart.models import Cart, CartLine, SellableUnit, Totals
from pos_cart.services.errors import InsufficientStock, LineNotFound, OutOfStock


class CartEngine:
    """
    Motor del carrito de una sesión de venta.

    Responsabilidades:
    - Agregar unidades (una línea por unidad) validando el stock
    - Cambiar cantidades sin superar el stock capturado
    - Quitar líneas, aplicar descuento, limpiar
    - Calcular totales con impuesto redondeado por línea
    """

    def __init__(self, cart: Optional[Cart] = None):
        """
        Args:
            cart: Carrito a manejar (uno vacío si no se indica)
        """
        self.cart = cart if cart is not None else Cart()

    # =========================================================================
    # LECTURA
    # =========================================================================

    @property
    def lines(self) -> List[CartLine]:
        return list(self.cart.lines)

    def get_line(self, unit_id: Any) -> Optional[CartLine]:
        unit_id = str(unit_id)
        for line in self.cart.lines:
            if line.unit_id == unit_id:
                return line
        return None

    def is_empty(self) -> bool:
        return not self.cart.lines

    def item_count(self) -> int:
        """Cantidad total de unidades en el carrito."""
        return sum(line.quantity for line in self.cart.lines)

    # =========================================================================
    # MODIFICACIÓN
    # =========================================================================

    def add_unit(self, unit: SellableUnit, requested_qty: int = 1) -> CartLine:
        """
        Agrega una unidad al carrito.

        Si la unidad ya tiene línea, se suma la cantidad y se vuelven a
        capturar precio, impuesto, atributos y stock de la unidad.

        Args:
            unit: Unidad del catálogo
            requested_qty: Cantidad a agregar (>= 1)

        Returns:
            La línea creada o actualizada

        Raises:
            ValueError: Si requested_qty < 1
            OutOfStock: Si la unidad no tiene stock
            InsufficientStock: Si la nueva cantidad supera el stock
        """
        if requested_qty < 1:
            raise ValueError("La cantidad debe ser mayor a 0")
        if unit.is_out_of_stock:
            raise OutOfStock(unit.id, unit.name)

        existing = self.get_line(unit.id)
        current = existing.quantity if existing else 0
        new_quantity = current + requested_qty
        if new_quantity > unit.available_quantity:
            raise InsufficientStock(unit.id, new_quantity, unit.available_quantity, unit.name)

        line = CartLine.from_unit(unit, new_quantity)
        if existing:
            index = self.cart.lines.index(existing)
            self.cart.lines[index] = line
        else:
            self.cart.lines.append(line)
        return line

    def change_quantity(self, unit_id: Any, delta: int) -> CartLine:
        """
        Suma delta (positivo o negativo) a la cantidad de una línea.
        Nunca baja de 1: para quitar la línea se usa remove_line.

        Raises:
            LineNotFound: Si la línea no existe
            InsufficientStock: Si delta > 0 y se supera el stock capturado
        """
        line = self.get_line(unit_id)
        if line is None:
            raise LineNotFound(str(unit_id))
        if delta == 0:
            return line

        new_quantity = max(1, line.quantity + delta)
        if delta > 0 and new_quantity > line.available_quantity:
            raise InsufficientStock(line.unit_id, new_quantity, line.available_quantity, line.name)

        line.quantity = new_quantity
        return line

    def remove_line(self, unit_id: Any) -> bool:
        """
        Quita la línea (sin error si no existe).

        Returns:
            True si se quitó una línea
        """
        line = self.get_line(unit_id)
        if line is None:
            return False
        self.cart.lines.remove(line)
        return True

    def apply_discount(self, amount_cents: int) -> None:
        """Reemplaza el descuento. El tope de negocio lo decide quien llama."""
        if amount_cents < 0:
            raise ValueError("El descuento no puede ser negativo")
        self.cart.discount_cents = int(amount_cents)

    def clear(self, reset_context: bool = False) -> None:
        """
        Vacía las líneas y el descuento.

        Args:
            reset_context: Si True también olvida tienda y cliente
        """
        self.cart.lines = []
        self.cart.discount_cents = 0
        if reset_context:
            self.cart.store_id = None
            self.cart.customer_id = None

    def restore_line(self, line: CartLine) -> None:
        """
        Instala una línea reconstruida de una venta pendiente, confiando en
        la cantidad vendida aunque supere el stock actual.
        """
        existing = self.get_line(line.unit_id)
        if existing:
            existing.quantity += line.quantity
        else:
            self.cart.lines.append(line)

    # =========================================================================
    # TOTALES
    # =========================================================================

    def compute_totals(self) -> Totals:
        """Subtotal, impuesto (redondeado por línea) y total del carrito."""
        subtotal = 0
        tax = 0
        for line in self.cart.lines:
            subtotal += line.line_subtotal
            tax += line.line_tax
        return Totals(subtotal=subtotal, tax=tax, discount=self.cart.discount_cents)
