# ==============================================================================
# FORMATEO PARA MOSTRAR - Dinero y atributos de variantes
# ==============================================================================

from decimal import Decimal
from typing import Any, Dict, Optional

DEFAULT_CURRENCY = 'AED'


def format_price(cents: Any, currency: str = DEFAULT_CURRENCY) -> str:
    """Formatea céntimos como dinero: 'AED 10.50'"""
    try:
        amount = Decimal(int(cents)) / Decimal(100)
    except (TypeError, ValueError):
        return f"{currency} {cents}"
    return f"{currency} {amount:.2f}"


def format_variant_attributes(attributes: Optional[Dict[str, Any]]) -> Optional[str]:
    """Valores de los atributos en orden: 'L, Rojo' (None si no hay atributos)."""
    if not attributes:
        return None
    return ', '.join(str(v) for v in attributes.values())


def format_line_name(name: str, attributes: Optional[Dict[str, Any]]) -> str:
    """Genera nombre legible: 'Producto (L, Rojo)'"""
    attrs = format_variant_attributes(attributes)
    return f"{name} ({attrs})" if attrs else name
