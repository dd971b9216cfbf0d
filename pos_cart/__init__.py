# ==============================================================================
# POS_CART - Núcleo de caja del punto de venta
# ==============================================================================
# Catálogo con stock, carrito y ciclo de vida de la venta
# (en curso → pendiente → retomada → cobrada / eliminada).
# ==============================================================================

__version__ = '1.0.0'
