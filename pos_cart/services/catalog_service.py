# ==============================================================================
# SERVICIO DE CATÁLOGO - Índice de unidades vendibles con stock
# ==============================================================================
# Mantiene la última foto del catálogo de la tienda activa. La foto se
# reemplaza completa en cada refresh (nunca se mezcla) y los lectores
# siempre ven una foto consistente.
# ==============================================================================

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

from pos_cart.models import SellableUnit
from pos_cart.repositories.interfaces import IPosBackend
from pos_cart.services.errors import BackendError, CatalogUnavailable

logger = logging.getLogger(__name__)

CATEGORY_ALL = 'All'
CATEGORY_UNCATEGORIZED = 'Uncategorized'


@dataclass(frozen=True)
class _Snapshot:
    units: Tuple[SellableUnit, ...] = ()
    by_id: Dict[str, SellableUnit] = field(default_factory=dict)
    store_id: Optional[str] = None
    refreshed_at: Optional[datetime] = None


class CatalogIndex:
    """
    Índice del catálogo compartido por la grilla, el escáner y el carrito.

    Responsabilidades:
    - Actualizar la foto desde el backend (refresh)
    - Búsqueda exacta por código de barras
    - Búsqueda directa por ID (usada al retomar ventas)
    - Filtro de la grilla por nombre/SKU y categoría
    """

    def __init__(self, backend: IPosBackend):
        """
        Args:
            backend: Backend del punto de venta
        """
        self.backend = backend
        self._snapshot = _Snapshot()

    # =========================================================================
    # ACTUALIZACIÓN
    # =========================================================================

    def refresh(self, store_id: Any) -> List[SellableUnit]:
        """
        Descarga el catálogo de la tienda y reemplaza la foto completa.

        Args:
            store_id: Tienda activa

        Returns:
            Unidades de la nueva foto

        Raises:
            CatalogUnavailable: Si la descarga falla (la foto anterior se mantiene)
        """
        try:
            units = self.backend.fetch_catalog(store_id)
        except BackendError as e:
            logger.warning("No se pudo actualizar el catálogo de la tienda %s: %s", store_id, e.message)
            raise CatalogUnavailable(f"No se pudo cargar el catálogo: {e.message}") from e

        by_id: Dict[str, SellableUnit] = {}
        for unit in units:
            by_id.setdefault(unit.id, unit)

        self._snapshot = _Snapshot(
            units=tuple(units),
            by_id=by_id,
            store_id=str(store_id) if store_id is not None else None,
            refreshed_at=datetime.now(),
        )
        logger.info("Catálogo de la tienda %s actualizado: %d unidades", store_id, len(units))
        return list(units)

    # =========================================================================
    # CONSULTAS
    # =========================================================================

    @property
    def store_id(self) -> Optional[str]:
        return self._snapshot.store_id

    @property
    def refreshed_at(self) -> Optional[datetime]:
        return self._snapshot.refreshed_at

    def units(self) -> Tuple[SellableUnit, ...]:
        """Foto actual completa (inmutable)."""
        return self._snapshot.units

    def lookup_by_barcode(self, code: str, include_inactive: bool = False) -> Optional[SellableUnit]:
        """
        Primera unidad activa cuyo código de barras coincide exactamente.

        Distingue mayúsculas. Solo se quitan los espacios/saltos de línea
        que agrega el lector al final del código.

        Returns:
            La unidad, o None si no hay coincidencia
        """
        if code is None:
            return None
        code = str(code).strip()
        if not code:
            return None
        for unit in self._snapshot.units:
            if unit.barcode == code and (unit.active or include_inactive):
                return unit
        return None

    def lookup_by_id(self, unit_id: Any) -> Optional[SellableUnit]:
        if unit_id is None:
            return None
        return self._snapshot.by_id.get(str(unit_id))

    def search(
        self,
        term: str = '',
        category: str = CATEGORY_ALL,
        include_inactive: bool = False
    ) -> List[SellableUnit]:
        """
        Filtro de la grilla de productos.

        Args:
            term: Texto a buscar en nombre o SKU (sin distinguir mayúsculas)
            category: 'All', 'Uncategorized' o una categoría exacta
            include_inactive: Incluir productos inactivos

        Returns:
            Unidades que cumplen todos los filtros
        """
        term = (term or '').strip().lower()
        category = category or CATEGORY_ALL
        results = []
        for unit in self._snapshot.units:
            if not include_inactive and not unit.active:
                continue
            if term and term not in unit.name.lower() and term not in (unit.sku or '').lower():
                continue
            if category == CATEGORY_UNCATEGORIZED:
                if unit.category:
                    continue
            elif category != CATEGORY_ALL and unit.category != category:
                continue
            results.append(unit)
        return results

    def categories(self) -> List[str]:
        """Categorías conocidas, ordenadas."""
        return sorted({unit.category for unit in self._snapshot.units if unit.category})
