# ==============================================================================
# CONTENEDOR DE DEPENDENCIAS - Inyección de servicios
# ==============================================================================
# Este módulo proporciona una forma centralizada de obtener instancias
# de backends y servicios. Facilita:
#   - Inyección de dependencias
#   - Testing (se puede pasar un backend falso)
#   - Cambiar de backend (http/local) sin tocar servicios
#
# También guarda las sesiones de venta, una por caja. Cada sesión tiene su
# lock: si una caja ya tiene una operación en curso, la segunda llamada
# falla de inmediato con SessionBusy en vez de esperar.
# ==============================================================================

import logging
import threading
from contextlib import contextmanager
from typing import Any, Dict, Iterator, Optional

from pos_cart.config import BACKEND_HTTP
from pos_cart.repositories import (
    AuditRepository,
    HttpPosBackend,
    IPosBackend,
    LocalPosBackend,
)
from pos_cart.services import (
    AuditService,
    CatalogIndex,
    SaleLifecycleController,
    SaleSession,
    SessionBusy,
)

logger = logging.getLogger(__name__)


class AppContainer:
    """
    Contenedor de dependencias de la aplicación.

    Implementa el patrón Singleton para asegurar una única instancia
    de cada backend y servicio.

    Uso:
        container = AppContainer(config)
        controller = container.sale_controller
        with container.session('caja-1') as session:
            controller.add_by_barcode(session, '750100')
    """

    _instance: Optional['AppContainer'] = None

    def __new__(cls, config: Dict[str, Any] = None, backend: IPosBackend = None):
        """Singleton pattern."""
        if cls._instance is None:
            cls._instance = super().__new__(cls)
            cls._instance._initialized = False
        return cls._instance

    def __init__(self, config: Dict[str, Any] = None, backend: IPosBackend = None):
        """
        Args:
            config: Configuración (ver config.load_config)
            backend: Backend ya construido (tests); si no, se crea según config
        """
        if self._initialized:
            return

        self._config = dict(config or {})
        self._backend: Optional[IPosBackend] = backend
        self._audit_repo: Optional[AuditRepository] = None
        self._audit_service: Optional[AuditService] = None
        self._catalog: Optional[CatalogIndex] = None
        self._sale_controller: Optional[SaleLifecycleController] = None

        # Sesiones por caja: {register_id: (SaleSession, Lock)}
        self._sessions: Dict[str, Any] = {}
        self._sessions_lock = threading.Lock()

        self._initialized = True

    # =========================================================================
    # BACKEND Y REPOSITORIOS
    # =========================================================================

    @property
    def backend(self) -> IPosBackend:
        """Backend del punto de venta (singleton)."""
        if self._backend is None:
            if self._config.get('POS_BACKEND') == BACKEND_HTTP:
                self._backend = HttpPosBackend(
                    self._config.get('API_BASE_URL', ''),
                    token=self._config.get('API_TOKEN'),
                    timeout=self._config.get('API_TIMEOUT', 10),
                )
            else:
                self._backend = LocalPosBackend(self._config['DATA_DIR'])
            logger.info("Backend del punto de venta: %s", type(self._backend).__name__)
        return self._backend

    @property
    def audit_repo(self) -> AuditRepository:
        """Repositorio de auditoría (singleton)."""
        if self._audit_repo is None:
            self._audit_repo = AuditRepository(self._config['DATA_DIR'])
        return self._audit_repo

    # =========================================================================
    # SERVICIOS
    # =========================================================================

    @property
    def audit_service(self) -> AuditService:
        """Servicio de auditoría (singleton)."""
        if self._audit_service is None:
            self._audit_service = AuditService(
                self.audit_repo,
                currency=self._config.get('CURRENCY', 'AED')
            )
        return self._audit_service

    @property
    def catalog(self) -> CatalogIndex:
        """Índice del catálogo compartido (singleton)."""
        if self._catalog is None:
            self._catalog = CatalogIndex(self.backend)
        return self._catalog

    @property
    def sale_controller(self) -> SaleLifecycleController:
        """Controlador de ventas (singleton)."""
        if self._sale_controller is None:
            self._sale_controller = SaleLifecycleController(
                self.backend,
                self.catalog,
                self.audit_service
            )
        return self._sale_controller

    # =========================================================================
    # SESIONES POR CAJA
    # =========================================================================

    def _entry(self, register_id: str):
        with self._sessions_lock:
            entry = self._sessions.get(register_id)
            if entry is None:
                entry = (SaleSession(register_id=register_id), threading.Lock())
                self._sessions[register_id] = entry
            return entry

    @contextmanager
    def session(self, register_id: str) -> Iterator[SaleSession]:
        """
        Entrega la sesión de la caja con su lock tomado.

        Raises:
            SessionBusy: Si la caja ya tiene una operación en curso
        """
        session, lock = self._entry(register_id)
        if not lock.acquire(blocking=False):
            raise SessionBusy(register_id)
        try:
            yield session
        finally:
            lock.release()

    def get_session(self, register_id: str) -> SaleSession:
        """Sesión de la caja sin tomar el lock (solo lectura)."""
        return self._entry(register_id)[0]

    # =========================================================================
    # UTILIDADES
    # =========================================================================

    def reset(self) -> None:
        """
        Reinicia todas las instancias.
        Útil para testing o para recargar datos.
        """
        self._audit_repo = None
        self._audit_service = None
        self._catalog = None
        self._sale_controller = None
        with self._sessions_lock:
            self._sessions = {}

    @classmethod
    def reset_instance(cls) -> None:
        """Elimina la instancia singleton (útil para tests)."""
        if cls._instance is not None:
            cls._instance.reset()
            cls._instance = None
