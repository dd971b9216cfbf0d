# ==============================================================================
# BACKEND HTTP - API REST remota del punto de venta
# ==============================================================================
# Implementa IPosBackend sobre la API REST (Bearer token). Toda falla de red,
# de validación o del servidor se traduce a BackendError; un 404 al leer o
# eliminar una venta se traduce a SaleNotFound.
# ==============================================================================

import logging
from typing import Any, Dict, List, Optional

import requests

from pos_cart.models import Sale, SellableUnit
from pos_cart.performance_logger import profile_function
from pos_cart.services.errors import BackendError, SaleNotFound

logger = logging.getLogger(__name__)


class HttpPosBackend:
    """
    Cliente del backend remoto.

    Endpoints:
        GET    /pos/products?storeId=   catálogo con stock por tienda
        POST   /pos/sales               crear venta (pendiente o completada)
        GET    /pos/sales/{id}          detalle de venta
        DELETE /pos/sales/{id}          eliminar venta pendiente
        GET    /pos/sales               listado de ventas
    """

    def __init__(
        self,
        base_url: str,
        token: Optional[str] = None,
        timeout: float = 10,
        session: Optional[requests.Session] = None
    ):
        """
        Args:
            base_url: URL base de la API (ej. https://erp.example.com/api)
            token: Token Bearer
            timeout: Tiempo máximo por llamada, en segundos
            session: Sesión de requests (inyectable para tests)
        """
        self.base_url = base_url.rstrip('/')
        self.timeout = timeout
        self.session = session or requests.Session()
        self.session.headers.update({'Accept': 'application/json'})
        if token:
            self.session.headers['Authorization'] = f'Bearer {token}'

    # =========================================================================
    # TRANSPORTE
    # =========================================================================

    def _request(
        self,
        method: str,
        path: str,
        sale_id: Optional[str] = None,
        **kwargs
    ) -> Any:
        """
        Ejecuta una llamada y devuelve el JSON de la respuesta (None si vacía).

        Raises:
            SaleNotFound: 404 en una ruta de venta
            BackendError: Cualquier otra falla
        """
        url = f"{self.base_url}{path}"
        try:
            response = self.session.request(method, url, timeout=self.timeout, **kwargs)
        except requests.RequestException as e:
            logger.error("Falló %s %s: %s", method, url, e)
            raise BackendError(f"No se pudo conectar con el servidor: {e}") from e

        if response.status_code == 404 and sale_id is not None:
            raise SaleNotFound(sale_id)
        try:
            response.raise_for_status()
        except requests.HTTPError as e:
            message = self._server_message(response) or str(e)
            logger.error("%s %s respondió %s: %s", method, url, response.status_code, message)
            raise BackendError(message, status_code=response.status_code) from e

        if not response.content:
            return None
        try:
            return response.json()
        except ValueError as e:
            raise BackendError(f"Respuesta inválida del servidor: {e}", status_code=response.status_code) from e

    @staticmethod
    def _server_message(response: requests.Response) -> Optional[str]:
        try:
            data = response.json()
        except ValueError:
            return response.text[:200] or None
        if isinstance(data, dict):
            return data.get('message') or data.get('error')
        return None

    @staticmethod
    def _as_list(data: Any) -> List[Dict[str, Any]]:
        # Algunos endpoints envuelven el listado en {"data": [...]}
        if isinstance(data, dict):
            data = data.get('data') or data.get('content') or []
        return data or []

    # =========================================================================
    # OPERACIONES
    # =========================================================================

    @profile_function(name="Backend: catálogo")
    def fetch_catalog(self, store_id: Any) -> List[SellableUnit]:
        products = self._as_list(self._request('GET', '/pos/products', params={'storeId': store_id}))
        try:
            return [
                SellableUnit.from_variant(product, variant, store_id)
                for product in products
                for variant in product.get('variants') or []
            ]
        except (AttributeError, KeyError, TypeError) as e:
            raise BackendError(f"Catálogo inválido: {e}") from e

    @profile_function(name="Backend: crear venta")
    def create_sale(self, sale_request: Dict[str, Any]) -> Sale:
        data = self._request('POST', '/pos/sales', json=sale_request)
        if not isinstance(data, dict):
            raise BackendError("El servidor no devolvió la venta creada")
        return Sale.from_dict(data)

    @profile_function(name="Backend: leer venta")
    def fetch_sale(self, sale_id: str) -> Sale:
        data = self._request('GET', f'/pos/sales/{sale_id}', sale_id=sale_id)
        if not isinstance(data, dict):
            raise BackendError(f"Respuesta inválida para la venta {sale_id}")
        return Sale.from_dict(data)

    @profile_function(name="Backend: eliminar venta")
    def delete_sale(self, sale_id: str) -> None:
        self._request('DELETE', f'/pos/sales/{sale_id}', sale_id=sale_id)

    @profile_function(name="Backend: listar ventas")
    def list_sales(self) -> List[Sale]:
        return [Sale.from_dict(s) for s in self._as_list(self._request('GET', '/pos/sales'))]
