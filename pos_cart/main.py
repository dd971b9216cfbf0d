# ==============================================================================
# APLICACIÓN FLASK - API JSON del punto de venta
# ==============================================================================
# Las rutas solo traducen HTTP ⇄ servicios; la lógica vive en services/.
# Todas las respuestas son JSON:
#   éxito → {"ok": true, ...}
#   error → {"ok": false, "error": <mensaje>, "code": <ErrorName>}
# ==============================================================================

import logging
import os
from typing import Any, Dict, Optional

from flask import Blueprint, Flask, current_app, request
from werkzeug.exceptions import BadRequest, HTTPException

from pos_cart.app_container import AppContainer
from pos_cart.config import load_config
from pos_cart.formatters import format_line_name, format_price, format_variant_attributes
from pos_cart.models import OrderDetails, PaymentRequest
from pos_cart.performance_logger import init_profiling, setup_logging
from pos_cart.services import PosError, SaleSession

logger = logging.getLogger(__name__)

api = Blueprint('pos_api', __name__, url_prefix='/api/pos')


# ═══════════════════════════════════════════════════════════════════════════
# HELPERS
# ═══════════════════════════════════════════════════════════════════════════

def _container() -> AppContainer:
    return current_app.extensions['pos_container']


def _money(cents: int) -> str:
    return format_price(cents, current_app.config.get('CURRENCY', 'AED'))


def _payload() -> Dict[str, Any]:
    """Cuerpo JSON de la petición (vacío si no hay cuerpo)."""
    if not request.data:
        return {}
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        raise BadRequest("Datos no recibidos o formato inválido")
    return data


def _int_field(data: Dict[str, Any], name: str, default: Optional[int] = None) -> int:
    value = data.get(name, default)
    if value is None:
        raise BadRequest(f"Falta el campo '{name}'")
    try:
        return int(value)
    except (TypeError, ValueError):
        raise BadRequest(f"El campo '{name}' debe ser un entero")


def _details(data: Dict[str, Any]) -> Optional[OrderDetails]:
    details = data.get('details')
    return OrderDetails.from_dict(details) if details else None


def _render_session(session: SaleSession) -> Dict[str, Any]:
    """Sesión con sus totales y precios formateados para la caja."""
    rendered = session.to_dict()
    for line in rendered['cart']['lines']:
        line['display_name'] = format_line_name(line['name'], line['attributes'])
        line['attributes_text'] = format_variant_attributes(line['attributes'])
        line['price_text'] = _money(line['unit_price_cents'])
        line['subtotal_text'] = _money(line['line_subtotal'])
    rendered['totals_text'] = {k: _money(v) for k, v in rendered['totals'].items()}
    rendered['item_count'] = session.engine.item_count()
    return rendered


# ═══════════════════════════════════════════════════════════════════════════
# CATÁLOGO
# ═══════════════════════════════════════════════════════════════════════════

@api.route('/catalog/refresh', methods=['POST'])
def catalog_refresh():
    """Descarga el catálogo de la tienda indicada."""
    data = _payload()
    store_id = data.get('store_id')
    if store_id in (None, ''):
        raise BadRequest("Falta el campo 'store_id'")
    units = _container().catalog.refresh(store_id)
    return {'ok': True, 'store_id': str(store_id), 'count': len(units)}


@api.route('/catalog', methods=['GET'])
def catalog_search():
    catalog = _container().catalog
    units = catalog.search(
        term=request.args.get('q', ''),
        category=request.args.get('category', 'All'),
        include_inactive=request.args.get('show_inactive') in ('1', 'true'),
    )
    return {
        'ok': True,
        'store_id': catalog.store_id,
        'refreshed_at': catalog.refreshed_at.isoformat() if catalog.refreshed_at else None,
        'categories': catalog.categories(),
        'units': [dict(u.to_dict(), price_text=_money(u.price_cents)) for u in units],
    }


# ═══════════════════════════════════════════════════════════════════════════
# CARRITO POR CAJA
# ═══════════════════════════════════════════════════════════════════════════

@api.route('/registers/<register_id>/cart', methods=['GET'])
def cart_view(register_id):
    return {'ok': True, 'session': _render_session(_container().get_session(register_id))}


@api.route('/registers/<register_id>/cart/items', methods=['POST'])
def cart_add(register_id):
    """Agrega una unidad del catálogo. Body: {unit_id, quantity}"""
    data = _payload()
    unit_id = data.get('unit_id')
    if not unit_id:
        raise BadRequest("Falta el campo 'unit_id'")
    quantity = _int_field(data, 'quantity', 1)
    container = _container()
    unit = container.catalog.lookup_by_id(unit_id)
    if unit is None:
        return _error(f'Producto {unit_id} no encontrado en el catálogo.', 'UnitNotFound', 404)
    with container.session(register_id) as session:
        container.sale_controller.add_unit(session, unit, quantity)
        return {'ok': True, 'session': _render_session(session)}


@api.route('/registers/<register_id>/cart/scan', methods=['POST'])
def cart_scan(register_id):
    """Agrega por código de barras. Body: {barcode, include_inactive}"""
    data = _payload()
    barcode = str(data.get('barcode') or '')
    container = _container()
    with container.session(register_id) as session:
        line = container.sale_controller.add_by_barcode(
            session, barcode, include_inactive=bool(data.get('include_inactive'))
        )
        if line is None:
            return _error(f'Producto con código "{barcode.strip()}" no encontrado.', 'BarcodeNotFound', 404)
        return {'ok': True, 'session': _render_session(session)}


@api.route('/registers/<register_id>/cart/items/<unit_id>/quantity', methods=['POST'])
def cart_change_quantity(register_id, unit_id):
    """Body: {delta}"""
    delta = _int_field(_payload(), 'delta')
    container = _container()
    with container.session(register_id) as session:
        container.sale_controller.change_quantity(session, unit_id, delta)
        return {'ok': True, 'session': _render_session(session)}


@api.route('/registers/<register_id>/cart/items/<unit_id>', methods=['DELETE'])
def cart_remove(register_id, unit_id):
    container = _container()
    with container.session(register_id) as session:
        removed = container.sale_controller.remove_line(session, unit_id)
        return {'ok': True, 'removed': removed, 'session': _render_session(session)}


@api.route('/registers/<register_id>/cart/discount', methods=['POST'])
def cart_discount(register_id):
    """Body: {amount_cents}"""
    amount = _int_field(_payload(), 'amount_cents')
    container = _container()
    with container.session(register_id) as session:
        container.sale_controller.apply_discount(session, amount)
        return {'ok': True, 'session': _render_session(session)}


@api.route('/registers/<register_id>/cart/clear', methods=['POST'])
def cart_clear(register_id):
    container = _container()
    with container.session(register_id) as session:
        container.sale_controller.clear(session)
        return {'ok': True, 'session': _render_session(session)}


@api.route('/registers/<register_id>/store', methods=['POST'])
def select_store(register_id):
    """Body: {store_id}"""
    data = _payload()
    container = _container()
    with container.session(register_id) as session:
        container.sale_controller.select_store(session, data.get('store_id'))
        return {'ok': True, 'session': _render_session(session)}


@api.route('/registers/<register_id>/customer', methods=['POST'])
def select_customer(register_id):
    """Body: {customer_id} (null = cliente de paso)"""
    data = _payload()
    container = _container()
    with container.session(register_id) as session:
        container.sale_controller.select_customer(session, data.get('customer_id'))
        return {'ok': True, 'session': _render_session(session)}


# ═══════════════════════════════════════════════════════════════════════════
# CICLO DE VIDA DE LA VENTA
# ═══════════════════════════════════════════════════════════════════════════

@api.route('/registers/<register_id>/payment/begin', methods=['POST'])
def payment_begin(register_id):
    container = _container()
    with container.session(register_id) as session:
        totals = container.sale_controller.begin_payment(session)
        return {
            'ok': True,
            'totals': totals.to_dict(),
            'total_text': _money(totals.total),
            'session': _render_session(session),
        }


@api.route('/registers/<register_id>/payment/cancel', methods=['POST'])
def payment_cancel(register_id):
    container = _container()
    with container.session(register_id) as session:
        container.sale_controller.cancel_payment(session)
        return {'ok': True, 'session': _render_session(session)}


@api.route('/registers/<register_id>/park', methods=['POST'])
def park(register_id):
    """Guarda como pendiente. Body: {order_ref, details}"""
    data = _payload()
    container = _container()
    with container.session(register_id) as session:
        sale = container.sale_controller.park_sale(session, data.get('order_ref'), _details(data))
        return {
            'ok': True,
            'mensaje': 'Venta guardada. Puedes encontrarla en Búsqueda > Pendientes.',
            'sale': sale.to_dict(),
            'session': _render_session(session),
        }


@api.route('/registers/<register_id>/resume/<sale_id>', methods=['POST'])
def resume(register_id, sale_id):
    """Retoma una venta pendiente; reemplaza el carrito actual."""
    container = _container()
    with container.session(register_id) as session:
        result = container.sale_controller.resume_sale(session, sale_id)
        return {'ok': True, 'resume': result.to_dict(), 'session': _render_session(session)}


@api.route('/registers/<register_id>/pay', methods=['POST'])
def pay(register_id):
    """
    Cobra la venta en curso.

    Body JSON:
    {
        "order_ref": "MESA-4",
        "payment": {"method": "CASH", "amount_cents": 2500},
        "details": {"order_type": "DINE_IN", "adults_count": 2}
    }
    """
    data = _payload()
    payment_data = data.get('payment')
    if not isinstance(payment_data, dict):
        raise BadRequest("Falta el campo 'payment'")
    amount = _int_field(payment_data, 'amount_cents', payment_data.get('amountCents'))
    payment = PaymentRequest.from_dict(dict(payment_data, amount_cents=amount))
    container = _container()
    with container.session(register_id) as session:
        sale = container.sale_controller.process_payment(
            session, data.get('order_ref'), payment, _details(data)
        )
        return {
            'ok': True,
            'sale': sale.to_dict(),
            'total_text': _money(sale.total_cents),
            'change_cents': payment.change_due(sale.total_cents),
            'session': _render_session(session),
        }


# ═══════════════════════════════════════════════════════════════════════════
# BÚSQUEDA Y VENTAS PENDIENTES
# ═══════════════════════════════════════════════════════════════════════════

@api.route('/sales', methods=['GET'])
def sales_lookup():
    """Query: tab (all, on_delivery, pending, completed), q"""
    sales = _container().sale_controller.lookup_sales(
        request.args.get('tab', 'all'),
        request.args.get('q', ''),
    )
    return {
        'ok': True,
        'sales': [dict(s.to_dict(), total_text=_money(s.total_cents)) for s in sales],
    }


@api.route('/sales/<sale_id>', methods=['DELETE'])
def sales_remove(sale_id):
    """Elimina una venta pendiente. Query opcional: register_id"""
    container = _container()
    register_id = request.args.get('register_id')
    if register_id:
        with container.session(register_id) as session:
            container.sale_controller.remove_parked_sale(sale_id, session)
    else:
        container.sale_controller.remove_parked_sale(sale_id)
    return {'ok': True, 'mensaje': 'Venta pendiente eliminada.'}


@api.route('/audit', methods=['GET'])
def audit_logs():
    limit = request.args.get('limit', 100, type=int)
    return {'ok': True, 'logs': _container().audit_service.get_all_logs()[:limit]}


# ═══════════════════════════════════════════════════════════════════════════
# ERRORES
# ═══════════════════════════════════════════════════════════════════════════

def _error(message: str, code: str, status: int):
    return {'ok': False, 'error': message, 'code': code}, status


@api.errorhandler(PosError)
def _handle_pos_error(e: PosError):
    if e.http_status >= 500:
        logger.error("%s: %s", e.code, e.message)
    return _error(e.message, e.code, e.http_status)


@api.errorhandler(ValueError)
def _handle_value_error(e: ValueError):
    return _error(str(e), 'InvalidInput', 400)


@api.errorhandler(HTTPException)
def _handle_http_error(e: HTTPException):
    return _error(e.description, type(e).__name__, e.code or 500)


# ═══════════════════════════════════════════════════════════════════════════
# FÁBRICA DE LA APLICACIÓN
# ═══════════════════════════════════════════════════════════════════════════

def create_app(config: Optional[Dict[str, Any]] = None, backend=None) -> Flask:
    """
    Crea la aplicación Flask.

    Args:
        config: Configuración extra (sobrescribe la del entorno)
        backend: Backend ya construido (tests)

    Returns:
        Aplicación lista para servir
    """
    app = Flask(__name__)
    app.config.update(load_config())
    if config:
        app.config.update(config)
        if 'DATA_DIR' in config and 'LOGS_DIR' not in config:
            app.config['LOGS_DIR'] = os.path.join(config['DATA_DIR'], 'logs')

    setup_logging(app.config['LOG_LEVEL'], app.config.get('LOGS_DIR') if app.config['ENABLE_PROFILING'] else None)
    init_profiling(app)

    # Un contenedor por aplicación
    AppContainer.reset_instance()
    app.extensions['pos_container'] = AppContainer(dict(app.config), backend=backend)

    app.register_blueprint(api)
    logger.info("Aplicación del punto de venta iniciada (backend=%s)", app.config['POS_BACKEND'])
    return app


if __name__ == "__main__":
    DEBUG = os.environ.get('FLASK_DEBUG', '0') == '1'
    HOST = os.environ.get('FLASK_HOST', '0.0.0.0')
    PORT = int(os.environ.get('FLASK_PORT', 5000))
    create_app().run(debug=DEBUG, host=HOST, port=PORT)
