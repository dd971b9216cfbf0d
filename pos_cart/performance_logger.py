# ==============================================================================
# LOGGING Y PROFILING INTERNO
# ==============================================================================
# Configura el logging de la aplicación y mide el rendimiento de rutas y
# funciones clave sin afectar la experiencia en caja.
# Guarda logs legibles en logs/ para análisis humano:
#   - performance.log : cada petición con su tiempo
#   - slow_routes.log : rutas que superan los umbrales
#   - slow_functions.log : llamadas lentas a funciones perfiladas
#
# ACTIVAR/DESACTIVAR: POS_ENABLE_PROFILING
# ==============================================================================

import logging
import os
import threading
import time
from collections import defaultdict
from functools import wraps

logger = logging.getLogger(__name__)

# ═══════════════════════════════════════════════════════════════════════════
# CONFIGURACIÓN
# ═══════════════════════════════════════════════════════════════════════════

ENABLE_PROFILING = True

# Umbrales de tiempo (en milisegundos)
THRESHOLD_WARNING = 300
THRESHOLD_CRITICAL = 700

LOG_FORMAT = '%(asctime)s [%(levelname)s] %(name)s: %(message)s'

# Loggers dedicados, cada uno escribe a su archivo
_performance_log = logging.getLogger('pos_cart.profiling.performance')
_slow_routes_log = logging.getLogger('pos_cart.profiling.slow_routes')
_slow_functions_log = logging.getLogger('pos_cart.profiling.slow_functions')

# Mapeo de rutas a nombres legibles (para logs más humanos)
ROUTE_NAMES = {
    # Catálogo
    'POST /api/pos/catalog/refresh': 'Actualizar catálogo',
    'GET /api/pos/catalog': 'Buscar en catálogo',

    # Carrito
    'GET /api/pos/registers/<register_id>/cart': 'Ver carrito',
    'POST /api/pos/registers/<register_id>/cart/items': 'Agregar al carrito',
    'POST /api/pos/registers/<register_id>/cart/scan': 'Escanear código',
    'POST /api/pos/registers/<register_id>/cart/items/<unit_id>/quantity': 'Cambiar cantidad',
    'DELETE /api/pos/registers/<register_id>/cart/items/<unit_id>': 'Quitar del carrito',
    'POST /api/pos/registers/<register_id>/cart/discount': 'Aplicar descuento',
    'POST /api/pos/registers/<register_id>/cart/clear': 'Vaciar carrito',

    # Ventas
    'POST /api/pos/registers/<register_id>/park': 'Guardar venta pendiente',
    'POST /api/pos/registers/<register_id>/resume/<sale_id>': 'Retomar venta',
    'POST /api/pos/registers/<register_id>/pay': 'Cobrar venta',
    'GET /api/pos/sales': 'Buscar ventas',
    'DELETE /api/pos/sales/<sale_id>': 'Eliminar venta pendiente',
}


# ═══════════════════════════════════════════════════════════════════════════
# INICIALIZACIÓN
# ═══════════════════════════════════════════════════════════════════════════

def _file_handler(path: str) -> logging.Handler:
    handler = logging.FileHandler(path, encoding='utf-8')
    handler.setFormatter(logging.Formatter('%(message)s'))
    return handler


def setup_logging(level: str = 'INFO', logs_dir: str = None) -> None:
    """
    Configura el logging de la aplicación.

    Args:
        level: Nivel del logger raíz del paquete (DEBUG, INFO...)
        logs_dir: Directorio para los archivos de profiling (None = sin archivos)
    """
    package_logger = logging.getLogger('pos_cart')
    package_logger.setLevel(level.upper())
    if not any(getattr(h, '_pos_cart', False) for h in package_logger.handlers):
        console = logging.StreamHandler()
        console.setFormatter(logging.Formatter(LOG_FORMAT))
        console._pos_cart = True
        package_logger.addHandler(console)

    if not logs_dir:
        return
    os.makedirs(logs_dir, exist_ok=True)
    for profiling_logger, filename in (
        (_performance_log, 'performance.log'),
        (_slow_routes_log, 'slow_routes.log'),
        (_slow_functions_log, 'slow_functions.log'),
    ):
        for handler in list(profiling_logger.handlers):
            profiling_logger.removeHandler(handler)
            handler.close()
        profiling_logger.addHandler(_file_handler(os.path.join(logs_dir, filename)))
        profiling_logger.setLevel(logging.INFO)
        profiling_logger.propagate = False


# ═══════════════════════════════════════════════════════════════════════════
# ESTADÍSTICAS DE FUNCIONES (en memoria)
# ═══════════════════════════════════════════════════════════════════════════

# Estructura: {nombre_funcion: {calls: int, total_time: float, max_time: float}}
_function_stats = defaultdict(lambda: {'calls': 0, 'total_time': 0.0, 'max_time': 0.0})
_stats_lock = threading.Lock()


def _get_route_name(method, path, rule=None):
    """
    Obtiene nombre legible para una ruta.
    Usa la regla de Flask para las rutas con parámetros.
    """
    key = f"{method} {path}"
    if key in ROUTE_NAMES:
        return ROUTE_NAMES[key]
    if rule:
        rule_key = f"{method} {rule}"
        if rule_key in ROUTE_NAMES:
            return ROUTE_NAMES[rule_key]
    return key


# ═══════════════════════════════════════════════════════════════════════════
# PROFILING DE RUTAS
# ═══════════════════════════════════════════════════════════════════════════

def log_route_performance(method, path, rule, time_ms, register=None):
    """
    Registra el rendimiento de una ruta en performance.log

    Args:
        method: GET, POST, etc.
        path: Ruta solicitada
        rule: Regla de Flask
        time_ms: Tiempo en milisegundos
        register: Caja que hizo la petición (opcional)
    """
    _performance_log.info(
        "\n════════════════════════════════════════\n"
        "[PERFORMANCE] %s\n"
        "────────────────────────────────────────\n"
        "Acción: %s\n"
        "Caja: %s\n"
        "Ruta: %s %s\n"
        "Tiempo: %.0f ms",
        time.strftime('%Y-%m-%d %H:%M:%S'),
        _get_route_name(method, path, rule),
        register or '-',
        method, path,
        time_ms,
    )


def log_slow_route(method, path, rule, time_ms, register=None, level='WARNING'):
    """
    Registra una ruta lenta en slow_routes.log

    Args:
        level: 'WARNING' o 'CRITICAL'
    """
    severity = 'LENTA' if level == 'WARNING' else 'MUY LENTA'
    threshold = THRESHOLD_WARNING if level == 'WARNING' else THRESHOLD_CRITICAL
    _slow_routes_log.log(
        logging.WARNING if level == 'WARNING' else logging.CRITICAL,
        "\n[%s] %s\n"
        "────────────────────────────────────────\n"
        "Ruta %s: %s\n"
        "Caja: %s\n"
        "Detalle: %s %s\n"
        "Tiempo: %.0f ms (umbral: %d ms)\n"
        "────────────────────────────────────────",
        level, time.strftime('%Y-%m-%d %H:%M:%S'),
        severity, _get_route_name(method, path, rule),
        register or '-',
        method, path,
        time_ms, threshold,
    )


def init_profiling(app):
    """
    Inicializa el profiling en una app Flask según su configuración.
    Registra hooks before_request y after_request.
    """
    global ENABLE_PROFILING, THRESHOLD_WARNING, THRESHOLD_CRITICAL

    ENABLE_PROFILING = app.config.get('ENABLE_PROFILING', True)
    THRESHOLD_WARNING = app.config.get('SLOW_WARNING_MS', THRESHOLD_WARNING)
    THRESHOLD_CRITICAL = app.config.get('SLOW_CRITICAL_MS', THRESHOLD_CRITICAL)
    if not ENABLE_PROFILING:
        return

    from flask import g, request

    @app.before_request
    def _start_timer():
        g.start_time = time.perf_counter()

    @app.after_request
    def _log_request(response):
        if not hasattr(g, 'start_time'):
            return response

        elapsed = (time.perf_counter() - g.start_time) * 1000  # ms
        method = request.method
        path = request.path
        rule = str(request.url_rule) if request.url_rule else path
        register = (request.view_args or {}).get('register_id')

        log_route_performance(method, path, rule, elapsed, register)
        if elapsed >= THRESHOLD_CRITICAL:
            log_slow_route(method, path, rule, elapsed, register, 'CRITICAL')
        elif elapsed >= THRESHOLD_WARNING:
            log_slow_route(method, path, rule, elapsed, register, 'WARNING')
        return response


# ═══════════════════════════════════════════════════════════════════════════
# DECORADOR PARA FUNCIONES CLAVE
# ═══════════════════════════════════════════════════════════════════════════

def profile_function(func=None, name=None):
    """
    Decorador para medir rendimiento de funciones críticas
    (llamadas al backend, por ejemplo).

    Uso:
        @profile_function(name="Crear venta")
        def create_sale(...):
            ...

    Registra cantidad de llamadas, tiempo promedio y tiempo máximo.
    """
    def decorator(fn):
        func_name = name or fn.__name__

        @wraps(fn)
        def wrapper(*args, **kwargs):
            if not ENABLE_PROFILING:
                return fn(*args, **kwargs)
            start = time.perf_counter()
            try:
                return fn(*args, **kwargs)
            finally:
                elapsed_ms = (time.perf_counter() - start) * 1000
                with _stats_lock:
                    stats = _function_stats[func_name]
                    stats['calls'] += 1
                    stats['total_time'] += elapsed_ms
                    if elapsed_ms > stats['max_time']:
                        stats['max_time'] = elapsed_ms
                if elapsed_ms >= THRESHOLD_WARNING:
                    severity = 'CRÍTICO' if elapsed_ms >= THRESHOLD_CRITICAL else 'LENTO'
                    _slow_functions_log.warning(
                        "[%s] %s - Función: %s - Tiempo: %.0f ms",
                        severity, time.strftime('%Y-%m-%d %H:%M:%S'), func_name, elapsed_ms
                    )

        return wrapper

    # Permitir uso sin paréntesis: @profile_function
    if func is not None:
        return decorator(func)
    return decorator


def get_function_stats():
    """
    Obtiene estadísticas de todas las funciones perfiladas.

    Returns:
        dict: {nombre: {calls, avg_time, max_time}}
    """
    with _stats_lock:
        result = {}
        for func_name, stats in _function_stats.items():
            calls = stats['calls']
            avg = stats['total_time'] / calls if calls > 0 else 0
            result[func_name] = {
                'calls': calls,
                'avg_time': round(avg, 2),
                'max_time': round(stats['max_time'], 2)
            }
        return result


def reset_stats():
    """Reinicia todas las estadísticas (útil para testing)"""
    with _stats_lock:
        _function_stats.clear()


__all__ = [
    'setup_logging',
    'init_profiling',
    'profile_function',
    'get_function_stats',
    'reset_stats',
]
