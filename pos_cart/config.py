# ==============================================================================
# CONFIGURACIÓN - Variables de entorno
# ==============================================================================
# Toda la configuración se lee del entorno y se aplica con app.config.update.
#
#   POS_SECRET_KEY        clave de Flask (OBLIGATORIA en producción)
#   POS_BACKEND           http | local
#   POS_API_BASE_URL      URL base de la API remota
#   POS_API_TOKEN         token Bearer de la API
#   POS_API_TIMEOUT       segundos por llamada al backend
#   POS_DATA_DIR          directorio de products.json / sales.json / audit.json
#   POS_CURRENCY          moneda para mostrar (AED)
#   POS_LOG_LEVEL         DEBUG, INFO, WARNING...
#   POS_ENABLE_PROFILING  1/0
#   POS_SLOW_WARNING_MS   umbral de ruta lenta
#   POS_SLOW_CRITICAL_MS  umbral de ruta muy lenta
# ==============================================================================

import logging
import os
from typing import Any, Dict, Mapping, Optional

logger = logging.getLogger(__name__)

BASE = os.path.dirname(os.path.abspath(__file__))

_DEFAULT_SECRET = "pos_cart_dev_secret_key_change_in_production"

BACKEND_HTTP = 'http'
BACKEND_LOCAL = 'local'


def _as_bool(value: Optional[str], default: bool) -> bool:
    if value is None or value == '':
        return default
    return value.strip().lower() in ('1', 'true', 'yes', 'on', 'si', 'sí')


def _as_number(value: Optional[str], default, cast=int):
    if value is None or value == '':
        return default
    try:
        return cast(value)
    except ValueError:
        logger.warning("Valor inválido '%s' en la configuración, se usa %s", value, default)
        return default


def load_config(environ: Optional[Mapping[str, str]] = None) -> Dict[str, Any]:
    """
    Lee la configuración desde el entorno.

    Args:
        environ: Entorno a leer (por defecto os.environ)

    Returns:
        Diccionario listo para app.config.update
    """
    env = os.environ if environ is None else environ

    secret = env.get('POS_SECRET_KEY')
    if not secret:
        logger.warning("POS_SECRET_KEY no definida; se usa la clave de desarrollo")

    backend = (env.get('POS_BACKEND') or BACKEND_LOCAL).strip().lower()
    if backend not in (BACKEND_HTTP, BACKEND_LOCAL):
        raise ValueError(f"POS_BACKEND inválido: {backend} (usar 'http' o 'local')")

    data_dir = env.get('POS_DATA_DIR') or os.path.join(BASE, 'data')

    return {
        'SECRET_KEY': secret or _DEFAULT_SECRET,
        'POS_BACKEND': backend,
        'API_BASE_URL': env.get('POS_API_BASE_URL', ''),
        'API_TOKEN': env.get('POS_API_TOKEN') or None,
        'API_TIMEOUT': _as_number(env.get('POS_API_TIMEOUT'), 10.0, float),
        'DATA_DIR': data_dir,
        'LOGS_DIR': env.get('POS_LOGS_DIR') or os.path.join(data_dir, 'logs'),
        'CURRENCY': env.get('POS_CURRENCY') or 'AED',
        'LOG_LEVEL': (env.get('POS_LOG_LEVEL') or 'INFO').upper(),
        'ENABLE_PROFILING': _as_bool(env.get('POS_ENABLE_PROFILING'), True),
        'SLOW_WARNING_MS': _as_number(env.get('POS_SLOW_WARNING_MS'), 300),
        'SLOW_CRITICAL_MS': _as_number(env.get('POS_SLOW_CRITICAL_MS'), 700),
    }
