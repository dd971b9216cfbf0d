# ==============================================================================
# REPOSITORIO DE AUDITORÍA
# ==============================================================================
# Encapsula todo el acceso a audit.json
# La auditoría se almacena como lista: [{log1}, {log2}, ...]
# ==============================================================================

import os
from datetime import datetime
from typing import Any, Dict, List, Optional

from .base import ListRepository


class AuditRepository(ListRepository):
    """
    Repositorio para el log de auditoría de la caja.

    Formato de datos en audit.json:
    [
        {
            "type": "PAGO",
            "user": "caja-1",
            "message": "Pago recibido en INV-0001: AED 10.50 (CASH)",
            "timestamp": "2024-01-01 10:00:00",
            "related_id": "INV-0001",
            "details": {...}
        }
    ]
    """

    # Límite de registros para evitar archivos muy grandes
    MAX_LOGS = 10000

    def __init__(self, base_path: str):
        """
        Args:
            base_path: Directorio de datos
        """
        super().__init__(os.path.join(base_path, 'audit.json'))

    def load(self) -> List[Dict[str, Any]]:
        """
        Carga todos los logs de auditoría.

        Returns:
            Lista de logs (más recientes primero)
        """
        return sorted(
            self.get_all(),
            key=lambda x: x.get('timestamp', ''),
            reverse=True
        )

    def save(self, logs: List[Dict[str, Any]]) -> None:
        # Mantener solo los últimos MAX_LOGS registros
        if len(logs) > self.MAX_LOGS:
            logs = logs[:self.MAX_LOGS]
        self.save_all(logs)

    def log(
        self,
        log_type: str,
        user: str,
        message: str,
        related_id: str = '',
        details: Optional[Dict[str, Any]] = None
    ) -> None:
        """
        Registra un nuevo evento de auditoría.

        Args:
            log_type: Tipo de evento (VENTA, PAGO, SISTEMA)
            user: Caja o usuario que realizó la acción
            message: Mensaje descriptivo humanizado
            related_id: ID relacionado (factura, venta...)
            details: Detalles adicionales
        """
        log_entry = {
            'type': log_type,
            'user': user or 'sistema',
            'message': message,
            'timestamp': datetime.now().strftime("%Y-%m-%d %H:%M:%S"),
            'related_id': related_id,
            'details': details or {}
        }

        with self._file_lock:
            logs = self.get_all()
            logs.insert(0, log_entry)  # más reciente primero
            self.save(logs)

    def get_logs_by_type(self, log_type: str) -> List[Dict[str, Any]]:
        return [log for log in self.load() if log.get('type') == log_type]
