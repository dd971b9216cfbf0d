# ==============================================================================
# REPOSITORIO BASE - Archivos JSON del backend local
# ==============================================================================
# Un archivo por repositorio. Todas las lecturas y escrituras pasan por un
# único RLock compartido, así una operación que toca varios archivos
# (venta + stock) puede tomar el lock una sola vez y quedar atómica.
# ==============================================================================

import json
import logging
import os
import tempfile
import threading
from contextlib import contextmanager
from typing import Any, Callable, Dict, Iterator, List, Optional

logger = logging.getLogger(__name__)


class BaseRepository:
    """
    Archivo JSON con escritura atómica (temporal + os.replace).

    Las subclases fijan `empty` (dict o list): es el contenido de un
    archivo nuevo y el tipo esperado al leer.
    """

    _file_lock = threading.RLock()
    empty: Callable[[], Any] = dict

    def __init__(self, file_path: str):
        """
        Args:
            file_path: Ruta al archivo JSON (se crea si no existe)
        """
        self.file_path = file_path
        os.makedirs(os.path.dirname(file_path) or '.', exist_ok=True)
        if not os.path.exists(file_path):
            self.save_all(self.empty())

    def get_all(self) -> Any:
        with self._file_lock:
            try:
                with open(self.file_path, encoding='utf-8') as f:
                    data = json.load(f)
            except FileNotFoundError:
                return self.empty()
            except json.JSONDecodeError as e:
                logger.error("Archivo %s dañado, se lee vacío: %s", self.file_path, e)
                return self.empty()
        expected = type(self.empty())
        return data if isinstance(data, expected) else self.empty()

    def save_all(self, data: Any) -> None:
        directory = os.path.dirname(self.file_path) or '.'
        with self._file_lock:
            fd, temp_path = tempfile.mkstemp(dir=directory, suffix='.tmp')
            try:
                with os.fdopen(fd, 'w', encoding='utf-8') as f:
                    json.dump(data, f, indent=2, ensure_ascii=False)
                os.replace(temp_path, self.file_path)
            finally:
                if os.path.exists(temp_path):
                    os.remove(temp_path)

    @contextmanager
    def editing(self) -> Iterator[Any]:
        """
        Lee, entrega los datos para modificarlos y los guarda al salir.
        Si el bloque lanza una excepción no se escribe nada.
        """
        with self._file_lock:
            data = self.get_all()
            yield data
            self.save_all(data)


class DictRepository(BaseRepository):
    """Datos como diccionario {id: registro}, ej. products.json."""

    empty = dict


class ListRepository(BaseRepository):
    """Datos como lista de registros, ej. sales.json."""

    empty = list

    def append(self, record: Dict[str, Any]) -> None:
        with self.editing() as records:
            records.append(record)

    def find_by(self, field: str, value: Any) -> Optional[Dict[str, Any]]:
        """Primer registro con record[field] == value (o None)."""
        return next((r for r in self.get_all() if r.get(field) == value), None)

    def remove_where(self, field: str, value: Any) -> bool:
        """
        Quita los registros con record[field] == value.

        Returns:
            True si se quitó alguno
        """
        with self._file_lock:
            records: List[Dict[str, Any]] = self.get_all()
            kept = [r for r in records if r.get(field) != value]
            if len(kept) == len(records):
                return False
            self.save_all(kept)
            return True
