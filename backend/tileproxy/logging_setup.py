"""
Configuracion de logging del proxy.

Todos los modulos usan `log = logging.getLogger(__name__)`. Este modulo
configura el logger raiz UNA sola vez con un formato JSON por linea, facil
de procesar por agregadores de logs:

    {"t": 1760000000000, "lvl": "INFO", "name": "tileproxy...", "msg": "..."}
"""

import json
import logging
import sys
import time


class JsonFormatter(logging.Formatter):
    """Formatea cada registro como un objeto JSON en una sola linea."""

    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "t": int(time.time() * 1000),
            "lvl": record.levelname,
            "name": record.name,
            "msg": record.getMessage(),
        }
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=False)


def setup_logging(level: str = "INFO") -> None:
    """
    Configura el logger raiz con JsonFormatter.

    Es idempotente: llamarla varias veces (por ejemplo al importar la app
    en cada modulo de tests) no duplica handlers.

    Parametros:
        level (str): Nombre del nivel (DEBUG, INFO, WARNING, ERROR).
            Un nombre desconocido cae a INFO.
    """
    root = logging.getLogger()
    if getattr(root, "_tileproxy_configured", False):
        return

    lvl = getattr(logging, level.upper(), None)
    if not isinstance(lvl, int):
        lvl = logging.INFO

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(JsonFormatter())

    root.addHandler(handler)
    root.setLevel(lvl)
    root._tileproxy_configured = True
