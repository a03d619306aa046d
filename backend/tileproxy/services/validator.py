"""
Modulo de validacion de peticiones de tiles.

Es la PRIMERA linea de defensa del proxy. Verifica dos cosas:

1. Que las coordenadas z/x/y sean enteros dentro de rango. Una peticion
   con coordenadas invalidas no viene de un visor de mapas legitimo, asi
   que la ruta ademas banea al cliente.
2. Que los headers Origin y Referer apunten a hosts de la lista blanca.

Formato aceptado para cada coordenada: un entero decimal, con signo
opcional y espacios alrededor, sin ceros a la izquierda ("0" si, "05" no,
"5.0" no). El rango lo valida el modelo TileKey.
"""

import re
from urllib.parse import urlsplit

from pydantic import ValidationError

from tileproxy.errors import InvalidTileRequest
from tileproxy.models.schemas import TileKey

INTEGER_PATTERN = re.compile(r"^\s*[+-]?(0|[1-9][0-9]*)\s*$")


def parse_int(value: str | None) -> int | None:
    """
    Convierte `value` a int si es un entero decimal bien formado.

    Python limita la conversion str -> int a unos miles de digitos
    (sys.set_int_max_str_digits); por encima de ese limite int() lanza
    ValueError y el valor se trata como invalido.
    """
    if value is None or not INTEGER_PATTERN.match(value):
        return None
    try:
        return int(value)
    except ValueError:
        return None


def parse_tile_key(params) -> TileKey:
    """
    Construye un TileKey a partir de los parametros de la peticion.

    Parametros:
        params: Mapeo con las claves "z", "x", "y" (request.query_params).

    Retorna:
        TileKey: Coordenadas validadas.

    Raises:
        InvalidTileRequest: Si falta alguna coordenada, no es un entero,
            o esta fuera de rango.

    Ejemplos:
        >>> parse_tile_key({"z": "5", "x": "10", "y": "12"})
        TileKey(z=5, x=10, y=12)

        >>> parse_tile_key({"z": "25", "x": "0", "y": "0"})
        Traceback (most recent call last):
        ...
        InvalidTileRequest: Invalid parameters
    """
    values = {name: parse_int(params.get(name)) for name in ("z", "x", "y")}
    if any(value is None for value in values.values()):
        raise InvalidTileRequest()

    try:
        return TileKey(**values)
    except ValidationError:
        raise InvalidTileRequest()


def host_of(url: str | None) -> str | None:
    """Extrae el host (en minusculas) de una URL, o None si no tiene."""
    if not url:
        return None
    try:
        return urlsplit(url).hostname
    except ValueError:
        return None


def is_trusted(url: str | None, trusted_hosts) -> bool:
    """True si el host de `url` esta en la lista blanca."""
    host = host_of(url)
    return host is not None and host in {h.lower() for h in trusted_hosts}
