"""
Cache de tiles: decide si servir, refrescar o descargar un tile.

Dado un TileKey ya validado, TileCache.serve():

1. Aplica CORS: si el Origin es de un host de confianza, se devuelve en
   Access-Control-Allow-Origin. Si no, se omite el header y la peticion
   sigue (CORS lo aplica el navegador, no nosotros).
2. Aplica el chequeo de Referer: si viene un Referer de un host que no es
   de confianza, responde 403.
3. Resuelve el tile en disco:

       existe y fresco     -> se sirve tal cual (Last-Modified = mtime)
       existe y expirado   -> se descarga de nuevo ANTES de responder
                              (Last-Modified = instante previo a la descarga)
       no existe           -> se descarga (Last-Modified = ahora)

   Un tile esta expirado cuando mtime + ttl <= ahora.
4. Si tras todo eso el archivo no existe, responde 500.

La descarga es sincrona: la peticion espera a que termine (o a que venza
el timeout de TileStore). Dos peticiones simultaneas por el mismo tile
ausente pueden descargarlo ambas; gana la ultima escritura.
"""

import logging
import time
from dataclasses import dataclass, field
from email.utils import formatdate
from pathlib import Path
from typing import Callable

from tileproxy.config import settings
from tileproxy.errors import AccessDenied, TileProxyError, TileUnavailable
from tileproxy.models.schemas import TileKey
from tileproxy.services.tile_store import TileStore, tile_store
from tileproxy.services.validator import is_trusted

log = logging.getLogger(__name__)


def http_date(timestamp: float) -> str:
    """Formato de fecha HTTP: 'Sun, 18 Oct 2026 12:00:00 GMT'."""
    return formatdate(timestamp, usegmt=True)


@dataclass
class TileResponse:
    """
    Respuesta lista para enviar al cliente.

    Atributos:
        status (int): Codigo HTTP (200 en el camino feliz).
        headers (dict): Headers de cache, CORS y tipo de contenido.
        path (Path): Archivo cuyo contenido es el cuerpo de la respuesta.
    """

    status: int
    path: Path
    headers: dict = field(default_factory=dict)


class TileCache:
    """
    Parametros del constructor (por defecto, los de settings):
        store: TileStore donde viven los tiles.
        ttl: Segundos que un tile se considera fresco.
        trusted_hosts: Lista blanca para Origin y Referer.
        clock: Funcion que retorna el instante actual.
    """

    def __init__(
        self,
        store: TileStore | None = None,
        ttl: int | None = None,
        trusted_hosts: list[str] | None = None,
        clock: Callable[[], float] = time.time,
    ):
        self.store = store or tile_store
        self.ttl = settings.TILE_TTL if ttl is None else ttl
        self.trusted_hosts = settings.TRUSTED_HOSTS if trusted_hosts is None else trusted_hosts
        self.clock = clock

    def cors_headers(self, origin: str | None) -> dict:
        if origin and is_trusted(origin, self.trusted_hosts):
            return {"Access-Control-Allow-Origin": origin}
        return {}

    def serve(self, key: TileKey, origin: str | None = None, referer: str | None = None) -> TileResponse:
        """
        Resuelve `key` a un archivo de tile y arma los headers.

        Raises:
            AccessDenied: Referer de un host que no es de confianza (403).
            UpstreamFetchError: Fallo la descarga (500).
            TileUnavailable: El archivo no existe tras la descarga, o no
                se puede consultar en disco (500).

        Todos los errores llevan los headers CORS ya calculados.
        """
        headers = self.cors_headers(origin)

        if referer and not is_trusted(referer, self.trusted_hosts):
            log.info("Rejected referer %r for tile %s/%s/%s", referer, key.z, key.x, key.y)
            raise AccessDenied(headers=headers)

        try:
            modified = self.resolve(key)
            path = self.store.path_for(key)
            present = path.is_file()
        except TileProxyError as e:
            e.headers.update(headers)
            raise
        except OSError as e:
            # Por ejemplo ENAMETOOLONG con un x o y de cientos de digitos.
            log.warning("Tile %s/%s/%s not accessible on disk: %s", key.z, key.x, key.y, e)
            raise TileUnavailable(headers=headers) from e

        if not present:
            raise TileUnavailable(headers=headers)

        now = self.clock()
        headers.update(
            {
                "Expires": http_date(now + self.ttl),
                "Last-Modified": http_date(modified),
                "Content-Type": "image/png",
                "Cache-Control": f"public, max-age={self.ttl}",
            }
        )
        return TileResponse(status=200, path=path, headers=headers)

    def is_expired(self, mtime: float, now: float) -> bool:
        return mtime + self.ttl <= now

    def resolve(self, key: TileKey) -> float:
        """
        Asegura que el tile este en disco y fresco.

        Retorna:
            float: El instante a reportar en Last-Modified.
        """
        now = self.clock()
        if self.store.exists(key):
            mtime = self.store.last_modified(key)
            if not self.is_expired(mtime, now):
                return mtime
            log.info("Tile %s/%s/%s expired, refreshing", key.z, key.x, key.y)

        self.store.fetch(key)
        return now


# Instancia global de la cache (Singleton implicito).
tile_cache = TileCache()
