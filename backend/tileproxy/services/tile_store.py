"""
Modulo de almacenamiento de tiles en disco y descarga desde el upstream.

Este modulo encapsula TODA la comunicacion con el sistema de archivos y con
el servidor de tiles upstream. Ningun otro archivo deberia abrir archivos de
tiles ni hacer peticiones HTTP al upstream directamente.

Estructura en disco:
    {root}/{z}/{x}/{y}.png

Invariante: un archivo presente en disco es siempre un tile completo. Si la
descarga falla a medias, el archivo parcial se borra antes de reportar el
error.

Patron de diseno: Inyeccion de dependencias
-------------------------------------------
El constructor acepta un `session` opcional de requests:
- En produccion: se crea un requests.Session (reutiliza conexiones HTTP).
- En tests: se pasa un MagicMock que simula al servidor upstream.
"""

import logging
import os

# Path: rutas del sistema de archivos como objetos. La ruta de un tile se
# arma con el operador "/": root / "5" / "10" / "12.png".
from pathlib import Path

# requests es el cliente HTTP mas usado en Python. Con stream=True la
# respuesta no se descarga entera en memoria: se lee por bloques con
# iter_content(). Un requests.Session reutiliza las conexiones TCP con el
# upstream entre descargas.
import requests

# Importamos la configuracion para obtener el directorio de tiles, la URL
# upstream, el operador y el timeout
from tileproxy.config import settings
from tileproxy.errors import UpstreamFetchError
from tileproxy.models.schemas import TileKey

log = logging.getLogger(__name__)

# Tamano de cada bloque al copiar la respuesta upstream al archivo.
CHUNK_SIZE = 64 * 1024


class TileStore:
    """
    Almacen de tiles respaldado por archivos.

    Atributos:
        root (Path): Directorio raiz de los tiles.
        url_template (str): URL upstream con placeholders {z}, {x}, {y}.
        operator (str): Operador del proxy, enviado en el User-Agent.
        timeout (float): Timeout de la descarga, en segundos.
        session (requests.Session): Cliente HTTP para el upstream.
    """

    def __init__(
        self,
        root: str | os.PathLike | None = None,
        url_template: str | None = None,
        operator: str | None = None,
        timeout: float | None = None,
        session: requests.Session | None = None,
    ):
        self.root = Path(root if root is not None else settings.TILE_STORAGE_ROOT)
        self.url_template = url_template or settings.TILE_SERVER_URL
        self.operator = operator or settings.TILE_OPERATOR
        self.timeout = settings.FETCH_TIMEOUT if timeout is None else timeout
        self.session = session or requests.Session()

    @property
    def user_agent(self) -> str:
        return f"Tile Proxy, Operator: {self.operator}"

    def path_for(self, key: TileKey) -> Path:
        """Ruta determinista del tile: {root}/{z}/{x}/{y}.png"""
        return self.root / str(key.z) / str(key.x) / f"{key.y}.png"

    def exists(self, key: TileKey) -> bool:
        return self.path_for(key).is_file()

    def last_modified(self, key: TileKey) -> float:
        """mtime del archivo del tile (segundos desde epoch)."""
        return self.path_for(key).stat().st_mtime

    def source_url(self, key: TileKey) -> str:
        """Sustituye las coordenadas en la plantilla de URL upstream."""
        return (
            self.url_template.replace("{z}", str(key.z))
            .replace("{x}", str(key.x))
            .replace("{y}", str(key.y))
        )

    def fetch(self, key: TileKey) -> Path:
        """
        Descarga el tile del upstream y lo escribe en su ruta.

        El cuerpo de la respuesta se copia por bloques directamente al
        archivo destino, sin cargarlo entero en memoria. Si el archivo ya
        existia se sobrescribe. No hay reintentos.

        Parametros:
            key (TileKey): Coordenadas del tile.

        Retorna:
            Path: Ruta del archivo escrito.

        Raises:
            UpstreamFetchError: Si el upstream responde con un codigo que
                no es 2xx, o hay un error de red, timeout o de disco.
                El archivo parcial ya fue eliminado.
        """
        url = self.source_url(key)
        path = self.path_for(key)
        log.info("Fetching tile %s/%s/%s from %s", key.z, key.x, key.y, url)

        try:
            path.parent.mkdir(mode=0o750, parents=True, exist_ok=True)
            with path.open("wb") as fh:
                response = self.session.get(
                    url,
                    headers={"User-Agent": self.user_agent},
                    timeout=self.timeout,
                    stream=True,
                )
                try:
                    response.raise_for_status()
                    for chunk in response.iter_content(chunk_size=CHUNK_SIZE):
                        if chunk:
                            fh.write(chunk)
                finally:
                    response.close()
        except (requests.RequestException, OSError) as e:
            path.unlink(missing_ok=True)
            log.warning("Fetching tile %s/%s/%s failed: %s", key.z, key.x, key.y, e)
            raise UpstreamFetchError() from e

        return path


# Instancia global del almacen (Singleton implicito).
tile_store = TileStore()
