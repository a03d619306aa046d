"""
Modulo de ruta para servir tiles.

Define el endpoint GET /tile?z={z}&x={x}&y={y}.

Flujo de una peticion:

    1. Validar z/x/y          -> invalido: banear al cliente + 400
    2. Limitador por cliente  -> 429 (limite excedido) o 400 (baneado)
    3. CORS y Referer         -> 403 si el Referer no es de confianza
    4. Cache / descarga       -> 500 si el tile no se pudo obtener
    5. Respuesta 200 con el PNG y headers de cache

Las coordenadas se validan ANTES del limitador: una peticion con
coordenadas invalidas se rechaza como tal sin importar el estado del
cliente en el limitador.

El endpoint es `def` (no `async def`) a proposito de la descarga
bloqueante: FastAPI lo ejecuta en su pool de hilos, asi que mientras se
descarga un tile el resto de peticiones sigue atendiendose.
"""

import logging

# APIRouter agrupa los endpoints de este modulo; main.py lo registra con
# app.include_router().
from fastapi import APIRouter

# StreamingResponse envia el cuerpo a medida que un generador lo produce,
# asi el PNG nunca se carga entero en memoria.
from fastapi.responses import StreamingResponse
from starlette.requests import Request

# Importamos el modulo (no la instancia) para que los tests puedan
# reemplazar limiter.throttle con patch().
from tileproxy import limiter
from tileproxy.errors import InvalidTileRequest, TileUnavailable
from tileproxy.services.tile_cache import tile_cache
from tileproxy.services.tile_store import CHUNK_SIZE
from tileproxy.services.validator import parse_tile_key

log = logging.getLogger(__name__)

router = APIRouter()


@router.get("/tile")
def get_tile(request: Request):
    """
    Endpoint que sirve un tile PNG, desde cache o descargandolo.

    Parametros (query string):
        z (int): Nivel de zoom, 0..20.
        x (int): Columna, >= 0.
        y (int): Fila, >= 0.

    Los parametros se leen de request.query_params a mano: si FastAPI los
    validara, una coordenada invalida produciria un 422 en vez del 400
    con baneo que corresponde.

    Retorna:
        StreamingResponse: El PNG con Expires, Last-Modified, Content-Type,
            Cache-Control y, si aplica, Access-Control-Allow-Origin.

    Raises:
        InvalidTileRequest (400), ClientBanned (400), TooManyRequests (429),
        AccessDenied (403), UpstreamFetchError (500), TileUnavailable (500).
        Todas se convierten en respuestas de texto plano en main.py.
    """

    # --- Paso 1: Validar coordenadas ---
    try:
        key = parse_tile_key(request.query_params)
    except InvalidTileRequest:
        identity = limiter.ban_request(request)
        log.warning("Invalid tile coordinates %s from client %s", dict(request.query_params), identity)
        raise

    # --- Paso 2: Limitador ---
    limiter.admit_request(request)

    # --- Pasos 3 y 4: Control de acceso y resolucion del tile ---
    tile = tile_cache.serve(
        key,
        origin=request.headers.get("origin"),
        referer=request.headers.get("referer"),
    )

    # --- Paso 5: Responder ---
    # El archivo se abre aqui y no dentro del generador: si desaparecio
    # entre la resolucion y la respuesta, todavia podemos contestar 500.
    try:
        fh = tile.path.open("rb")
    except OSError as e:
        log.warning("Tile file %s vanished before responding: %s", tile.path, e)
        raise TileUnavailable(headers=tile_cache.cors_headers(request.headers.get("origin"))) from e

    # Siempre el tile completo con 200: sin rangos (206) ni ETag.
    return StreamingResponse(
        read_chunks(fh),
        status_code=tile.status,
        media_type="image/png",
        headers=tile.headers,
    )


def read_chunks(fh):
    """Lee el archivo abierto por bloques y lo cierra al terminar."""
    with fh:
        yield from iter(lambda: fh.read(CHUNK_SIZE), b"")
