"""
Punto de entrada principal del proxy de tiles (FastAPI).

Aqui se:
1. Configura el logging.
2. Crea la instancia de la aplicacion FastAPI.
3. Registra el handler que convierte TileProxyError en respuestas HTTP.
4. Registra las rutas y el health check.

Arquitectura:
    main.py (punto de entrada)
        |
        +-- routes/tiles.py        (GET /tile)
        |
        +-- services/
        |    +-- validator.py      (coordenadas, hosts de confianza)
        |    +-- identity.py       (IP del cliente -> identidad)
        |    +-- throttle.py       (limitador con baneos escalonados)
        |    +-- tile_cache.py     (frescura, CORS, Referer)
        |    +-- tile_store.py     (disco + descarga upstream)
        |
        +-- models/schemas.py      (TileKey, HealthResponse)
        +-- config.py              (configuracion centralizada)
        +-- limiter.py             (limitador global)
        +-- errors.py              (tipos de error)

CORS no se configura con CORSMiddleware: el header
Access-Control-Allow-Origin depende de la lista de hosts de confianza y lo
agrega TileCache en cada respuesta.

Ejecucion local:
    cd backend && uvicorn tileproxy.main:app --reload
"""

# logging: modulo estandar de Python para registrar eventos. Cada modulo
# pide su propio logger con logging.getLogger(__name__).
import logging

# uvicorn: servidor ASGI que ejecuta la aplicacion. Solo se usa al correr
# este archivo directamente (python -m tileproxy.main).
import uvicorn

# FastAPI: el framework web con el que armamos el proxy.
from fastapi import FastAPI

# PlainTextResponse: los errores del proxy se responden como texto plano
# ("Too many requests", "Access denied", ...), no como JSON.
from fastapi.responses import PlainTextResponse
from starlette.requests import Request

# Configuracion centralizada (nivel de log, entre otras cosas)
from tileproxy.config import settings

# Clase base de todos los errores que el proxy convierte en respuestas HTTP
from tileproxy.errors import TileProxyError
from tileproxy.logging_setup import setup_logging
from tileproxy.models.schemas import HealthResponse

# El router con el endpoint GET /tile. Las rutas viven en su propio modulo
# para que main.py solo se ocupe de armar la aplicacion.
from tileproxy.routes.tiles import router as tiles_router

setup_logging(settings.LOG_LEVEL)
log = logging.getLogger(__name__)

app = FastAPI(title="Tile Proxy")


async def tile_proxy_error_handler(request: Request, exc: TileProxyError) -> PlainTextResponse:
    """
    Convierte cualquier TileProxyError en una respuesta de texto plano.

    El codigo HTTP, el mensaje y los headers extra (por ejemplo CORS)
    vienen de la propia excepcion.
    """
    if exc.status_code >= 500:
        log.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    else:
        log.info("%s %s rejected with %d: %s", request.method, request.url.path, exc.status_code, exc.message)
    return PlainTextResponse(exc.message, status_code=exc.status_code, headers=exc.headers)


app.add_exception_handler(TileProxyError, tile_proxy_error_handler)


@app.get("/api/health", response_model=HealthResponse)
async def health_check():
    """
    Endpoint de verificacion de salud del servidor.

    Retorna:
        HealthResponse: {"status": "ok"} si el servidor esta funcionando.
    """
    return HealthResponse(status="ok")


app.include_router(tiles_router)


if __name__ == "__main__":
    uvicorn.run(app, host="0.0.0.0", port=8000)
