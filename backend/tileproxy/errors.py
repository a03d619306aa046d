"""
Errores del proxy de tiles.

Cada tipo de error conoce su codigo HTTP y el mensaje en texto plano que
recibe el cliente. Las rutas y servicios lanzan estas excepciones, y un
unico handler registrado en main.py las convierte en respuestas HTTP
(igual que hacemos con RateLimitExceeded de SlowAPI en otros proyectos).

    Error                 Codigo   Cuando
    --------------------  ------   ------------------------------------------
    InvalidTileRequest    400      coordenadas z/x/y ausentes o fuera de rango
    AccessDenied          403      Referer de un host que no es de confianza
    TooManyRequests       429      el cliente excedio su limite en la ventana
    ClientBanned          400      el cliente esta baneado
    UpstreamFetchError    500      fallo la descarga del servidor upstream
    TileUnavailable       500      el tile no existe tras intentar descargarlo
"""


class TileProxyError(Exception):
    """
    Clase base de todos los errores del proxy.

    Atributos:
        status_code (int): Codigo HTTP de la respuesta.
        message (str): Cuerpo de la respuesta (texto plano).
        headers (dict): Headers extra que deben acompanar la respuesta
            de error, por ejemplo Access-Control-Allow-Origin.
    """

    status_code: int = 500
    message: str = "Internal Server Error"

    def __init__(self, message: str | None = None, headers: dict | None = None):
        if message is not None:
            self.message = message
        self.headers = dict(headers or {})
        super().__init__(self.message)


class InvalidTileRequest(TileProxyError):
    status_code = 400
    message = "Invalid parameters"


class AccessDenied(TileProxyError):
    status_code = 403
    message = "Access denied"


class TooManyRequests(TileProxyError):
    status_code = 429
    message = "Too many requests"


class ClientBanned(TileProxyError):
    status_code = 400
    message = "You have been banned. Please try again later."


class UpstreamFetchError(TileProxyError):
    status_code = 500
    message = "Error providing tile"


class TileUnavailable(TileProxyError):
    status_code = 500
    message = "Internal Server Error"
