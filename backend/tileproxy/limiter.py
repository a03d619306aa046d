"""
Modulo de limitacion de tasa de peticiones (Rate Limiting).

Este modulo crea el limitador global del proxy y expone las dos operaciones
que usa la ruta de tiles:

- admit_request(request): cuenta la peticion del cliente y lanza
  TooManyRequests (429) o ClientBanned (400) si no debe continuar.
- ban_request(request): banea al cliente de inmediato.

Relacion con SlowAPI
--------------------
El conteo y los baneos escalonados viven en services/throttle.py. De
SlowAPI usamos get_remote_address para la direccion de la conexion directa
(ver services/identity.py).

Arquitectura: Patron Singleton implicito
-----------------------------------------
Una sola instancia de ClientThrottle, compartida por todas las peticiones
del proceso. En tests se reemplaza con patch("tileproxy.limiter.throttle").
"""

from starlette.requests import Request

# client_identity convierte la peticion en la clave del limitador: el md5
# de la IP del cliente (buscada en CF-Connecting-IP, Client-IP,
# X-Forwarded-For y la conexion directa, en ese orden).
from tileproxy.services.identity import client_identity

# ClientThrottle lleva, por cliente, el conteo de peticiones en la ventana
# actual y las violaciones acumuladas que terminan en un baneo.
from tileproxy.services.throttle import ClientThrottle

# Instancia global del limitador. Sus parametros (ventana, limite de
# peticiones, violaciones antes del baneo, duracion del baneo) salen de
# settings.
throttle = ClientThrottle()


def admit_request(request: Request) -> str:
    """
    Admite la peticion o lanza el rechazo del limitador.

    Retorna:
        str: La identidad del cliente.
    """
    identity = client_identity(request)
    decision = throttle.admit(identity)
    if not decision.allowed:
        raise decision.error
    return identity


def ban_request(request: Request) -> str:
    """Banea al cliente que hizo `request`. Retorna su identidad."""
    identity = client_identity(request)
    throttle.force_ban(identity)
    return identity
