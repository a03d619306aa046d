"""
Identificacion del cliente a partir de su direccion IP.

El limitador necesita una clave estable por cliente. La obtenemos de la IP
de origen, buscandola en este orden:

    1. CF-Connecting-IP   (Cloudflare)
    2. Client-IP
    3. X-Forwarded-For    (se toma el ULTIMO elemento de la cadena)
    4. La direccion de la conexion directa

Se usa la primera fuente que contenga una IPv4 o IPv6 sintacticamente
valida. La clave final es el hash md5 de esa IP.

Nota sobre X-Forwarded-For: el ultimo elemento es el salto mas cercano a
este proxy. No se verifica contra una lista de proxies conocidos, asi que
una cadena falsificada puede atribuir mal la identidad.

Si ninguna fuente trae una IP valida, todos esos clientes comparten la
clave ANONYMOUS_IDENTITY (y por lo tanto un unico limitador global).
"""

# hashlib: la identidad es el md5 de la IP, no la IP en claro.
import hashlib

# ipaddress valida que un texto sea una IPv4 o IPv6 real. Un header como
# "X-Forwarded-For: unknown" no debe convertirse en identidad.
import ipaddress

# get_remote_address (de SlowAPI) extrae la direccion de la conexion
# directa del objeto Request, la misma clave que SlowAPI usa por defecto.
from slowapi.util import get_remote_address
from starlette.requests import Request

ANONYMOUS_IDENTITY = "anonymous"

# Headers en orden de prioridad. Los nombres HTTP no distinguen
# mayusculas, y los headers de Starlette tampoco.
FORWARDED_HEADERS = ("cf-connecting-ip", "client-ip", "x-forwarded-for")


def is_valid_ip(value: str) -> bool:
    """Retorna True si `value` es una IPv4 o IPv6 literal."""
    try:
        ipaddress.ip_address(value)
    except ValueError:
        return False
    return True


def client_ip(headers, remote_addr: str | None) -> str | None:
    """
    Busca la IP del cliente en los headers y en la conexion directa.

    Parametros:
        headers: Mapeo de headers HTTP (por ejemplo request.headers).
        remote_addr (str | None): Direccion de la conexion directa.

    Retorna:
        str | None: La primera IP valida encontrada, o None.
    """
    for name in FORWARDED_HEADERS:
        value = headers.get(name)
        if not value:
            continue
        if name == "x-forwarded-for":
            value = value.split(",")[-1]
        value = value.strip()
        if is_valid_ip(value):
            return value

    if remote_addr and is_valid_ip(remote_addr.strip()):
        return remote_addr.strip()
    return None


def identity_for_ip(ip: str | None) -> str:
    """Convierte una IP (o su ausencia) en la clave del limitador."""
    if ip is None:
        return ANONYMOUS_IDENTITY
    return hashlib.md5(ip.encode("ascii")).hexdigest()


def client_identity(request: Request) -> str:
    """
    Clave del limitador para una peticion de FastAPI/Starlette.

    get_remote_address (de SlowAPI) nos da la direccion de la conexion
    directa, la misma que SlowAPI usaria como clave por defecto. Solo se
    consulta si el servidor conoce la conexion: sin `request.client`,
    get_remote_address inventaria "127.0.0.1" y nunca llegariamos a la
    identidad anonima.
    """
    remote_addr = get_remote_address(request) if request.client else None
    return identity_for_ip(client_ip(request.headers, remote_addr))
