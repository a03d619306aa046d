"""
Modulo de configuracion centralizada del proxy de tiles.

Todas las constantes que el proxy necesita viven aqui: donde se guardan los
tiles, de que servidor se descargan, que hosts son de confianza y los
parametros del limitador de peticiones. Cada valor se lee de una variable de
entorno, con un valor por defecto razonable para desarrollo.

Patron de diseno utilizado: **Singleton implicito**
La instancia `settings` se crea UNA sola vez al importar este modulo.
Cada archivo que haga `from tileproxy.config import settings` recibe la
MISMA instancia.
"""

# os es el modulo de la biblioteca estandar para interactuar con el sistema
# operativo. Lo usamos aqui para leer variables de entorno.
import os


def _env_list(name: str, default: str = "") -> list[str]:
    """
    Lee una variable de entorno separada por comas como lista.

    Ejemplo:
        TRUSTED_HOSTS="maps.example.com, www.example.com"
        -> ["maps.example.com", "www.example.com"]
    """
    raw = os.getenv(name, default)
    return [item.strip().lower() for item in raw.split(",") if item.strip()]


class Settings:
    """
    Clase que encapsula toda la configuracion del proxy.

    En tests podemos crear una instancia nueva o sobrescribir atributos
    con `patch.object(settings, "TILE_TTL", 300)`.
    """

    # ---------- Almacenamiento de tiles ----------

    # Directorio raiz donde se guardan los tiles descargados.
    # La estructura en disco es: {TILE_STORAGE_ROOT}/{z}/{x}/{y}.png
    # Una ruta relativa se resuelve desde el directorio donde se lanza el
    # servidor (por ejemplo backend/tiles).
    TILE_STORAGE_ROOT: str = os.getenv("TILE_STORAGE_ROOT", "tiles")

    # Tiempo de vida (TTL) de un tile en cache, en segundos.
    # Un tile cuyo mtime + TTL ya paso se vuelve a descargar.
    # El mismo valor se envia al navegador en Cache-Control: max-age,
    # asi que el navegador tampoco vuelve a pedirlo antes de tiempo.
    # 86400 segundos = 24 horas.
    TILE_TTL: int = int(os.getenv("TILE_TTL", "86400"))

    # ---------- Servidor upstream ----------

    # Plantilla de URL del servidor de tiles. Los placeholders {z}, {x}
    # y {y} se reemplazan por las coordenadas pedidas.
    # Ejemplo: z=5, x=10, y=12 -> https://tile.openstreetmap.org/5/10/12.png
    TILE_SERVER_URL: str = os.getenv(
        "TILE_SERVER_URL", "https://tile.openstreetmap.org/{z}/{x}/{y}.png"
    )

    # Nombre del operador. Se envia en el User-Agent para que el
    # servidor upstream sepa a quien contactar.
    # Los servidores publicos (como el de OpenStreetMap) exigen un
    # User-Agent que identifique a la aplicacion; sin el pueden bloquear
    # las descargas.
    TILE_OPERATOR: str = os.getenv("TILE_OPERATOR", "unknown")

    # Timeout de la descarga upstream, en segundos.
    # Mientras dura la descarga la peticion del cliente queda esperando,
    # asi que este valor es tambien el peor tiempo de respuesta del proxy.
    FETCH_TIMEOUT: float = float(os.getenv("FETCH_TIMEOUT", "30"))

    # ---------- Control de acceso ----------

    # Lista blanca de hosts. Se usa para CORS (Origin) y para el
    # chequeo de Referer.
    #   - Origin de un host de la lista: se devuelve en
    #     Access-Control-Allow-Origin.
    #   - Referer de un host fuera de la lista: 403.
    # Se compara solo el host, sin esquema ni puerto.
    TRUSTED_HOSTS: list[str] = _env_list("TRUSTED_HOSTS", "localhost")

    # ---------- Limitador por cliente ----------
    #
    # Cada cliente (identificado por su IP) tiene una ventana de
    # THROTTLE_SESSION_LIFETIME segundos en la que puede hacer hasta
    # THROTTLE_MAX_REQUESTS peticiones. Cada peticion por encima del
    # limite es una "violacion" (429). Al acumular THROTTLE_MAX_BAN_COUNT
    # violaciones el cliente queda baneado THROTTLE_BAN_DURATION segundos
    # (400 en cada peticion).

    # Ventana de conteo, en segundos. Tambien es el tiempo de inactividad
    # tras el cual se olvida a un cliente sin violaciones.
    THROTTLE_SESSION_LIFETIME: int = int(os.getenv("THROTTLE_SESSION_LIFETIME", "60"))

    # Peticiones permitidas por ventana.
    # Un visor de mapas pide decenas de tiles al mover el mapa, asi que el
    # limite es generoso: 800 por minuto.
    THROTTLE_MAX_REQUESTS: int = int(os.getenv("THROTTLE_MAX_REQUESTS", "800"))

    # Violaciones acumuladas antes del baneo completo.
    # El contador no se reinicia al vencer el baneo: un cliente que ya fue
    # baneado recibe 429 en sus nuevas violaciones, pero no otro baneo.
    THROTTLE_MAX_BAN_COUNT: int = int(os.getenv("THROTTLE_MAX_BAN_COUNT", "5"))

    # Duracion del baneo completo: 6 horas.
    # 6 h * 60 min/h * 60 s/min = 21600 segundos
    THROTTLE_BAN_DURATION: int = int(os.getenv("THROTTLE_BAN_DURATION", "21600"))

    # ---------- Logging ----------

    # Nivel minimo de los mensajes que se escriben: DEBUG, INFO, WARNING,
    # ERROR. En INFO se registran descargas, rechazos y baneos.
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")


# Instancia unica de configuracion (patron Singleton implicito).
settings = Settings()
