"""
Limitador de peticiones por cliente con baneos escalonados.

Cada cliente (identificado por el hash de su IP, ver identity.py) tiene una
ClientSession con:

    window_start   inicio de la ventana de conteo actual
    hit_count      peticiones contadas en esa ventana
    ban_count      violaciones acumuladas (maximo max_ban_count)
    banned_until   instante en que termina el baneo (0 = sin baneo)
    state          NORMAL o BANNED

Maquina de estados:

    NORMAL --(ban_count llega a max_ban_count)--> BANNED(until)
    NORMAL --(coordenadas invalidas, force_ban)--> BANNED(until)
    BANNED --(now >= banned_until)--> NORMAL  (ventana reiniciada, ban_count se conserva)

Cada peticion por encima de max_requests dentro de la ventana es una
violacion: recibe 429 y suma uno a ban_count. Cuando ban_count alcanza
max_ban_count el cliente queda baneado ban_duration segundos; la peticion
que dispara el baneo sigue recibiendo 429, las siguientes reciben 400.

No hay locks: dos peticiones simultaneas del mismo cliente pueden perder
una actualizacion del contador. Es un limitador aproximado.
"""

import enum
import logging
import time
from dataclasses import dataclass
from typing import Callable

from tileproxy.config import settings
from tileproxy.errors import ClientBanned, TileProxyError, TooManyRequests

log = logging.getLogger(__name__)


class SessionState(enum.Enum):
    NORMAL = "normal"
    BANNED = "banned"


@dataclass
class ClientSession:
    """Estado del limitador para un cliente."""

    window_start: float
    hit_count: int = 0
    ban_count: int = 0
    banned_until: float = 0
    state: SessionState = SessionState.NORMAL
    last_seen: float = 0

    def is_banned(self, now: float) -> bool:
        return self.state is SessionState.BANNED and self.banned_until > now


class SessionStore:
    """
    Almacen de sesiones en memoria: identidad -> ClientSession.

    Las sesiones se crean la primera vez que se ve una identidad. Si se
    pasa `idle_timeout`, las sesiones sin peticiones durante mas de ese
    tiempo y sin ninguna violacion registrada se eliminan (como el
    recolector de sesiones de un servidor web). Las sesiones con
    violaciones se conservan: su ban_count no debe olvidarse. La limpieza
    recorre el almacen como mucho una vez cada `idle_timeout` segundos.

    Parametros:
        idle_timeout (float | None): Segundos de inactividad tras los que
            una sesion puede eliminarse. None = nunca se eliminan.
    """

    def __init__(self, idle_timeout: float | None = None):
        self._sessions: dict[str, ClientSession] = {}
        self.idle_timeout = idle_timeout
        self._last_prune: float | None = None

    def get_or_create(self, identity: str, now: float) -> ClientSession:
        self._maybe_prune(now)
        session = self._sessions.get(identity)
        if session is None:
            session = ClientSession(window_start=now)
            self._sessions[identity] = session
        session.last_seen = now
        return session

    def prune(self, now: float) -> int:
        """
        Elimina las sesiones inactivas que nunca violaron el limite.

        Retorna:
            int: Numero de sesiones eliminadas.
        """
        if self.idle_timeout is None:
            return 0
        removed = 0
        for identity, session in list(self._sessions.items()):
            if now - session.last_seen > self.idle_timeout and session.ban_count == 0:
                self._sessions.pop(identity, None)
                removed += 1
        self._last_prune = now
        return removed

    def _maybe_prune(self, now: float) -> None:
        if self.idle_timeout is None:
            return
        if self._last_prune is None:
            self._last_prune = now
        elif now - self._last_prune >= self.idle_timeout:
            removed = self.prune(now)
            if removed:
                log.debug("Pruned %d idle client sessions", removed)

    def get(self, identity: str) -> ClientSession | None:
        return self._sessions.get(identity)

    def __len__(self) -> int:
        return len(self._sessions)


@dataclass
class Decision:
    """
    Resultado de ClientThrottle.admit().

    Atributos:
        allowed (bool): True si la peticion puede continuar.
        error (TileProxyError | None): El rechazo, si allowed es False.
    """

    allowed: bool
    error: TileProxyError | None = None

    @classmethod
    def allow(cls) -> "Decision":
        return cls(allowed=True)

    @classmethod
    def reject(cls, error: TileProxyError) -> "Decision":
        return cls(allowed=False, error=error)

    @property
    def status_code(self) -> int:
        return self.error.status_code if self.error else 200

    @property
    def message(self) -> str:
        return self.error.message if self.error else ""


class ClientThrottle:
    """
    Decide si se admite la peticion de un cliente.

    Parametros del constructor (por defecto, los de settings):
        session_lifetime: duracion de la ventana de conteo (segundos).
        max_requests: peticiones permitidas por ventana.
        max_ban_count: violaciones que disparan el baneo completo.
        ban_duration: duracion del baneo completo (segundos).
        store: SessionStore a usar; uno nuevo si no se pasa.
        clock: funcion que retorna el instante actual (time.time).
            Los tests inyectan un reloj falso.
    """

    def __init__(
        self,
        session_lifetime: int | None = None,
        max_requests: int | None = None,
        max_ban_count: int | None = None,
        ban_duration: int | None = None,
        store: SessionStore | None = None,
        clock: Callable[[], float] = time.time,
    ):
        self.session_lifetime = (
            settings.THROTTLE_SESSION_LIFETIME if session_lifetime is None else session_lifetime
        )
        self.max_requests = settings.THROTTLE_MAX_REQUESTS if max_requests is None else max_requests
        self.max_ban_count = (
            settings.THROTTLE_MAX_BAN_COUNT if max_ban_count is None else max_ban_count
        )
        self.ban_duration = settings.THROTTLE_BAN_DURATION if ban_duration is None else ban_duration
        self.store = store if store is not None else SessionStore(idle_timeout=self.session_lifetime)
        self.clock = clock

    def admit(self, identity: str) -> Decision:
        """
        Cuenta la peticion de `identity` y decide si se admite.

        Retorna:
            Decision: allow(), o reject() con ClientBanned (400) si hay un
            baneo activo, o con TooManyRequests (429) si esta peticion
            excede el limite de la ventana.
        """
        now = self.clock()
        session = self.store.get_or_create(identity, now)

        if session.is_banned(now):
            return Decision.reject(ClientBanned())

        if session.state is SessionState.BANNED:
            # El baneo expiro: nueva ventana. ban_count se conserva en
            # max_ban_count, asi que nuevas violaciones solo reciben 429.
            log.info("Ban expired for client %s", identity)
            session.state = SessionState.NORMAL
            session.banned_until = 0
            session.window_start = now
            session.hit_count = 0

        if now - session.window_start > self.session_lifetime:
            session.window_start = now
            session.hit_count = 1
        else:
            session.hit_count += 1

        if session.hit_count > self.max_requests:
            return self.on_violation(identity, session, now)

        return Decision.allow()

    def on_violation(self, identity: str, session: ClientSession, now: float) -> Decision:
        """Escala una violacion del limite; siempre rechaza con 429."""
        if session.ban_count < self.max_ban_count:
            session.ban_count += 1
            if session.ban_count >= self.max_ban_count:
                self._ban(session, now)
                log.warning(
                    "Client %s banned for %ss after %d violations",
                    identity,
                    self.ban_duration,
                    session.ban_count,
                )
        log.warning("Client %s exceeded %d requests per %ss", identity, self.max_requests, self.session_lifetime)
        return Decision.reject(TooManyRequests())

    def force_ban(self, identity: str) -> None:
        """Banea a `identity` de inmediato, sin pasar por las violaciones."""
        now = self.clock()
        session = self.store.get_or_create(identity, now)
        session.ban_count = self.max_ban_count
        self._ban(session, now)
        log.warning("Client %s banned for %ss after an invalid request", identity, self.ban_duration)

    def _ban(self, session: ClientSession, now: float) -> None:
        session.banned_until = now + self.ban_duration
        session.state = SessionState.BANNED
