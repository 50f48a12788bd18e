"""
Client WebSocket du lecteur RFID (ESP32).

Le lecteur pousse un message texte par badge présenté : l'UID brut de la carte,
sans enveloppe. Les messages sont traités un par un, dans l'ordre d'arrivée.

Signaux de cycle de vie transmis à l'application : connected, disconnected, error.
La reconnexion n'est pas l'affaire du moteur de pointage : run() attend un délai
fixe puis se reconnecte (RFID_RECONNECT_DELAY_SECONDS, 0 = une seule connexion).
"""

import asyncio
import logging
from typing import Awaitable, Callable, Optional, Union

import websockets
from websockets.exceptions import ConnectionClosed, WebSocketException

from pointage.schemas.scanner import CONNECTED, DISCONNECTED, ERROR

logger = logging.getLogger(__name__)


def decode_badge(message: Union[str, bytes]) -> Optional[str]:
    """UID contenu dans un message du lecteur, ou None si le message est vide."""
    if isinstance(message, bytes):
        message = message.decode("utf-8", errors="replace")
    uid = message.strip()
    return uid or None


class BadgeReaderClient:
    def __init__(
        self,
        url: str,
        on_badge: Callable[[str], Awaitable[object]],
        on_connection_change: Callable[[str], None],
        reconnect_delay: float = 5.0,
        connect=websockets.connect,
    ):
        self.url = url
        self._on_badge = on_badge
        self._on_connection_change = on_connection_change
        self._reconnect_delay = reconnect_delay
        self._connect = connect

    async def run_once(self) -> str:
        """
        Une durée de vie de connexion : ouvre, consomme les badges jusqu'à la fermeture.
        Retourne l'état final (disconnected ou error).
        """
        try:
            async with self._connect(self.url) as ws:
                self._on_connection_change(CONNECTED)
                logger.info("Connecté au lecteur RFID %s", self.url)
                async for message in ws:
                    uid = decode_badge(message)
                    if uid is None:
                        logger.debug("Message vide ignoré")
                        continue
                    await self._on_badge(uid)
        except ConnectionClosed as exc:
            logger.warning("Connexion au lecteur RFID fermée : %s", exc)
            state = DISCONNECTED
        except (OSError, asyncio.TimeoutError, WebSocketException) as exc:
            logger.warning("Erreur de connexion au lecteur RFID %s : %s", self.url, exc)
            state = ERROR
        else:
            state = DISCONNECTED

        self._on_connection_change(state)
        return state

    async def run(self) -> None:
        """Boucle de connexion ; se termine à l'annulation de la tâche ou sans délai de reconnexion."""
        while True:
            await self.run_once()
            if self._reconnect_delay <= 0:
                return
            logger.info("Reconnexion au lecteur RFID dans %.1f s", self._reconnect_delay)
            await asyncio.sleep(self._reconnect_delay)
