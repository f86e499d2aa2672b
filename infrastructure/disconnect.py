import select
import socket
import threading
from typing import Any, Mapping, Optional

from infrastructure.cancellation import CancelToken
from infrastructure.logger import get_logger

logger = get_logger(__name__)

# keys under which WSGI servers expose the client connection
SOCKET_ENVIRON_KEYS = ("werkzeug.socket", "gunicorn.socket")


def client_socket(environ: Mapping[str, Any]) -> Optional[socket.socket]:
    for key in SOCKET_ENVIRON_KEYS:
        sock = environ.get(key)
        if sock is not None:
            return sock
    return None


class ClientDisconnectWatcher:
    """
    Cancels a request's token when its client hangs up.

    Polls the client connection on a background thread. Must be started only
    after the request body has been read: from then on the client has
    nothing left to send, so a readable socket that peeks zero bytes means
    the peer closed. Readable data (a pipelined request) ends the watch
    without cancelling.
    """

    def __init__(self, sock: socket.socket, token: CancelToken, interval: float = 0.1):
        self.sock = sock
        self.token = token
        self.interval = interval
        self._stopped = threading.Event()
        self._thread = threading.Thread(target=self._watch, daemon=True, name="client-disconnect")

    def start(self) -> "ClientDisconnectWatcher":
        self._thread.start()
        return self

    def stop(self):
        self._stopped.set()

    def _watch(self):
        while not self._stopped.is_set() and not self.token.cancelled:
            try:
                if self.sock.fileno() < 0:
                    return
                readable, _, _ = select.select([self.sock], [], [], self.interval)
                if not readable:
                    continue
                peeked = self.sock.recv(1, socket.MSG_PEEK)
            except (OSError, ValueError) as e:
                # closed under us, or a socket type that cannot peek (TLS)
                logger.debug("Stopped watching client connection: %s", e)
                return
            if peeked:
                return
            if self._stopped.is_set():
                return
            logger.info("Client closed the connection, cancelling upstream call")
            self.token.cancel()
            return


def watch_client(environ: Mapping[str, Any], token: CancelToken) -> Optional[ClientDisconnectWatcher]:
    """
    Starts a watcher for the connection behind `environ`, if the server
    exposes one. The Flask test client and servers without a socket key get
    None and no disconnect detection.
    """
    sock = client_socket(environ)
    if sock is None:
        return None
    return ClientDisconnectWatcher(sock, token).start()
