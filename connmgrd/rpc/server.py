"""
connmgrd RPC Server

Unix socket server for connctl and other local clients.

Protocol:
- JSON-RPC 2.0 over Unix domain socket, one JSON object per line
- One request per connection
- Subscribable methods keep the connection open when the request carries
  "subscribe": true; later posts arrive as JSON-RPC notifications
- Authentication via Unix permissions

Security:
- Socket only accessible to owner (0600)
- No network exposure
"""

import json
import logging
import os
import socket
import stat
import threading
from pathlib import Path
from typing import Any, Callable, Dict, Iterator, List, Optional, Set, Tuple


logger = logging.getLogger("connmgrd.rpc")

# Default socket path
DEFAULT_SOCKET_PATH = Path("/run/connmgr/connectionmanager.sock")

# Maximum request size (64KB)
MAX_REQUEST_SIZE = 65536

# Socket timeout (seconds)
SOCKET_TIMEOUT = 30

# Longest a reply or post may block on a slow peer before it is dropped (seconds)
SEND_TIMEOUT = 2.0


class RPCError(Exception):
    """RPC error with code and message."""

    def __init__(self, code: int, message: str, data: Any = None):
        super().__init__(message)
        self.code = code
        self.message = message
        self.data = data

    def to_dict(self) -> dict:
        result = {"code": self.code, "message": self.message}
        if self.data is not None:
            result["data"] = self.data
        return result


# Standard JSON-RPC error codes
class RPCErrorCode:
    PARSE_ERROR = -32700
    INVALID_REQUEST = -32600
    METHOD_NOT_FOUND = -32601
    INVALID_PARAMS = -32602
    INTERNAL_ERROR = -32603


# Handler type
RPCHandler = Callable[[dict], Any]

# Executor: (callback, *args) -> callback result
Executor = Callable[..., Any]


def _call_inline(callback: Callable[..., Any], *args: Any) -> Any:
    return callback(*args)


def _encode(message: dict) -> bytes:
    return json.dumps(message).encode() + b"\n"


class RPCServer:
    """
    JSON-RPC server over Unix socket with subscriptions.

    Usage:
        server = RPCServer(socket_path, executor=loop.run_sync)

        # Register handlers
        server.register("getstatus", handle_status, subscribable=True)
        server.register_alias("getStatus", "getstatus")
        server.register("setstate", handle_setstate)

        server.start()

        # Push to every "getstatus" subscriber
        server.post("getstatus", payload)

        server.stop()
    """

    def __init__(
        self,
        socket_path: Optional[Path] = None,
        executor: Optional[Executor] = None,
        name: str = "rpc-server",
        send_timeout: float = SEND_TIMEOUT,
    ):
        """
        Initialize RPC server.

        Args:
            socket_path: Path for Unix socket
            executor: Runs request handling (default: inline on the
                connection thread)
            name: Thread name prefix, also used in log messages
            send_timeout: Write timeout for replies and posts
        """
        self._socket_path = Path(socket_path or DEFAULT_SOCKET_PATH)
        self._executor = executor or _call_inline
        self._name = name
        self._send_timeout = send_timeout
        self._handlers: Dict[str, RPCHandler] = {}
        self._aliases: Dict[str, str] = {}
        self._subscribable: Set[str] = set()
        self._subscribers: Dict[str, List[socket.socket]] = {}
        self._socket: Optional[socket.socket] = None
        self._running = False
        self._thread: Optional[threading.Thread] = None
        self._lock = threading.Lock()
        self._write_locks: Dict[socket.socket, threading.Lock] = {}

    @property
    def socket_path(self) -> Path:
        return self._socket_path

    def register(self, method: str, handler: RPCHandler, subscribable: bool = False) -> None:
        """
        Register an RPC method handler.

        Args:
            method: Method name
            handler: Handler function (receives params dict, returns result)
            subscribable: Whether callers may subscribe to posts of this method
        """
        self._handlers[method] = handler
        if subscribable:
            self._subscribable.add(method)

    def register_alias(self, alias: str, method: str) -> None:
        """
        Register another name for a method.

        The alias shares the handler and the subscriber list.

        Args:
            alias: Additional method name
            method: Registered method it stands for
        """
        if method not in self._handlers:
            raise KeyError(f"Method not registered: {method}")
        self._aliases[alias] = method

    def _resolve(self, method: str) -> str:
        return self._aliases.get(method, method)

    # === Lifecycle ===

    def start(self) -> None:
        """Start the RPC server."""
        if self._running:
            return

        # Ensure directory exists
        self._socket_path.parent.mkdir(parents=True, exist_ok=True)

        # Remove existing socket
        if self._socket_path.exists():
            self._socket_path.unlink()

        # Create socket
        self._socket = socket.socket(socket.AF_UNIX, socket.SOCK_STREAM)
        self._socket.bind(str(self._socket_path))

        # Set permissions (owner only)
        os.chmod(self._socket_path, stat.S_IRUSR | stat.S_IWUSR)

        # Listen
        self._socket.listen(5)
        self._socket.settimeout(1.0)  # For clean shutdown

        # Start server thread
        self._running = True
        self._thread = threading.Thread(
            target=self._serve_loop,
            daemon=True,
            name=self._name,
        )
        self._thread.start()
        logger.info(f"{self._name} listening on {self._socket_path}")

    def stop(self) -> None:
        """Stop the RPC server and disconnect all subscribers."""
        self._running = False

        if self._thread:
            self._thread.join(timeout=5.0)
            self._thread = None

        if self._socket:
            self._socket.close()
            self._socket = None

        with self._lock:
            connections = [c for conns in self._subscribers.values() for c in conns]
            self._subscribers.clear()
        for conn in connections:
            self._close(conn)

        # Clean up socket file
        if self._socket_path.exists():
            try:
                self._socket_path.unlink()
            except OSError as e:
                logger.warning(f"Could not remove {self._socket_path}: {e}")

    @property
    def is_running(self) -> bool:
        """Check if server is running."""
        return self._running

    # === Subscriptions ===

    def post(self, method: str, payload: dict) -> int:
        """
        Send a notification to every subscriber of a method.

        Subscribers whose connection fails, or stalls past the send
        timeout, are dropped.

        Args:
            method: Method (or alias) subscribers registered on
            payload: Notification params

        Returns:
            Number of subscribers reached
        """
        method = self._resolve(method)
        message = _encode({"jsonrpc": "2.0", "method": method, "params": payload})

        with self._lock:
            subscribers = list(self._subscribers.get(method, ()))

        reached = 0
        for conn in subscribers:
            if self._send(conn, message):
                reached += 1
            else:
                logger.warning(f"{self._name}: dropping {method} subscriber after failed write")
                self._remove_subscriber(conn)
                self._close(conn)
        return reached

    def subscriber_count(self, method: str) -> int:
        """Number of connections subscribed to a method."""
        with self._lock:
            return len(self._subscribers.get(self._resolve(method), ()))

    def _add_subscriber(self, method: str, conn: socket.socket) -> None:
        with self._lock:
            self._subscribers.setdefault(method, []).append(conn)

    def _remove_subscriber(self, conn: socket.socket) -> None:
        with self._lock:
            for conns in self._subscribers.values():
                if conn in conns:
                    conns.remove(conn)

    # === Connection handling ===

    def _serve_loop(self) -> None:
        """Main server loop."""
        while self._running:
            try:
                conn, _ = self._socket.accept()
            except socket.timeout:
                continue
            except OSError as e:
                if self._running:
                    logger.warning(f"{self._name} accept failed: {e}")
                continue

            conn.settimeout(SOCKET_TIMEOUT)
            threading.Thread(
                target=self._handle_connection,
                args=(conn,),
                daemon=True,
                name=f"{self._name}-conn",
            ).start()

    def _handle_connection(self, conn: socket.socket) -> None:
        """Handle a single client connection."""
        keep_open = False
        try:
            try:
                data = self._read_request(conn)
            except RPCError as e:
                self._send(conn, _encode({"jsonrpc": "2.0", "error": e.to_dict(), "id": None}))
                return

            if not data:
                return

            # Bounds reply and post writes, and each read of the disconnect wait
            conn.settimeout(self._send_timeout)

            try:
                keep_open = self._executor(self._respond, conn, data)
            except Exception as e:
                logger.error(f"{self._name} could not dispatch request: {e!r}")
                self._send(conn, _encode({
                    "jsonrpc": "2.0",
                    "error": {"code": RPCErrorCode.INTERNAL_ERROR, "message": str(e) or repr(e)},
                    "id": None,
                }))
                keep_open = False
                return

            if keep_open:
                self._wait_for_disconnect(conn)
        except OSError as e:
            logger.debug(f"{self._name} connection error: {e}")
        finally:
            if keep_open:
                self._remove_subscriber(conn)
            self._close(conn)

    def _read_request(self, conn: socket.socket) -> bytes:
        """Read one newline-terminated request (or until EOF)."""
        data = b""
        while b"\n" not in data:
            chunk = conn.recv(4096)
            if not chunk:
                break
            data += chunk
            if len(data) > MAX_REQUEST_SIZE:
                raise RPCError(RPCErrorCode.INVALID_REQUEST, "Request too large")
        return data.split(b"\n", 1)[0].strip()

    def _wait_for_disconnect(self, conn: socket.socket) -> None:
        """Block until a subscriber closes its end or the server stops; input is ignored."""
        while self._running:
            try:
                if not conn.recv(4096):
                    break
            except socket.timeout:
                continue

    def _respond(self, conn: socket.socket, data: bytes) -> bool:
        """
        Process a request and write the reply.

        Runs through the executor, so replies and posts issued on the same
        thread are written in order.

        Returns:
            True if the connection was subscribed and must stay open
        """
        response, subscribed = self._process_request(data, conn)
        if not self._send(conn, _encode(response)):
            if subscribed:
                self._remove_subscriber(conn)
            return False
        return subscribed

    def _process_request(self, data: bytes, conn: Optional[socket.socket] = None) -> Tuple[dict, bool]:
        """Process a JSON-RPC request. Returns (response, subscribed)."""
        request_id = None
        subscribed = False

        try:
            # Parse JSON
            try:
                request = json.loads(data)
            except (json.JSONDecodeError, UnicodeDecodeError) as e:
                raise RPCError(RPCErrorCode.PARSE_ERROR, f"Parse error: {e}")

            # Validate request
            if not isinstance(request, dict):
                raise RPCError(RPCErrorCode.INVALID_REQUEST, "Request must be object")

            request_id = request.get("id")

            if request.get("jsonrpc") != "2.0":
                raise RPCError(RPCErrorCode.INVALID_REQUEST, "Invalid JSON-RPC version")

            method = request.get("method")
            if not isinstance(method, str):
                raise RPCError(RPCErrorCode.INVALID_REQUEST, "Method must be string")

            params = request.get("params", {})
            if not isinstance(params, (dict, list)):
                raise RPCError(RPCErrorCode.INVALID_PARAMS, "Params must be object or array")

            # Find handler
            method = self._resolve(method)
            handler = self._handlers.get(method)
            if not handler:
                raise RPCError(RPCErrorCode.METHOD_NOT_FOUND, f"Method not found: {method}")

            if isinstance(params, list):
                params = {"_args": params}

            # Subscribe before the handler reads state, so no change is missed
            if (conn is not None and method in self._subscribable
                    and params.get("subscribe") is True):
                self._add_subscriber(method, conn)
                subscribed = True

            result = handler(params)
            if subscribed and isinstance(result, dict):
                result = dict(result, subscribed=True)

            # Build response
            return {
                "jsonrpc": "2.0",
                "result": result,
                "id": request_id,
            }, subscribed

        except RPCError as e:
            return {
                "jsonrpc": "2.0",
                "error": e.to_dict(),
                "id": request_id,
            }, subscribed
        except Exception as e:
            logger.exception(f"{self._name} handler failed")
            return {
                "jsonrpc": "2.0",
                "error": {"code": RPCErrorCode.INTERNAL_ERROR, "message": str(e)},
                "id": request_id,
            }, subscribed

    def _write_lock_for(self, conn: socket.socket) -> threading.Lock:
        with self._lock:
            return self._write_locks.setdefault(conn, threading.Lock())

    def _send(self, conn: socket.socket, message: bytes) -> bool:
        """Write a message; False if the peer is gone or stalled past the send timeout."""
        try:
            with self._write_lock_for(conn):
                conn.sendall(message)
            return True
        except OSError:
            return False

    def _close(self, conn: socket.socket) -> None:
        with self._lock:
            self._write_locks.pop(conn, None)
        try:
            conn.shutdown(socket.SHUT_RDWR)
        except OSError:
            # Already disconnected
            pass
        conn.close()


class RPCClient:
    """
    Simple RPC client for testing and connctl.

    Usage:
        client = RPCClient()
        result = client.call("getstatus", {})

        for payload in client.subscribe("getstatus"):
            print(payload)
    """

    def __init__(self, socket_path: Optional[Path] = None, timeout: Optional[float] = SOCKET_TIMEOUT):
        """Initialize client."""
        self._socket_path = Path(socket_path or DEFAULT_SOCKET_PATH)
        self._timeout = timeout

    def _connect(self, timeout: Optional[float]) -> socket.socket:
        sock = socket.socket(socket.AF_UNIX, socket.SOCK_STREAM)
        sock.settimeout(timeout)
        try:
            sock.connect(str(self._socket_path))
        except OSError:
            sock.close()
            raise
        return sock

    @staticmethod
    def _request(method: str, params: Optional[dict]) -> bytes:
        return _encode({
            "jsonrpc": "2.0",
            "method": method,
            "params": params or {},
            "id": 1,
        })

    @staticmethod
    def _result(response: dict) -> Any:
        if "error" in response:
            error = response["error"]
            raise RPCError(
                error.get("code", -1),
                error.get("message", "Unknown error"),
                error.get("data"),
            )
        return response.get("result")

    def call(self, method: str, params: Optional[dict] = None) -> Any:
        """
        Call an RPC method.

        Args:
            method: Method name
            params: Method parameters

        Returns:
            Method result

        Raises:
            RPCError: If call fails
        """
        sock = self._connect(self._timeout)
        try:
            sock.sendall(self._request(method, params))

            # Read response
            data = b""
            while b"\n" not in data:
                chunk = sock.recv(4096)
                if not chunk:
                    break
                data += chunk

            if not data:
                raise RPCError(RPCErrorCode.INTERNAL_ERROR, "Connection closed without reply")

            return self._result(json.loads(data.split(b"\n", 1)[0]))
        finally:
            sock.close()

    def subscribe(
        self,
        method: str,
        params: Optional[dict] = None,
        timeout: Optional[float] = None,
    ) -> Iterator[Any]:
        """
        Call a method with "subscribe": true and follow its posts.

        The first item is the method's reply; each later item is the params
        of a notification. The generator ends when the server disconnects.

        Args:
            method: Method name
            params: Method parameters
            timeout: Socket timeout while waiting (None = wait forever)

        Raises:
            RPCError: If the initial call fails
        """
        params = dict(params or {}, subscribe=True)
        sock = self._connect(timeout)
        try:
            sock.sendall(self._request(method, params))
            with sock.makefile("rb") as stream:
                first = True
                for line in stream:
                    if not line.strip():
                        continue
                    message = json.loads(line)
                    if first:
                        first = False
                        yield self._result(message)
                    else:
                        yield message.get("params")
        finally:
            sock.close()
