"""
Long-lived MySQL connection per target.

- DSN parsing for the Go driver form and mysql:// URLs
- Connect, read and write timeouts on every connection
- Reconnect-on-ping before each query
- One query at a time per connection
"""
import re
import ssl
import threading
from typing import Any, Callable, Dict, List, Optional
from urllib.parse import parse_qsl, unquote, urlsplit

import pymysql

from config import ConfigError, TargetConfig
from logging_config import get_logger


logger = get_logger(__name__)

DEFAULT_HOST = "127.0.0.1"
DEFAULT_PORT = 3306

_ADDRESS_PATTERN = re.compile(r'^(?P<net>[a-z0-9]*)(?:\((?P<addr>.*)\))?$')
_DURATION_UNITS = (('ms', 0.001), ('s', 1), ('m', 60), ('h', 3600))

# DSN parameters that map onto pymysql keyword arguments
_TIMEOUT_PARAMS = {
    'timeout': 'connect_timeout',
    'readTimeout': 'read_timeout',
    'writeTimeout': 'write_timeout',
}


class DSNError(ConfigError):
    """Raised when a connection string cannot be parsed"""


class TargetConnectionError(Exception):
    """Raised when the initial connection to a target fails"""

    def __init__(self, target_name: str, cause: Exception):
        super().__init__(f"Cannot connect to database {target_name}: {cause}")
        self.target_name = target_name
        self.cause = cause


def parse_duration(value: str) -> float:
    """
    Convert a duration such as '500ms', '30s', '5m' or '2h' into seconds.

    Bare numbers are taken as seconds.
    """
    s = value.strip().lower()
    for unit, factor in _DURATION_UNITS:
        if s.endswith(unit):
            try:
                return float(s[:-len(unit)]) * factor
            except ValueError:
                raise DSNError(f"Invalid numeric value in duration: {value}")
    try:
        return float(s)
    except ValueError:
        raise DSNError(f"Unrecognized duration format: {value}")


def _split_host_port(address: str) -> Dict[str, Any]:
    if not address:
        return {"host": DEFAULT_HOST, "port": DEFAULT_PORT}

    if address.startswith('['):
        # [ipv6]:port
        host, _, rest = address[1:].partition(']')
        port = rest[1:] if rest.startswith(':') else ''
    else:
        host, sep, port = address.rpartition(':')
        if not sep:
            host, port = address, ''

    try:
        port_num = int(port) if port else DEFAULT_PORT
    except ValueError:
        raise DSNError(f"Invalid port in address: {address}")

    return {"host": host or DEFAULT_HOST, "port": port_num}


def _tls_context(mode: str) -> Optional[ssl.SSLContext]:
    """
    SSL context for a driver-style tls value.

    true verifies the certificate and host name against the system CAs,
    skip-verify encrypts without verification, false disables TLS.
    Named TLS configurations and preferred mode cannot be expressed here.
    """
    mode = mode.strip().lower()
    if mode in ('true', '1'):
        return ssl.create_default_context()
    if mode == 'skip-verify':
        ctx = ssl.create_default_context()
        ctx.check_hostname = False
        ctx.verify_mode = ssl.CERT_NONE
        return ctx
    if mode in ('false', '0'):
        return None
    raise DSNError(f"Unsupported tls mode: {mode}")


def _apply_tls(params: Dict[str, Any], value: str) -> None:
    ctx = _tls_context(value)
    if ctx is None:
        params.pop("ssl", None)
        params["ssl_disabled"] = True
    else:
        params.pop("ssl_disabled", None)
        params["ssl"] = ctx


def _apply_params(params: Dict[str, Any], query: str) -> None:
    for key, value in parse_qsl(query, keep_blank_values=True):
        if key in _TIMEOUT_PARAMS:
            params[_TIMEOUT_PARAMS[key]] = parse_duration(value)
        elif key == 'tls':
            _apply_tls(params, value)
        elif key == 'charset':
            # The Go driver accepts a comma-separated preference list
            params['charset'] = value.split(',')[0]
        else:
            logger.warning("Ignoring unsupported DSN parameter", parameter=key, event_type="config_warning")


def _parse_url_dsn(dsn: str) -> Dict[str, Any]:
    parts = urlsplit(dsn)
    params: Dict[str, Any] = {
        "user": unquote(parts.username or ""),
        "password": unquote(parts.password or ""),
        "database": unquote(parts.path.lstrip('/')) or None,
    }
    try:
        port = parts.port
    except ValueError:
        raise DSNError("Invalid port in connection URL")
    params["host"] = parts.hostname or DEFAULT_HOST
    params["port"] = port or DEFAULT_PORT
    _apply_params(params, parts.query)
    return params


def _parse_go_dsn(dsn: str) -> Dict[str, Any]:
    # [user[:password]@][net[(addr)]]/dbname[?param1=value1&paramN=valueN]
    slash = dsn.rfind('/')
    if slash < 0:
        raise DSNError("Connection string is missing the '/' before the database name")

    prefix, rest = dsn[:slash], dsn[slash + 1:]
    dbname, _, query = rest.partition('?')

    credentials, at, address = prefix.rpartition('@')
    if not at:
        credentials, address = "", prefix
    user, _, password = credentials.partition(':')

    match = _ADDRESS_PATTERN.match(address)
    if not match:
        raise DSNError(f"Invalid network address: {address}")

    net = match.group('net') or 'tcp'
    addr = match.group('addr') or ''

    params: Dict[str, Any] = {"user": user, "password": password, "database": dbname or None}
    if net == 'unix':
        if not addr:
            raise DSNError("unix network requires a socket path")
        params["unix_socket"] = addr
    elif net in ('tcp', 'tcp4', 'tcp6'):
        params.update(_split_host_port(addr))
    else:
        raise DSNError(f"Unsupported network type: {net}")

    _apply_params(params, query)
    return params


def parse_dsn(dsn: str, timeout: float = 30) -> Dict[str, Any]:
    """
    Translate a connection string into pymysql.connect keyword arguments.

    The timeout applies to connect, read and write unless the DSN sets
    its own timeout parameters.

    Raises:
        DSNError: If the connection string is malformed
    """
    dsn = dsn.strip()
    if not dsn:
        raise DSNError("Connection string is empty")

    if dsn.startswith(('mysql://', 'mysql+pymysql://')):
        params = _parse_url_dsn(dsn)
    else:
        params = _parse_go_dsn(dsn)

    params.setdefault("connect_timeout", timeout)
    params.setdefault("read_timeout", timeout)
    params.setdefault("write_timeout", timeout)
    # Statistics must be re-read every cycle, never from an open snapshot
    params["autocommit"] = True
    return params


def redact(params: Dict[str, Any]) -> Dict[str, Any]:
    """Copy of connection parameters that is safe to log"""
    safe = dict(params)
    if safe.get("password"):
        safe["password"] = "***"
    return safe


class DatabaseConnection:
    """One connection owned by a single target poller"""

    def __init__(self, name: str, params: Dict[str, Any], connect: Optional[Callable[..., Any]] = None):
        self.name = name
        self._params = params
        self._connect = connect
        self._conn: Optional[Any] = None
        self._lock = threading.Lock()

    @property
    def is_open(self) -> bool:
        return self._conn is not None

    def open(self) -> None:
        """
        Open the connection.

        Raises:
            TargetConnectionError: If the server cannot be reached or rejects us
        """
        logger.info(
            "Opening database connection",
            cloud_name=self.name,
            params=redact(self._params),
            event_type="db_connect"
        )
        with self._lock:
            try:
                connect = self._connect or pymysql.connect
                self._conn = connect(**self._params)
            except (pymysql.MySQLError, OSError) as e:
                raise TargetConnectionError(self.name, e) from e

        logger.info("Database connection established", cloud_name=self.name, event_type="db_connected")

    def query(self, sql: str) -> List[tuple]:
        """Run a read-only statement and return all rows"""
        with self._lock:
            if self._conn is None:
                raise RuntimeError(f"Connection for {self.name} is not open")

            # Transparent recovery after a dropped connection
            self._conn.ping(reconnect=True)
            with self._conn.cursor() as cursor:
                cursor.execute(sql)
                return list(cursor.fetchall())

    def close(self) -> None:
        """Close the connection, ignoring errors from an already-dead socket"""
        with self._lock:
            if self._conn is None:
                return
            try:
                self._conn.close()
            except pymysql.MySQLError as e:
                logger.warning("Error closing connection", cloud_name=self.name, error=str(e))
            finally:
                self._conn = None
        logger.info("Database connection closed", cloud_name=self.name, event_type="db_close")


def open_connection(target: TargetConfig, timeout: float = 30, connect: Optional[Callable[..., Any]] = None) -> DatabaseConnection:
    """
    Parse the target DSN and open its connection.

    Raises:
        DSNError: If the DSN is malformed
        TargetConnectionError: If the connection cannot be opened
    """
    params = parse_dsn(target.dsn, timeout=timeout)
    connection = DatabaseConnection(target.name, params, connect=connect)
    connection.open()
    return connection
