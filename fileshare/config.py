"""
File share configuration: config.env loading, root directory checks, interactive prompt.
"""
import logging
import os
import stat
from dataclasses import dataclass
from pathlib import Path

logger = logging.getLogger(__name__)

DEFAULT_PORT = 8080
DEFAULT_HOST = "0.0.0.0"
DEFAULT_READ_TIMEOUT = 10.0
DEFAULT_WRITE_TIMEOUT = 30.0
DEFAULT_CHUNK_SIZE = 64 * 1024

CONFIG_KEYS = ['SHARE_DIR', 'SHARE_PORT', 'SHARE_HOST', 'READ_TIMEOUT',
               'WRITE_TIMEOUT', 'LOG_DIR', 'LOG_LEVEL']


class ConfigError(Exception):
    """Raised when the server cannot be configured; fatal at startup."""


@dataclass(frozen=True)
class ServerConfig:
    root_dir: str
    port: int = DEFAULT_PORT
    host: str = DEFAULT_HOST
    read_timeout: float = DEFAULT_READ_TIMEOUT
    write_timeout: float = DEFAULT_WRITE_TIMEOUT
    chunk_size: int = DEFAULT_CHUNK_SIZE


def default_config_path() -> Path:
    return Path(os.environ.get('FILE_SHARE_CONFIG',
                               Path(__file__).parent.parent / "config.env"))


def load_config(config_path=None) -> dict:
    """Load config from config.env file or environment variables"""
    config = {}
    config_path = Path(config_path) if config_path else default_config_path()
    if config_path.exists():
        with open(config_path, encoding='utf-8') as f:
            for line in f:
                line = line.strip()
                if line and not line.startswith('#') and '=' in line:
                    key, _, val = line.partition('=')
                    config[key.strip()] = val.strip()
    # Environment variables override file
    for key in CONFIG_KEYS:
        if key in os.environ:
            config[key] = os.environ[key]
    return config


def validate_directory(path):
    """Check that path exists and is a directory, raising ConfigError if not."""
    if not path:
        raise ConfigError("empty path")
    try:
        st = os.stat(path)
    except OSError as e:
        raise ConfigError(f"path access error: {e}") from e
    if not stat.S_ISDIR(st.st_mode):
        raise ConfigError("not a directory")


def prompt_for_directory(input_fn=input) -> str:
    """Ask on stdin until an existing directory is entered"""
    while True:
        try:
            entered = input_fn("Enter directory path to share (e.g. /sdcard or C:\\): ")
        except EOFError as e:
            raise ConfigError("no directory given and stdin is closed") from e
        entered = entered.strip()
        try:
            validate_directory(entered)
        except ConfigError as e:
            logger.warning(f"Invalid path: {e}, please retry")
            continue
        return entered


def resolve_root(path) -> str:
    """Resolve symbolic links in the shared directory, once, at startup."""
    try:
        resolved = Path(path).expanduser().resolve(strict=True)
    except (OSError, RuntimeError) as e:
        raise ConfigError(f"Symbolic link resolution failed: {e}") from e
    if not resolved.is_dir():
        raise ConfigError(f"{resolved} is not a directory")
    return str(resolved)


def _parse_port(value) -> int:
    try:
        port = int(value)
    except (TypeError, ValueError) as e:
        raise ConfigError(f"invalid port: {value!r}") from e
    if not 0 < port < 65536:
        raise ConfigError(f"port out of range: {port}")
    return port


def _parse_seconds(value, default: float) -> float:
    if value in (None, ''):
        return default
    try:
        seconds = float(value)
    except ValueError as e:
        raise ConfigError(f"invalid timeout: {value!r}") from e
    if seconds <= 0:
        raise ConfigError(f"timeout must be positive: {value!r}")
    return seconds


def build_config(args, env_config: dict, input_fn=input) -> ServerConfig:
    """Merge CLI args over config.env/environment values into a ServerConfig."""
    root = args.dir or env_config.get('SHARE_DIR', '')
    if not root:
        root = prompt_for_directory(input_fn)
    root_dir = resolve_root(root)

    port = args.port if args.port is not None else env_config.get('SHARE_PORT', DEFAULT_PORT)
    host = args.host or env_config.get('SHARE_HOST') or DEFAULT_HOST

    return ServerConfig(
        root_dir=root_dir,
        port=_parse_port(port),
        host=host,
        read_timeout=_parse_seconds(env_config.get('READ_TIMEOUT'), DEFAULT_READ_TIMEOUT),
        write_timeout=_parse_seconds(env_config.get('WRITE_TIMEOUT'), DEFAULT_WRITE_TIMEOUT),
    )
