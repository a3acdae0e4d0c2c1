#!/usr/bin/env python3
# Simple File Server for browsing and downloads

import argparse
import logging
import sys
from pathlib import Path

from aiohttp import web

from fileshare.config import ConfigError, build_config, load_config
from fileshare.file_server_ui import create_app
from fileshare.netinfo import get_local_ip

logger = logging.getLogger("file_server")

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'


def setup_logging(log_dir=None, level='INFO'):
    handlers = [logging.StreamHandler()]
    if log_dir:
        logs_dir = Path(log_dir)
        logs_dir.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(logs_dir / 'file_server.log', encoding='utf-8'))
    logging.basicConfig(
        format=LOG_FORMAT,
        level=getattr(logging, str(level).upper(), logging.INFO),
        handlers=handlers,
    )


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description="Share a directory over HTTP")
    parser.add_argument("--dir", "--directory", dest="dir", default=None,
                        help="Directory to share (prompted for when omitted)")
    parser.add_argument("--port", default=None, help="HTTP server port (default 8080)")
    parser.add_argument("--host", default=None, help="Address to bind (default 0.0.0.0)")
    parser.add_argument("--config", default=None, help="Path to a config.env file")
    return parser.parse_args(argv)


def main(argv=None):
    args = parse_args(argv)
    env_config = load_config(args.config)
    setup_logging(env_config.get('LOG_DIR'), env_config.get('LOG_LEVEL', 'INFO'))

    try:
        config = build_config(args, env_config)
    except ConfigError as e:
        logger.error(f"Configuration failed: {e}")
        sys.exit(1)

    local_ip = get_local_ip()
    logger.info(
        "\n[START] File Server Configuration\n"
        f"  Shared Directory: {config.root_dir}\n"
        f"  Listening Port: {config.port}\n"
        f"  Local Access: http://127.0.0.1:{config.port}\n"
        f"  Network Access: http://{local_ip}:{config.port}\n"
        "  Press CTRL+C to exit"
    )

    app = create_app(config)
    try:
        web.run_app(app, host=config.host, port=config.port,
                    keepalive_timeout=config.read_timeout,
                    access_log=None, print=None)
    except OSError as e:
        logger.error(f"Server startup failed: {e} (Possible causes: port in use or permission denied)")
        sys.exit(1)


if __name__ == '__main__':
    main()
