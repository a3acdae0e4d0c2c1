"""
Local address discovery, used only for the startup banner.
"""
import logging
import socket

import psutil

logger = logging.getLogger(__name__)

LOOPBACK = "127.0.0.1"


def get_routed_ip():
    """Get the OS-chosen IP to reach internet via an unsent UDP socket."""
    s = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
    try:
        s.connect(("8.8.8.8", 80))
        return s.getsockname()[0]
    except OSError as e:
        logger.debug(f"Routed IP lookup failed: {e}")
        return None
    finally:
        s.close()


def get_interface_ip():
    """First non-loopback IPv4 address of an interface that is up."""
    try:
        interfaces = psutil.net_if_addrs()
        stats = psutil.net_if_stats()
    except (OSError, psutil.Error) as e:
        logger.debug(f"Interface scan failed: {e}")
        return None
    for iface, addrs in interfaces.items():
        iface_stats = stats.get(iface)
        if not iface_stats or not iface_stats.isup:
            continue
        for addr in addrs:
            if addr.family == socket.AF_INET and not addr.address.startswith("127."):
                return addr.address
    return None


def get_local_ip() -> str:
    return get_routed_ip() or get_interface_ip() or LOOPBACK
