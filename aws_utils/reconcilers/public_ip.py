"""
Discovery of the caller's public IP address.
"""

from __future__ import annotations

import ipaddress

import requests

from ..core.config import DEFAULT_IP_SERVICE
from ..core.exceptions import PublicIPError
from ..core.logging import get_logger

logger = get_logger(__name__)

DEFAULT_TIMEOUT = 10


def get_public_ip(url: str = DEFAULT_IP_SERVICE, timeout: int = DEFAULT_TIMEOUT) -> str:
    """
    Return the caller's public IPv4 address as a single-host CIDR.

    The service must answer with a JSON object whose ``query`` field holds
    the address, as http://ip-api.com/json/ does.

    Returns:
        The address with "/32" appended, e.g. "1.2.3.4/32"

    Raises:
        PublicIPError: the request failed or returned no usable address
    """
    try:
        response = requests.get(url, timeout=timeout)
        response.raise_for_status()
        payload = response.json()
    except requests.RequestException as e:
        raise PublicIPError(f"Error finding your public IP: {e}", details={"url": url})
    except ValueError as e:
        raise PublicIPError(f"Invalid response from {url}: {e}", details={"url": url})

    address = payload.get("query") if isinstance(payload, dict) else None
    try:
        ip = ipaddress.IPv4Address(address)
    except (ipaddress.AddressValueError, TypeError):
        raise PublicIPError(
            f"No IPv4 address in response from {url}",
            details={"url": url, "query": address},
        )

    logger.debug(f"Public IP is {ip}")
    return f"{ip}/32"
