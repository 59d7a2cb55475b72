"""
============================================================================
AREWEUP - VALIDATORS UTILITY
============================================================================
Validation and normalisation of endpoint targets: web URLs for the
HTTP/HTTPS probes, host names and IP addresses for the network probes,
and port numbers.

Author: Professional Development Team
Version: 1.0.0
License: MIT
============================================================================
"""

import ipaddress
from typing import Any, Optional

import httpx
import validators as external_validators

from utils.logger import get_logger


logger = get_logger("Validators")


# ============================================================================
# URL VALIDATORS
# ============================================================================

class URLValidator:
    """
    Web target validation and normalisation.
    """

    SCHEMES = ("http://", "https://")

    @staticmethod
    def is_valid_url(url: str) -> bool:
        """
        Check if URL is valid.

        Single-label hosts such as ``localhost`` are accepted, as are
        query strings that are not strict ``key=value`` pairs.

        Args:
            url: URL to validate

        Returns:
            True if valid, False otherwise
        """
        result = external_validators.url(url, simple_host=True, strict_query=False)
        return result is True

    @staticmethod
    def ensure_scheme(target: str, scheme: str) -> str:
        """
        Prepend ``scheme://`` unless the target already carries a web scheme.

        Args:
            target: Raw document target
            scheme: ``http`` or ``https``

        Returns:
            Target with a scheme
        """
        target = target.strip()
        if target.lower().startswith(URLValidator.SCHEMES):
            return target
        return f"{scheme}://{target}"

    @staticmethod
    def with_port(url: str, port: Optional[int]) -> str:
        """
        Insert a non-default port into a URL that does not name one.

        Args:
            url: Absolute URL
            port: Configured port, or None

        Returns:
            URL with the port applied when it differs from the scheme default
        """
        if not port or port <= 0:
            return url

        parsed = httpx.URL(url)
        # httpx reports default ports (explicit or not) as None
        if parsed.port is not None:
            return url

        default_port = 443 if parsed.scheme == "https" else 80
        if port == default_port:
            return url

        return str(parsed.copy_with(port=port))

    @staticmethod
    def metric_path(url: str) -> str:
        """
        Path dimension for a web target: IDNA host plus path and query.

        Args:
            url: Absolute URL

        Returns:
            ``host/path?query`` without scheme or port
        """
        parsed = httpx.URL(url)
        return parsed.raw_host.decode("ascii") + parsed.raw_path.decode("ascii")


# ============================================================================
# HOST VALIDATORS
# ============================================================================

class HostValidator:
    """
    Host name and IP address checks for network probes.
    """

    @staticmethod
    def is_valid_ip(ip: str) -> bool:
        """
        Check if IP address is valid.

        Args:
            ip: IP address to validate

        Returns:
            True if valid, False otherwise
        """
        try:
            ipaddress.ip_address(ip)
            return True
        except ValueError:
            return False

    @staticmethod
    def is_valid_host(host: str) -> bool:
        """
        Check if a network target is an IP address or a resolvable-looking name.

        Single-label names (``redis``, ``db-primary``) and fully-qualified
        names with one trailing dot (``example.com.``) are accepted.

        Args:
            host: Host name or IP address

        Returns:
            True if valid, False otherwise
        """
        if not host or any(ch.isspace() for ch in host):
            return False

        if HostValidator.is_valid_ip(host):
            return True

        name = host[:-1] if host.endswith(".") else host
        if not name:
            return False

        result = external_validators.hostname(
            name,
            may_have_port=False,
            maybe_simple=True,
            rfc_2782=True
        )
        if result is not True:
            logger.debug(f"Rejected host name: {host!r}")
        return result is True


# ============================================================================
# DATA VALIDATORS
# ============================================================================

class DataValidator:
    """
    General data validation utilities.
    """

    @staticmethod
    def is_valid_port(port: Any) -> bool:
        """
        Check if port number is valid.

        Args:
            port: Port to validate

        Returns:
            True if valid, False otherwise
        """
        try:
            port = int(port)
            return 1 <= port <= 65535
        except (ValueError, TypeError):
            return False
