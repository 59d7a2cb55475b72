"""
Config Resolver for AreWeUp

Turns a sparse health check document into a fully resolved
``HealthCheckConfiguration``. Defaults are merged into every endpoint
first, then each endpoint goes through the deserializer of its
protocol variant. Field names are matched case-insensitively and both
the short document names (``Path``, ``SNSTopicArn``) and the
descriptive ones (``target``, ``alertTopic``) are accepted.

Any problem with the document raises ``ConfigParseError`` and aborts
the invocation before a single probe runs.
"""

from __future__ import annotations

import base64
import binascii
import json
from http import HTTPStatus
from typing import Any, Dict, List, Optional, Sequence, Tuple, Union

from config.constants import Defaults, FieldAliases, Protocol
from config.settings import ResolverDefaults
from exceptions import ConfigParseError, InvalidTargetError, MissingFieldError
from monitoring.models import EndpointRequest, HealthCheckConfiguration, UdpOptions, WebOptions
from utils.logger import get_logger
from utils.validators import DataValidator, HostValidator, URLValidator


logger = get_logger("ConfigResolver")

RawDocument = Union[bytes, bytearray, str, Dict[str, Any]]

_MISSING = object()

# "NotFound", "not_found" and "NOT FOUND" all name 404
_STATUS_BY_NAME: Dict[str, int] = {
    status.name.replace("_", "").lower(): status.value for status in HTTPStatus
}


def resolve(
    raw_document: RawDocument,
    defaults: Optional[ResolverDefaults] = None
) -> HealthCheckConfiguration:
    """
    Resolve a health check document.

    Args:
        raw_document: Raw JSON bytes or text, or an already parsed mapping
        defaults: Values for fields an endpoint omits

    Returns:
        The resolved configuration

    Raises:
        ConfigParseError: The document is malformed or an endpoint is
            incomplete after defaulting
    """
    defaults = defaults or ResolverDefaults()
    document = _parse_document(raw_document)

    sections: Dict[Protocol, Tuple[EndpointRequest, ...]] = {}

    for key, entries in document.items():
        protocol = _match_protocol(key)

        if protocol in sections:
            raise ConfigParseError(
                f"Section '{protocol.document_key}' appears more than once",
                protocol=protocol.document_key
            )

        if entries is None:
            entries = []

        if not isinstance(entries, list):
            raise ConfigParseError(
                f"Section '{key}' must be an array of endpoint objects",
                protocol=protocol.document_key,
                value=entries
            )

        sections[protocol] = tuple(
            _resolve_endpoint(protocol, index, entry, defaults)
            for index, entry in enumerate(entries)
        )

    configuration = HealthCheckConfiguration(
        **{protocol.value.lower(): endpoints for protocol, endpoints in sections.items()}
    )

    logger.debug(f"Resolved {len(configuration)} endpoint(s) from configuration document")
    return configuration


def _parse_document(raw_document: RawDocument) -> Dict[str, Any]:
    """Decode and parse the raw document into its top-level mapping."""
    if raw_document is None:
        raise ConfigParseError("The configuration document is empty")

    if isinstance(raw_document, dict):
        return raw_document

    if isinstance(raw_document, (bytes, bytearray)):
        try:
            raw_document = bytes(raw_document).decode("utf-8-sig")
        except UnicodeDecodeError as e:
            raise ConfigParseError(
                "The configuration document is not valid UTF-8",
                cause=e
            ) from e

    if not isinstance(raw_document, str):
        raise ConfigParseError(
            f"Unsupported configuration document type: {type(raw_document).__name__}"
        )

    if not raw_document.strip():
        raise ConfigParseError("The configuration document is empty")

    try:
        document = json.loads(raw_document)
    except json.JSONDecodeError as e:
        raise ConfigParseError(
            f"The configuration document is not valid JSON: {e.msg} "
            f"(line {e.lineno}, column {e.colno})",
            cause=e
        ) from e
    except (RecursionError, ValueError) as e:
        # Pathologically nested arrays/objects exhaust the decoder's stack
        raise ConfigParseError(
            f"The configuration document could not be decoded: {type(e).__name__}",
            cause=e
        ) from e

    if not isinstance(document, dict):
        raise ConfigParseError(
            "The configuration document must be a JSON object",
            value=document
        )

    return document


def _match_protocol(key: Any) -> Protocol:
    if isinstance(key, str):
        for protocol in Protocol:
            if key.strip().lower() == protocol.value.lower():
                return protocol

    expected = ", ".join(protocol.document_key for protocol in Protocol)
    raise ConfigParseError(
        f"Unknown configuration section '{key}', expected one of: {expected}",
        value=key
    )


# ============================================================================
# ENDPOINT FIELDS
# ============================================================================

class _EndpointFields:
    """
    Case-insensitive view over one endpoint object.

    Carries the section and index so every error names the endpoint
    it came from.
    """

    def __init__(self, protocol: Protocol, index: int, raw: Dict[str, Any]) -> None:
        self.protocol = protocol
        self.index = index
        self._values: Dict[str, Any] = {}

        for key, value in raw.items():
            # First spelling wins when a key is repeated with different case
            self._values.setdefault(str(key).lower(), value)

    def get(self, aliases: Sequence[str], default: Any = _MISSING) -> Any:
        for alias in aliases:
            value = self._values.get(alias.lower(), _MISSING)
            if value is not _MISSING and value is not None:
                return value
        return default

    def has(self, aliases: Sequence[str]) -> bool:
        return self.get(aliases) is not _MISSING

    def set_default(self, aliases: Sequence[str], value: Any) -> None:
        if not self.has(aliases):
            self._values[aliases[0].lower()] = value

    # ------------------------------------------------------------------
    # TYPED ACCESSORS
    # ------------------------------------------------------------------

    def error(self, message: str, aliases: Sequence[str], value: Any = None) -> ConfigParseError:
        return ConfigParseError(
            f"{self.protocol.document_key}[{self.index}]: {message}",
            field=aliases[0],
            value=value,
            protocol=self.protocol.document_key,
            index=self.index
        )

    def string(self, aliases: Sequence[str], default: Any = None) -> Any:
        value = self.get(aliases)
        if value is _MISSING:
            return default
        if isinstance(value, bool) or not isinstance(value, (str, int, float)):
            raise self.error(f"'{aliases[0]}' must be a string", aliases, value)
        return str(value)

    def boolean(self, aliases: Sequence[str], default: bool = False) -> bool:
        value = self.get(aliases)
        if value is _MISSING:
            return default
        if isinstance(value, bool):
            return value
        if isinstance(value, str) and value.strip().lower() in ("true", "false"):
            return value.strip().lower() == "true"
        raise self.error(f"'{aliases[0]}' must be a boolean", aliases, value)

    def integer(self, aliases: Sequence[str], default: Any = None) -> Any:
        value = self.get(aliases)
        if value is _MISSING:
            return default
        if isinstance(value, bool):
            raise self.error(f"'{aliases[0]}' must be an integer", aliases, value)
        if isinstance(value, int):
            return value
        if isinstance(value, float) and value.is_integer():
            return int(value)
        if isinstance(value, str):
            try:
                return int(value.strip())
            except ValueError:
                pass
        raise self.error(f"'{aliases[0]}' must be an integer", aliases, value)

    def require(self, aliases: Sequence[str]) -> Any:
        value = self.get(aliases)
        if value is _MISSING:
            raise MissingFieldError(
                aliases[0],
                protocol=self.protocol.document_key,
                index=self.index
            )
        return value


# ============================================================================
# DEFAULTING
# ============================================================================

def _apply_defaults(fields: _EndpointFields, defaults: ResolverDefaults) -> None:
    """Fill omitted endpoint fields from the bootstrap defaults."""
    if defaults.customer_id:
        fields.set_default(FieldAliases.CUSTOMER_ID, defaults.customer_id)

    fields.set_default(FieldAliases.SEND_METRIC, defaults.send_metric)

    if fields.protocol is Protocol.HTTPS:
        fields.set_default(FieldAliases.IGNORE_TLS, defaults.ignore_tls_errors)

    fields.set_default(FieldAliases.TIMEOUT, defaults.timeout_millis)
    fields.set_default(FieldAliases.ALERT_TOPIC, defaults.alert_topic)

    if defaults.alert_subject:
        fields.set_default(FieldAliases.ALERT_SUBJECT, defaults.alert_subject)


# ============================================================================
# PER-VARIANT DESERIALIZERS
# ============================================================================

def _resolve_endpoint(
    protocol: Protocol,
    index: int,
    entry: Any,
    defaults: ResolverDefaults
) -> EndpointRequest:
    if not isinstance(entry, dict):
        raise ConfigParseError(
            f"{protocol.document_key}[{index}] must be a JSON object",
            value=entry,
            protocol=protocol.document_key,
            index=index
        )

    fields = _EndpointFields(protocol, index, entry)
    _apply_defaults(fields, defaults)

    common = _read_common(fields)

    if protocol.is_web:
        return _read_web(fields, common)
    if protocol is Protocol.UDP:
        return _read_udp(fields, common)
    if protocol is Protocol.TCP:
        return _read_tcp(fields, common)
    return _read_icmp(fields, common)


def _read_common(fields: _EndpointFields) -> Dict[str, Any]:
    timeout = fields.integer(FieldAliases.TIMEOUT, Defaults.TIMEOUT_MILLIS)
    if timeout <= 0:
        raise fields.error("'Timeout' must be a positive number of milliseconds", FieldAliases.TIMEOUT, timeout)

    return {
        "protocol": fields.protocol,
        "customer_id": fields.string(FieldAliases.CUSTOMER_ID, ""),
        "send_metric": fields.boolean(FieldAliases.SEND_METRIC),
        "alert_topic": fields.string(FieldAliases.ALERT_TOPIC, ""),
        "alert_subject": fields.string(FieldAliases.ALERT_SUBJECT, ""),
        "timeout_millis": timeout,
    }


def _read_target(fields: _EndpointFields) -> str:
    raw = fields.require(FieldAliases.TARGET)
    if not isinstance(raw, str):
        raise fields.error("'Path' must be a string", FieldAliases.TARGET, raw)

    target = raw.strip()
    if not target:
        raise InvalidTargetError(
            f"{fields.protocol.document_key}[{fields.index}]: the endpoint target is empty",
            target=raw,
            reason="empty",
            protocol=fields.protocol.document_key,
            index=fields.index
        )
    return target


def _read_host(fields: _EndpointFields) -> str:
    host = _read_target(fields)
    if not HostValidator.is_valid_host(host):
        raise InvalidTargetError(
            f"{fields.protocol.document_key}[{fields.index}]: '{host}' is not a host name or IP address",
            target=host,
            reason="invalid host",
            protocol=fields.protocol.document_key,
            index=fields.index
        )
    return host


def _read_web(fields: _EndpointFields, common: Dict[str, Any]) -> EndpointRequest:
    protocol = fields.protocol
    port = fields.integer(FieldAliases.PORT)
    # Non-positive means "use the scheme default"; anything past 65535 is a typo
    if port is not None and port > 0 and not DataValidator.is_valid_port(port):
        raise fields.error("'Port' must be between 1 and 65535", FieldAliases.PORT, port)

    url = URLValidator.ensure_scheme(_read_target(fields), protocol.value.lower())
    if not URLValidator.is_valid_url(url):
        raise InvalidTargetError(
            f"{protocol.document_key}[{fields.index}]: '{url}' is not a well-formed URL",
            target=url,
            reason="malformed url",
            protocol=protocol.document_key,
            index=fields.index
        )
    url = URLValidator.with_port(url, port)

    web = WebOptions(
        method=_read_method(fields),
        body=fields.string(FieldAliases.BODY),
        content_type=fields.string(FieldAliases.CONTENT_TYPE),
        prevent_redirect=fields.boolean(FieldAliases.PREVENT_REDIRECT),
        redirect_header_expectations=_read_header_expectations(fields),
        cookies_required=_read_cookie_names(fields),
        expected_status=_read_expected_status(fields),
        ignore_tls_errors=(
            fields.boolean(FieldAliases.IGNORE_TLS) if protocol is Protocol.HTTPS else False
        ),
    )

    return EndpointRequest(target=url, port=port, web=web, **common)


def _read_tcp(fields: _EndpointFields, common: Dict[str, Any]) -> EndpointRequest:
    host = _read_host(fields)
    fields.require(FieldAliases.PORT)
    return EndpointRequest(target=host, port=fields.integer(FieldAliases.PORT), **common)


def _read_udp(fields: _EndpointFields, common: Dict[str, Any]) -> EndpointRequest:
    host = _read_host(fields)
    fields.require(FieldAliases.PORT)

    buffer_size = fields.integer(FieldAliases.RECEIVE_BUFFER, Defaults.UDP_RECEIVE_BUFFER_SIZE)
    if buffer_size <= 0:
        raise fields.error("'ReceiveBufferSize' must be positive", FieldAliases.RECEIVE_BUFFER, buffer_size)

    udp = UdpOptions(
        payload=_read_payload(fields),
        receive_buffer_size=buffer_size,
    )
    return EndpointRequest(target=host, port=fields.integer(FieldAliases.PORT), udp=udp, **common)


def _read_icmp(fields: _EndpointFields, common: Dict[str, Any]) -> EndpointRequest:
    host = _read_host(fields)
    # The ICMP "port" is a protocol number; it is kept for the record only
    return EndpointRequest(target=host, port=fields.integer(FieldAliases.PORT), **common)


# ============================================================================
# FIELD COERCIONS
# ============================================================================

def _read_method(fields: _EndpointFields) -> str:
    value = fields.get(FieldAliases.METHOD)
    if value is _MISSING:
        return Defaults.HTTP_METHOD.value

    # {"method": "GET"} is accepted as well as "GET"
    if isinstance(value, dict):
        nested = {str(k).lower(): v for k, v in value.items()}
        value = nested.get("method", _MISSING)

    if not isinstance(value, str) or not value.strip().isalpha():
        raise fields.error("'Method' must be an HTTP method name", FieldAliases.METHOD, value)

    return value.strip().upper()


def _read_header_expectations(fields: _EndpointFields) -> Tuple[Tuple[str, str], ...]:
    value = fields.get(FieldAliases.REDIRECT_HEADERS)
    if value is _MISSING:
        return ()

    pairs: List[Tuple[Any, Any]] = []

    if isinstance(value, dict):
        pairs.extend(value.items())
    elif isinstance(value, list):
        for item in value:
            if not isinstance(item, dict) or len(item) != 1:
                raise fields.error(
                    "'RedirectHeadersToValidate' entries must be single-key objects",
                    FieldAliases.REDIRECT_HEADERS,
                    item
                )
            pairs.extend(item.items())
    else:
        raise fields.error(
            "'RedirectHeadersToValidate' must be an object or an array of single-key objects",
            FieldAliases.REDIRECT_HEADERS,
            value
        )

    expectations = []
    for name, expected in pairs:
        if isinstance(expected, bool) or not isinstance(expected, (str, int, float)):
            raise fields.error(
                f"expected value of header '{name}' must be a string",
                FieldAliases.REDIRECT_HEADERS,
                expected
            )
        expectations.append((str(name), str(expected)))

    return tuple(expectations)


def _read_cookie_names(fields: _EndpointFields) -> Tuple[str, ...]:
    value = fields.get(FieldAliases.COOKIES)
    if value is _MISSING:
        return ()

    if isinstance(value, str):
        value = [value]

    if not isinstance(value, list) or not all(isinstance(name, str) for name in value):
        raise fields.error("'CookiesToValidate' must be an array of cookie names", FieldAliases.COOKIES, value)

    # dict.fromkeys keeps document order while dropping repeats
    return tuple(dict.fromkeys(name.strip() for name in value if name.strip()))


def _read_expected_status(fields: _EndpointFields) -> int:
    value = fields.get(FieldAliases.EXPECTED_STATUS)
    if value is _MISSING:
        return Defaults.EXPECTED_STATUS

    status: Optional[int] = None

    if isinstance(value, int) and not isinstance(value, bool):
        status = value
    elif isinstance(value, str):
        text = value.strip()
        if text.isdigit():
            status = int(text)
        else:
            status = _STATUS_BY_NAME.get(text.replace("_", "").replace(" ", "").lower())

    if status is None or not 100 <= status <= 599:
        raise fields.error(
            "'ExpectedResponse' must be an HTTP status code or status name",
            FieldAliases.EXPECTED_STATUS,
            value
        )

    return status


def _read_payload(fields: _EndpointFields) -> bytes:
    value = fields.get(FieldAliases.PAYLOAD)
    if value is _MISSING:
        return Defaults.UDP_PAYLOAD

    if not isinstance(value, str):
        raise fields.error("'Payload' must be a base64 string", FieldAliases.PAYLOAD, value)

    try:
        payload = base64.b64decode(value, validate=True)
    except (binascii.Error, ValueError) as e:
        raise fields.error(f"'Payload' is not valid base64: {e}", FieldAliases.PAYLOAD, value) from e

    return payload or Defaults.UDP_PAYLOAD
