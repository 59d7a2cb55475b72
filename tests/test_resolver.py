import base64
import json

import pytest

from config.constants import Protocol
from config.resolver import resolve
from config.settings import ResolverDefaults
from exceptions import ConfigParseError, InvalidTargetError, MissingFieldError


DEFAULTS = ResolverDefaults(
    customer_id="acme",
    send_metric=True,
    ignore_tls_errors=True,
    timeout_millis=750,
    alert_topic="-100123",
    alert_subject="Endpoint down",
)


def test_missing_sections_default_to_empty():
    config = resolve(b"{}", DEFAULTS)

    assert len(config) == 0
    for protocol in Protocol:
        assert config.by_protocol(protocol) == ()


def test_defaults_fill_omitted_fields():
    document = {
        "Tcp": [{"Path": "db.internal", "Port": 5432}],
        "Https": [{"Path": "status.example.com"}],
    }

    config = resolve(json.dumps(document), DEFAULTS)

    tcp = config.tcp[0]
    assert tcp.customer_id == "acme"
    assert tcp.send_metric is True
    assert tcp.timeout_millis == 750
    assert tcp.alert_topic == "-100123"
    assert tcp.alert_subject == "Endpoint down"

    https = config.https[0]
    assert https.web.ignore_tls_errors is True
    assert https.target == "https://status.example.com"


def test_explicit_fields_win_over_defaults():
    document = {
        "Udp": [{
            "Path": "10.0.0.5",
            "Port": 53,
            "CustomerId": "other",
            "SendToCloudWatch": False,
            "Timeout": 100,
            "SNSTopicArn": "@oncall",
            "Subject": "DNS",
        }]
    }

    request = resolve(json.dumps(document), DEFAULTS).udp[0]

    assert request.customer_id == "other"
    assert request.send_metric is False
    assert request.timeout_millis == 100
    assert request.alert_topic == "@oncall"
    assert request.alert_subject == "DNS"


def test_empty_default_customer_id_and_subject_are_not_applied():
    defaults = ResolverDefaults(alert_topic="ops")
    request = resolve({"Icmp": [{"Path": "8.8.8.8"}]}, defaults).icmp[0]

    assert request.customer_id == ""
    assert request.alert_subject == ""
    assert request.send_metric is False


def test_every_endpoint_without_timeout_gets_default_timeout():
    document = {
        "Http": [{"Path": "example.com"}],
        "Tcp": [{"Path": "example.com", "Port": 443}, {"Path": "example.org", "Port": 22}],
        "Udp": [{"Path": "127.0.0.1", "Port": 53}],
        "Icmp": [{"Path": "127.0.0.1"}],
    }

    config = resolve(document, DEFAULTS)

    assert len(config) == 5
    assert all(request.timeout_millis == 750 for request in config)


def test_ignore_tls_default_applies_to_https_only():
    document = {"Http": [{"Path": "example.com"}], "Https": [{"Path": "example.com"}]}

    config = resolve(document, DEFAULTS)

    assert config.http[0].web.ignore_tls_errors is False
    assert config.https[0].web.ignore_tls_errors is True


def test_field_names_are_case_insensitive_and_aliased():
    document = {
        "tcp": [{"target": "db.internal", "PORT": 5432, "timeoutMillis": 200, "alertTopic": "x"}],
        "HTTP": [{"TARGET": "example.com", "expectedStatus": 204, "preventRedirect": True}],
    }

    config = resolve(document, DEFAULTS)

    assert config.tcp[0].port == 5432
    assert config.tcp[0].timeout_millis == 200
    assert config.tcp[0].alert_topic == "x"
    assert config.http[0].web.expected_status == 204
    assert config.http[0].web.prevent_redirect is True


def test_web_defaults():
    web = resolve({"Http": [{"Path": "example.com"}]}, DEFAULTS).http[0].web

    assert web.method == "HEAD"
    assert web.expected_status == 200
    assert web.prevent_redirect is False
    assert web.redirect_header_expectations == ()
    assert web.cookies_required == ()


@pytest.mark.parametrize("method", ["post", {"Method": "post"}, {"method": "POST"}])
def test_method_accepts_string_or_object(method):
    document = {"Http": [{"Path": "example.com", "Method": method, "Content": "{}"}]}

    web = resolve(document, DEFAULTS).http[0].web

    assert web.method == "POST"
    assert web.body == "{}"


@pytest.mark.parametrize("value, expected", [
    (404, 404),
    ("301", 301),
    ("OK", 200),
    ("NotFound", 404),
    ("not_found", 404),
    ("ServiceUnavailable", 503),
])
def test_expected_status_forms(value, expected):
    document = {"Http": [{"Path": "example.com", "ExpectedResponse": value}]}

    assert resolve(document, DEFAULTS).http[0].web.expected_status == expected


def test_unknown_status_name_is_rejected():
    with pytest.raises(ConfigParseError):
        resolve({"Http": [{"Path": "example.com", "ExpectedResponse": "Teapotish"}]}, DEFAULTS)


def test_redirect_headers_as_mapping_or_single_key_objects():
    as_mapping = {"Http": [{"Path": "example.com", "RedirectHeadersToValidate": {"Location": "/login"}}]}
    as_pairs = {"Http": [{"Path": "example.com", "RedirectHeadersToValidate": [{"Location": "/login"}, {"X-Reason": "auth"}]}]}

    assert resolve(as_mapping, DEFAULTS).http[0].web.redirect_header_expectations == (("Location", "/login"),)
    assert resolve(as_pairs, DEFAULTS).http[0].web.redirect_header_expectations == (
        ("Location", "/login"),
        ("X-Reason", "auth"),
    )


def test_cookie_names_keep_order_and_drop_repeats():
    document = {"Http": [{"Path": "example.com", "CookiesToValidate": ["session", "theme", "session"]}]}

    assert resolve(document, DEFAULTS).http[0].web.cookies_required == ("session", "theme")


def test_web_target_gets_scheme_and_non_default_port():
    document = {
        "Http": [
            {"Path": "example.com/health", "Port": 8080},
            {"Path": "http://example.com/health", "Port": 80},
        ],
        "Https": [{"Path": "example.com:9443/health", "Port": 8443}],
    }

    config = resolve(document, DEFAULTS)

    assert config.http[0].target == "http://example.com:8080/health"
    assert config.http[1].target == "http://example.com/health"
    assert config.https[0].target == "https://example.com:9443/health"


def test_malformed_url_is_rejected():
    with pytest.raises(InvalidTargetError):
        resolve({"Http": [{"Path": "http://exa mple.com"}]}, DEFAULTS)


@pytest.mark.parametrize("port", [65536, 70000, "99999"])
def test_web_port_out_of_range_is_a_parse_error(port):
    with pytest.raises(ConfigParseError) as exc_info:
        resolve({"Https": [{"Path": "example.com", "Port": port}]}, DEFAULTS)

    assert exc_info.value.details["field"] == "Port"


def test_non_positive_web_port_means_scheme_default():
    request = resolve({"Http": [{"Path": "example.com", "Port": 0}]}, DEFAULTS).http[0]

    assert request.target == "http://example.com"


def test_udp_payload_is_base64():
    encoded = base64.b64encode(b"\x01\x02hello").decode()
    document = {"Udp": [{"Path": "127.0.0.1", "Port": 9999, "Payload": encoded, "ReceiveBufferSize": 16}]}

    udp = resolve(document, DEFAULTS).udp[0].udp

    assert udp.payload == b"\x01\x02hello"
    assert udp.receive_buffer_size == 16


def test_udp_defaults():
    udp = resolve({"Udp": [{"Path": "127.0.0.1", "Port": 9999}]}, DEFAULTS).udp[0].udp

    assert udp.payload == b"\x00"
    assert udp.receive_buffer_size == 512


def test_invalid_base64_payload_is_rejected():
    with pytest.raises(ConfigParseError):
        resolve({"Udp": [{"Path": "127.0.0.1", "Port": 9999, "Payload": "not base64!"}]}, DEFAULTS)


@pytest.mark.parametrize("section", ["Tcp", "Udp"])
def test_missing_port_is_a_parse_error(section):
    with pytest.raises(MissingFieldError) as exc_info:
        resolve({section: [{"Path": "127.0.0.1"}]}, DEFAULTS)

    assert exc_info.value.details["field"] == "Port"
    assert exc_info.value.details["index"] == 0


def test_non_positive_port_still_resolves():
    request = resolve({"Tcp": [{"Path": "127.0.0.1", "Port": 0}]}, DEFAULTS).tcp[0]

    assert request.port == 0


def test_icmp_port_is_optional():
    request = resolve({"Icmp": [{"Path": "127.0.0.1", "Port": -1}]}, DEFAULTS).icmp[0]

    assert request.port == -1


@pytest.mark.parametrize("section", ["Tcp", "Udp", "Icmp"])
@pytest.mark.parametrize("host", ["redis", "db-primary", "example.com."])
def test_short_and_fully_qualified_host_names_resolve(section, host):
    config = resolve({section: [{"Path": host, "Port": 6379}]}, DEFAULTS)

    assert config.by_protocol(Protocol(section.upper()))[0].target == host


def test_malformed_host_name_is_rejected():
    with pytest.raises(InvalidTargetError):
        resolve({"Tcp": [{"Path": "-bad-", "Port": 22}]}, DEFAULTS)


def test_missing_target_is_a_parse_error():
    with pytest.raises(MissingFieldError):
        resolve({"Tcp": [{"Port": 22}]}, DEFAULTS)


@pytest.mark.parametrize("target", ["", "   "])
def test_empty_target_is_a_parse_error(target):
    with pytest.raises(InvalidTargetError):
        resolve({"Icmp": [{"Path": target}]}, DEFAULTS)


@pytest.mark.parametrize("raw", [
    b"",
    b"not json",
    b"[]",
    b'{"Ftp": []}',
    b'{"Tcp": {"Path": "x"}}',
    b'{"Tcp": ["x"]}',
    b'{"Tcp": [{"Path": "x", "Port": "twenty"}]}',
    b'{"Tcp": [{"Path": "x", "Port": 1, "Timeout": 0}]}',
    b'{"Http": [{"Path": "example.com", "PreventAutoRedirect": "maybe"}]}',
])
def test_malformed_documents_are_rejected(raw):
    with pytest.raises(ConfigParseError):
        resolve(raw, DEFAULTS)


def test_deeply_nested_document_is_a_parse_error():
    with pytest.raises(ConfigParseError):
        resolve("[" * 100000 + "]" * 100000, DEFAULTS)


def test_resolution_is_deterministic():
    document = json.dumps({
        "Https": [{
            "Path": "example.com",
            "Method": {"method": "get"},
            "RedirectHeadersToValidate": [{"Location": "/a"}, {"Set-Cookie": "b"}],
            "CookiesToValidate": ["x", "y"],
        }],
        "Udp": [{"Path": "127.0.0.1", "Port": 53, "Payload": "AAEC"}],
        "Tcp": [{"Path": "example.com", "Port": 80}],
    }).encode()

    first = resolve(document, DEFAULTS)
    second = resolve(document, DEFAULTS)

    assert first == second
    assert json.dumps(first.to_dict(), sort_keys=True) == json.dumps(second.to_dict(), sort_keys=True)
