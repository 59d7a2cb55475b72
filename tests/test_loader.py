import pytest

from config.loader import is_remote, load_config_bytes
from exceptions import ConfigSourceError


@pytest.mark.parametrize("location, remote", [
    ("https://bucket.example.com/checks.json?X-Signature=abc", True),
    ("HTTP://config.internal/checks.json", True),
    ("/etc/areweup/checks.json", False),
    ("checks.json", False),
])
def test_is_remote(location, remote):
    assert is_remote(location) is remote


@pytest.mark.asyncio
async def test_reads_a_local_file(tmp_path):
    document = tmp_path / "checks.json"
    document.write_bytes(b'{"Tcp": []}')

    assert await load_config_bytes(str(document)) == b'{"Tcp": []}'


@pytest.mark.asyncio
async def test_missing_local_file(tmp_path):
    with pytest.raises(ConfigSourceError) as exc_info:
        await load_config_bytes(str(tmp_path / "absent.json"))

    assert exc_info.value.details["location"].endswith("absent.json")


@pytest.mark.asyncio
async def test_empty_location_is_rejected():
    with pytest.raises(ConfigSourceError):
        await load_config_bytes("   ")


@pytest.mark.asyncio
async def test_downloads_a_remote_document(http_base_url):
    assert await load_config_bytes(f"{http_base_url}/ok", timeout=5) == b"ok"


@pytest.mark.asyncio
async def test_remote_error_status_hides_the_query_string(http_base_url):
    with pytest.raises(ConfigSourceError) as exc_info:
        await load_config_bytes(f"{http_base_url}/checks.json?signature=secret", timeout=5)

    assert "404" in exc_info.value.message
    assert "secret" not in exc_info.value.details["location"]
