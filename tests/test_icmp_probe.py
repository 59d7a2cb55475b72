import pytest

from config.constants import Protocol
from monitoring.probes import ICMPProbe, ProbeRouter
from conftest import network_request


class ScriptedPing(ICMPProbe):
    def __init__(self, status, round_trip=None):
        super().__init__()
        self.status = status
        self.round_trip = round_trip
        self.hosts = []

    async def _ping(self, host):
        self.hosts.append(host)
        return self.status, self.round_trip


@pytest.mark.asyncio
async def test_success_reports_the_round_trip():
    probe = ScriptedPing("Success", 3.2)

    outcome = await probe.probe(network_request(Protocol.ICMP, "8.8.8.8", 1))

    assert outcome.success
    assert outcome.latency_ms == 3.2
    assert probe.hosts == ["8.8.8.8"]


@pytest.mark.asyncio
@pytest.mark.parametrize("status", ["TimedOut", "Error (ping: unknown host)"])
async def test_other_statuses_are_down(status):
    outcome = await ScriptedPing(status).probe(network_request(Protocol.ICMP, "10.0.0.9", None))

    assert not outcome.success
    assert f"reply status: {status}" in outcome.message


@pytest.mark.asyncio
async def test_missing_ping_binary_is_down():
    probe = ICMPProbe()
    probe.PING_COMMAND = "areweup-no-such-ping-binary"

    outcome = await probe.probe(network_request(Protocol.ICMP, "127.0.0.1", None))

    assert not outcome.success
    assert "FileNotFoundError" in outcome.message


def test_command_sends_one_echo_request():
    assert ICMPProbe(timeout_millis=1000)._command("example.com") == ["ping", "-c", "1", "-W", "1", "example.com"]
    assert ICMPProbe(timeout_millis=3000)._command("example.com")[4] == "3"


@pytest.mark.asyncio
async def test_router_sends_icmp_requests_to_the_icmp_probe():
    icmp = ScriptedPing("Success", 1.0)
    router = ProbeRouter(icmp_probe=icmp)

    outcome = await router.probe(network_request(Protocol.ICMP, "127.0.0.1", None))

    assert outcome.success
    assert icmp.hosts == ["127.0.0.1"]
