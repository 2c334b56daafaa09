"""Tests for the command-line entry point helpers."""

import io

from netdiag.__main__ import build_parser, build_settings, build_transport, run_headless
from netdiag.config import Settings
from netdiag.errors import TransportError
from netdiag.models import OperationKind
from netdiag.transport import FakeTransport, HttpTransport


class TestArguments:
    """Test parser and settings overrides."""

    def test_headless_flags(self):
        args = build_parser().parse_args(["--headless", "ports", "--range", "20-25"])

        assert args.headless == "ports"
        assert args.port_range == "20-25"

    def test_target_and_fake_override_environment(self):
        args = build_parser().parse_args(["--target", "http://other:9000", "--fake"])
        settings = build_settings(args, environ={"NETDIAG_TARGET": "http://env:1"})

        assert settings.target == "http://other:9000"
        assert settings.use_fake_transport


class TestBuildTransport:
    def test_http_by_default(self):
        transport = build_transport(Settings(target="http://diag.example:3000"))

        assert isinstance(transport, HttpTransport)
        assert transport.base_url == "http://diag.example:3000"

    def test_fake_when_requested(self):
        assert isinstance(build_transport(Settings(transport="fake")), FakeTransport)


class TestRunHeadless:
    """Test one-shot runs print the formatted result and exit code."""

    def test_ping_success(self, qapp, transport):
        out = io.StringIO()

        code = run_headless(OperationKind.PING, None, Settings(), transport, out=out)

        assert code == 0
        assert out.getvalue() == "Pong! RTT: 42ms\n"

    def test_validation_failure(self, qapp, transport):
        out = io.StringIO()

        code = run_headless(OperationKind.SPEED_TEST, "abc", Settings(), transport, out=out)

        assert code == 1
        assert out.getvalue().startswith("Error: Invalid duration")
        assert transport.calls == []

    def test_transport_failure(self, qapp, transport):
        transport.responses["/api/speed"] = TransportError("Service Unavailable")
        out = io.StringIO()

        code = run_headless(OperationKind.SPEED_TEST, 1, Settings(), transport, out=out)

        assert code == 1
        assert out.getvalue() == "Error: Service Unavailable\n"
