"""Entry point for NetDiag application."""

import argparse
import logging
import sys

from PySide6.QtCore import QCoreApplication

from netdiag.config import TRANSPORT_FAKE, Settings
from netdiag.controller import DiagnosticRunController
from netdiag.formatting import format_result
from netdiag.logging_config import configure_logging
from netdiag.models import OperationKind, OperationState
from netdiag.transport import FakeTransport, HttpTransport, Transport

logger = logging.getLogger(__name__)

HEADLESS_OPERATIONS = {
    "ping": OperationKind.PING,
    "speed": OperationKind.SPEED_TEST,
    "ports": OperationKind.PORT_SCAN,
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="netdiag", description="Network diagnostics client")
    parser.add_argument("--target", help="Base URL of the diagnostic service (NETDIAG_TARGET)")
    parser.add_argument("--fake", action="store_true", help="Use simulated results instead of HTTP")
    parser.add_argument("--log-level", help="Logging level (NETDIAG_LOG_LEVEL)")
    parser.add_argument(
        "--headless",
        choices=sorted(HEADLESS_OPERATIONS),
        help="Run one operation without a window and print the result",
    )
    parser.add_argument("--duration", help="Speed test duration in seconds")
    parser.add_argument("--range", dest="port_range", help="Port range, e.g. 1-1024 or 22,80,443")
    return parser


def build_settings(args: argparse.Namespace, environ=None) -> Settings:
    """Apply command-line overrides on top of environment settings."""
    settings = Settings.from_env(environ)
    if args.target:
        settings.target = args.target
    if args.fake:
        settings.transport = TRANSPORT_FAKE
    return settings


def build_transport(settings: Settings) -> Transport:
    """Select the transport, falling back to simulation on bad configuration."""
    if settings.use_fake_transport:
        logger.info("Using FakeTransport")
        return FakeTransport()

    try:
        transport = HttpTransport(settings.target, timeout_seconds=settings.http_timeout_seconds)
    except ValueError as e:
        logger.error("HttpTransport configuration invalid: %s, using FakeTransport", e)
        return FakeTransport()

    logger.info("Using HttpTransport: target=%s", transport.base_url)
    return transport


def run_headless(kind: OperationKind, raw_input, settings: Settings, transport: Transport, out=None) -> int:
    """Run one operation to completion and print its formatted result.

    Returns:
        Process exit code: 0 on success, 1 on failure
    """
    out = out if out is not None else sys.stdout
    app = QCoreApplication.instance() or QCoreApplication(sys.argv[:1])
    outcome = {"code": 1}

    def on_state_changed(changed_kind: OperationKind, state: OperationState):
        if changed_kind is not kind or not state.is_settled:
            return
        print(format_result(state), file=out)
        outcome["code"] = 0 if state.result is not None else 1
        app.quit()

    controller = DiagnosticRunController(
        transport,
        display_callback=on_state_changed,
        timeout_ms=settings.operation_timeout_ms,
    )

    controller.run_trigger(kind, raw_input)

    # Validation failures settle synchronously
    if controller.state(kind).is_running:
        app.exec()

    controller.wait_for_done(1000)
    return outcome["code"]


def main(argv=None):
    """Main entry point for the NetDiag application."""
    args = build_parser().parse_args(argv)

    configure_logging(args.log_level)
    settings = build_settings(args)
    transport = build_transport(settings)

    if args.headless:
        kind = HEADLESS_OPERATIONS[args.headless]
        if kind is OperationKind.SPEED_TEST:
            raw_input = args.duration if args.duration is not None else settings.speed_duration
        elif kind is OperationKind.PORT_SCAN:
            raw_input = args.port_range if args.port_range is not None else settings.port_range
        else:
            raw_input = None
        sys.exit(run_headless(kind, raw_input, settings, transport))

    # Imported here so headless runs do not need a display
    from PySide6.QtWidgets import QApplication

    from netdiag.ui.main_window import MainWindow

    app = QApplication(sys.argv)

    controller = DiagnosticRunController(transport, timeout_ms=settings.operation_timeout_ms)
    window = MainWindow(controller, settings)

    if settings.use_fake_transport:
        window.statusBar().showMessage("Using simulated results (fake transport)")

    window.show()

    sys.exit(app.exec())


if __name__ == "__main__":
    main()
