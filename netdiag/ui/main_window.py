"""Main window for NetDiag application."""

import logging
from dataclasses import dataclass

from PySide6.QtCore import Qt
from PySide6.QtGui import QCloseEvent
from PySide6.QtWidgets import (
    QFrame,
    QGroupBox,
    QHBoxLayout,
    QLabel,
    QLineEdit,
    QMainWindow,
    QPushButton,
    QVBoxLayout,
    QWidget,
)

from netdiag.config import Settings
from netdiag.controller import DiagnosticRunController
from netdiag.formatting import format_result, format_status
from netdiag.models import OperationKind, OperationState, Phase

logger = logging.getLogger(__name__)

RESULT_STYLE = "padding: 8px; font-family: monospace; background: #f4f4f4;"
ERROR_STYLE = "padding: 8px; font-family: monospace; background: #fdecea; color: #b00020;"


@dataclass
class OperationPanel:
    """Widgets bound to one operation kind."""

    button: QPushButton
    result_label: QLabel
    status_label: QLabel
    input_edit: QLineEdit | None = None


class MainWindow(QMainWindow):
    """Main application window: one trigger panel per operation."""

    def __init__(self, controller: DiagnosticRunController, settings: Settings | None = None):
        super().__init__()
        self.setWindowTitle("NetDiag")
        self.setGeometry(100, 100, 560, 640)

        self.controller = controller
        self.settings = settings if settings is not None else Settings()
        self.panels: dict[OperationKind, OperationPanel] = {}

        self.setup_ui()

        # The window is the controller's display layer
        self.controller.set_display_callback(self.on_state_changed)

    def closeEvent(self, event: QCloseEvent) -> None:
        """Handle application close event - clean up resources."""
        self.controller.set_display_callback(None)
        logger.debug("Window closing, waiting for in-flight requests")

        # Wait for thread pool to finish (with timeout)
        self.controller.wait_for_done(1000)

        super().closeEvent(event)

    def setup_ui(self):
        """Set up the main user interface."""
        central_widget = QWidget()
        self.setCentralWidget(central_widget)

        layout = QVBoxLayout(central_widget)

        title = QLabel("Network Diagnostics")
        title.setAlignment(Qt.AlignCenter)
        title.setStyleSheet("font-weight: bold; font-size: 14px; margin: 10px;")
        layout.addWidget(title)

        target_label = QLabel(f"Target: {self.settings.target}")
        target_label.setAlignment(Qt.AlignCenter)
        layout.addWidget(target_label)

        layout.addWidget(self.create_panel(OperationKind.PING, "Ping"))
        layout.addWidget(
            self.create_panel(
                OperationKind.SPEED_TEST,
                "Speed Test",
                input_label="Duration (s):",
                default_input=str(self.settings.speed_duration),
            )
        )
        layout.addWidget(
            self.create_panel(
                OperationKind.PORT_SCAN,
                "Port Test",
                input_label="Port range:",
                default_input=self.settings.port_range,
            )
        )

        layout.addStretch()

    def create_panel(
        self,
        kind: OperationKind,
        title: str,
        input_label: str | None = None,
        default_input: str | None = None,
    ) -> QGroupBox:
        """Create the group box for one operation."""
        group = QGroupBox(title)
        group_layout = QVBoxLayout(group)

        input_edit = None
        if input_label is not None:
            row = QHBoxLayout()
            row.addWidget(QLabel(input_label))
            input_edit = QLineEdit()
            input_edit.setText(default_input or "")
            row.addWidget(input_edit)
            group_layout.addLayout(row)

        button = QPushButton(self.controller.descriptor(kind).label)
        button.clicked.connect(lambda: self.run_operation(kind))
        status_label = QLabel()
        status_label.setStyleSheet("color: gray;")
        button_row = QHBoxLayout()
        button_row.addWidget(button)
        button_row.addWidget(status_label)
        button_row.addStretch()
        group_layout.addLayout(button_row)

        result_label = QLabel()
        result_label.setFrameStyle(QFrame.StyledPanel)
        result_label.setTextInteractionFlags(Qt.TextSelectableByMouse)
        result_label.setWordWrap(True)
        result_label.setVisible(False)
        group_layout.addWidget(result_label)

        self.panels[kind] = OperationPanel(
            button=button,
            result_label=result_label,
            status_label=status_label,
            input_edit=input_edit,
        )
        return group

    def run_operation(self, kind: OperationKind) -> bool:
        """Handle a run button click."""
        panel = self.panels[kind]
        raw_input = panel.input_edit.text() if panel.input_edit is not None else None
        return self.controller.run_trigger(kind, raw_input)

    def on_state_changed(self, kind: OperationKind, state: OperationState):
        """Render a transition from the controller."""
        panel = self.panels.get(kind)
        if panel is None:
            return

        panel.status_label.setText(format_status(state))

        if state.phase is Phase.RUNNING:
            panel.button.setEnabled(False)
            panel.button.setText(format_status(state))
            panel.result_label.setVisible(False)
            return

        panel.button.setEnabled(True)
        panel.button.setText(self.controller.descriptor(kind).label)

        text = format_result(state)
        if text is None:
            panel.result_label.setVisible(False)
            return

        panel.result_label.setText(text)
        panel.result_label.setStyleSheet(ERROR_STYLE if state.phase is Phase.FAILURE else RESULT_STYLE)
        panel.result_label.setVisible(True)
