"""Push telegraf.conf to the gateway and bring the service back up.

Stages:
1. UPLOADING   - SCP the config to its remote path
2. RESTARTING  - restart the telegraf unit
3. VERIFYING   - wait for it to settle, then ask systemd if it is active
4. DIAGNOSING  - only when not active: status, log tail, error lines
5. DONE

Upload and restart failures abort the run. An inactive service is a normal
outcome that triggers diagnosis. Each diagnostic runs even if an earlier one
failed at the transport level.
"""
import logging
import time
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Callable, Optional, Union

from ..errors import RemoteError
from ..remote import RemoteSession, RemoteTarget

logger = logging.getLogger(__name__)

REMOTE_CONFIG_PATH = "/etc/telegraf/telegraf.conf"
SETTLE_DELAY = 5.0
ACTIVE = "active"

RESTART_COMMAND = "sudo systemctl restart telegraf"
STATUS_COMMAND = "systemctl is-active --quiet telegraf && echo 'active' || echo 'failed'"
DETAILED_STATUS_COMMAND = "sudo systemctl status telegraf"
LOG_TAIL_COMMAND = "tail -n 20 /var/log/telegraf/telegraf.log"
ERROR_TAIL_COMMAND = "tail -n 10 /var/log/telegraf/telegraf.log | grep 'E!'"


class ProvisionStage(Enum):
    """Provisioning state machine stages."""
    UPLOADING = "uploading"
    RESTARTING = "restarting"
    VERIFYING = "verifying"
    DIAGNOSING = "diagnosing"
    DONE = "done"


@dataclass
class Diagnostic:
    """Output of one diagnostic command."""
    title: str
    command: str
    output: str = ""
    error: Optional[str] = None

    @property
    def success(self) -> bool:
        return self.error is None


@dataclass
class ProvisionResult:
    """What happened during one provisioning run."""
    active: bool = False
    status: str = ""
    stage: ProvisionStage = ProvisionStage.UPLOADING
    diagnostics: list[Diagnostic] = field(default_factory=list)
    lines: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "active": self.active,
            "status": self.status,
            "stage": self.stage.value,
            "diagnostics": [
                {"title": d.title, "command": d.command, "output": d.output, "error": d.error}
                for d in self.diagnostics
            ],
        }


DIAGNOSTICS = [
    ("Detailed Telegraf status", DETAILED_STATUS_COMMAND),
    ("Recent Telegraf logs", LOG_TAIL_COMMAND),
    ("Latest Telegraf error logs", ERROR_TAIL_COMMAND),
]


class ProvisioningOrchestrator:
    """Runs the upload/restart/verify sequence over an open session."""

    def __init__(
        self,
        session: RemoteSession,
        remote_path: str = REMOTE_CONFIG_PATH,
        settle_delay: float = SETTLE_DELAY,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.session = session
        self.remote_path = remote_path
        self.settle_delay = settle_delay
        self._sleep = sleep

    def _note(self, result: ProvisionResult, line: str) -> None:
        result.lines.append(line)
        logger.info(line)

    def run(self, config_path: Union[str, Path]) -> ProvisionResult:
        """Upload ``config_path`` and restart telegraf.

        Raises:
            RemoteError: If the upload or the restart command fails
        """
        result = ProvisionResult()

        result.stage = ProvisionStage.UPLOADING
        self._note(result, "Sending file ..")
        self.session.upload_file(config_path, self.remote_path)

        result.stage = ProvisionStage.RESTARTING
        self._note(result, "Restarting telegraf service on the remote host ..")
        self.session.exec_command(RESTART_COMMAND)

        result.stage = ProvisionStage.VERIFYING
        self._note(result, "Waiting for the service to start ..")
        self._sleep(self.settle_delay)
        result.status = self.session.exec_command(STATUS_COMMAND).text
        result.active = result.status == ACTIVE

        if result.active:
            self._note(
                result,
                f"Telegraf service restarted successfully. Current status: {result.status}",
            )
        else:
            self._note(
                result,
                f"Telegraf service restarted, but it's not active. Current status: {result.status}",
            )
            result.stage = ProvisionStage.DIAGNOSING
            self._diagnose(result)

        result.stage = ProvisionStage.DONE
        return result

    def _diagnose(self, result: ProvisionResult) -> None:
        for title, command in DIAGNOSTICS:
            diagnostic = Diagnostic(title=title, command=command)
            try:
                diagnostic.output = self.session.exec_command(command).output
            except RemoteError as e:
                diagnostic.error = str(e)
                logger.warning(f"Diagnostic '{command}' failed: {e}")
            result.diagnostics.append(diagnostic)

            if diagnostic.error is not None:
                result.lines.append(f"{title}: unavailable ({diagnostic.error})")
            elif command == ERROR_TAIL_COMMAND and not diagnostic.output.strip():
                self._note(result, "No recent error logs found for Telegraf.")
            else:
                self._note(result, f"{title}:\n\n{diagnostic.output}")


def send_and_restart(
    config_path: Union[str, Path],
    target: RemoteTarget,
    remote_path: str = REMOTE_CONFIG_PATH,
    settle_delay: float = SETTLE_DELAY,
    timeout: Optional[float] = None,
) -> ProvisionResult:
    """Open a session, provision, close the session.

    Raises:
        RemoteError: If connecting, uploading or restarting fails
    """
    with RemoteSession(target, timeout=timeout) as session:
        orchestrator = ProvisioningOrchestrator(
            session, remote_path=remote_path, settle_delay=settle_delay
        )
        return orchestrator.run(config_path)
