"""Ad-hoc backups of the gateway's InfluxDB database and Grafana config."""
import logging
from datetime import date
from pathlib import Path
from typing import Optional, Union

from ..remote import RemoteSession
from ..utils.logging_config import timed_section

logger = logging.getLogger(__name__)

INFLUX_DATA_PATH = "/var/lib/influxdb2"
REMOTE_BACKUP_PREFIX = "/tmp/influx_backup_"
LOCAL_BACKUP_PREFIX = "influx_backup_"

GRAFANA_CONFIG_PATH = "/etc/grafana/grafana.ini"
GRAFANA_BACKUP_NAME = "grafana_backup.ini"


class BackupOrchestrator:
    """Backup flows over one open session.

    Transport errors propagate immediately. Files already downloaded are
    left in place.
    """

    def __init__(self, session: RemoteSession):
        self.session = session

    def backup_influxdb(
        self,
        local_base: Union[str, Path, None] = None,
        today: Optional[date] = None,
    ) -> Path:
        """Run ``influx backup`` on the gateway and copy the result here.

        Args:
            local_base: Directory receiving ``influx_backup_<date>``; defaults to cwd
            today: Date stamp for the directory names; defaults to local today

        Returns:
            The local backup directory

        Raises:
            RemoteError: If any command or transfer fails
        """
        stamp = (today or date.today()).strftime("%Y-%m-%d")
        remote_dir = f"{REMOTE_BACKUP_PREFIX}{stamp}"
        local_dir = Path(local_base or Path.cwd()) / f"{LOCAL_BACKUP_PREFIX}{stamp}"

        logger.info(f"Backing up InfluxDB to {remote_dir}")
        result = self.session.exec_command(f"influx backup -p {INFLUX_DATA_PATH} {remote_dir}")
        if result.text:
            logger.info(f"Command output: {result.text}")

        local_dir.mkdir(parents=True, exist_ok=True)
        file_names = self.session.list_directory(remote_dir)

        with timed_section("influx_download", self.session.target_label, files=len(file_names)):
            for file_name in file_names:
                size = self.session.download_file(
                    f"{remote_dir}/{file_name}", local_dir / file_name
                )
                logger.info(f"Copied {file_name} ({size} bytes)")

        logger.info(f"Backup completed successfully. Files are located at: {local_dir}")
        return local_dir

    def backup_grafana(self, local_path: Union[str, Path] = GRAFANA_BACKUP_NAME) -> Path:
        """Download ``grafana.ini``, overwriting ``local_path``.

        Raises:
            RemoteError: If the download fails
        """
        local_path = Path(local_path)
        self.session.download_file(GRAFANA_CONFIG_PATH, local_path)
        logger.info(f"Grafana configuration backed up to {local_path}")
        return local_path
