"""
Backup service for the purchase order ledger.
Creates timestamped ZIP archives of the database and settings, and rotates old ones.
"""
import logging
import os
import sqlite3
import zipfile
from datetime import datetime
from pathlib import Path
from typing import Optional

from config import Config

logger = logging.getLogger(__name__)

BACKUP_GLOB = "ledger_backup_*.zip"


class BackupService:
    """
    Manages ledger backups and rotation.
    """

    def __init__(self, config: Config) -> None:
        self.config = config
        self.backup_dir = Path(config.backup_dir)
        self.backup_dir.mkdir(parents=True, exist_ok=True)

    def create_backup(self) -> Path:
        """
        Create a new timestamped ZIP backup and return its path.

        The database is copied with the SQLite online backup API so a backup
        taken while the dashboard is writing is still consistent.
        """
        timestamp = datetime.now().strftime("%Y%m%d_%H%M%S_%f")
        zip_path = self.backup_dir / f"ledger_backup_{timestamp}.zip"

        logger.info("Starting backup: %s", zip_path.name)

        try:
            with zipfile.ZipFile(zip_path, "w", zipfile.ZIP_DEFLATED) as zipf:
                db_path = Path(self.config.db_path)
                if db_path.exists():
                    temp_db = self.backup_dir / f"temp_{timestamp}.db"
                    try:
                        src_conn = sqlite3.connect(db_path)
                        dst_conn = sqlite3.connect(temp_db)
                        try:
                            src_conn.backup(dst_conn)
                        finally:
                            src_conn.close()
                            dst_conn.close()
                        zipf.write(temp_db, arcname="output/ledger.db")
                    finally:
                        if temp_db.exists():
                            temp_db.unlink()

                config_dir = self.config.config_dir
                if config_dir.exists():
                    for f in config_dir.glob("*"):
                        if f.is_file() and f.suffix != ".bak":
                            zipf.write(f, arcname=f"config/{f.name}")

            logger.info("Backup completed: %s", zip_path.name)
            self.rotate_backups()
            return zip_path

        except Exception as e:
            logger.error("Backup failed: %s", e)
            if zip_path.exists():
                zip_path.unlink()
            raise

    def rotate_backups(self) -> list[Path]:
        """
        Remove old backups, keeping only the newest backup_retention_count.
        Returns the paths removed.
        """
        retention = self.config.backup_retention_count
        if retention <= 0:
            return []

        backups = sorted(self.backup_dir.glob(BACKUP_GLOB), key=os.path.getmtime, reverse=True)
        removed = []
        for old_zip in backups[retention:]:
            logger.info("Rotating out old backup: %s", old_zip.name)
            try:
                old_zip.unlink()
                removed.append(old_zip)
            except OSError as e:
                logger.warning("Failed to delete old backup %s: %s", old_zip, e)
        return removed

    def get_last_backup_time(self) -> Optional[datetime]:
        """Return the timestamp of the newest backup file."""
        backups = sorted(self.backup_dir.glob(BACKUP_GLOB), key=os.path.getmtime)
        if not backups:
            return None
        return datetime.fromtimestamp(backups[-1].stat().st_mtime)
