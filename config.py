"""
Central configuration for the purchase order ledger.

All paths, document details, and numbering settings are defined here.
Override via environment variables or by passing a Config instance directly.

Settings priority (highest wins):
  1. Environment variables
  2. config/ledger_settings.json  (admin-editable, persisted)
  3. Hardcoded defaults in this file

The GST rate is deliberately absent: it is fixed in ordering.totals and is
only ever gated by the supplier's registration flag.
"""
import json
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path

logger = logging.getLogger(__name__)

# Project root (directory containing this file)
PROJECT_ROOT = Path(__file__).parent

# Default data locations (relative to project root)
DEFAULT_OUTPUT_DIR = PROJECT_ROOT / "output"
DEFAULT_DB_PATH    = DEFAULT_OUTPUT_DIR / "ledger.db"
DEFAULT_EXPORT_DIR = DEFAULT_OUTPUT_DIR / "export"
DEFAULT_BACKUP_DIR = PROJECT_ROOT / "backups"


@dataclass
class Config:
    # --- Storage ---
    output_dir: Path = field(
        default_factory=lambda: Path(os.getenv("OUTPUT_DIR", str(DEFAULT_OUTPUT_DIR)))
    )
    db_path: Path = field(
        default_factory=lambda: Path(os.getenv("DB_PATH", str(DEFAULT_DB_PATH)))
    )
    export_dir: Path = field(
        default_factory=lambda: Path(os.getenv("EXPORT_DIR", str(DEFAULT_EXPORT_DIR)))
    )

    # --- Orders ---
    default_currency: str = field(
        default_factory=lambda: os.getenv("DEFAULT_CURRENCY", "AUD")
    )
    po_number_prefix: str = field(
        default_factory=lambda: os.getenv("PO_NUMBER_PREFIX", "PO-")
    )
    po_number_width: int = field(
        default_factory=lambda: int(os.getenv("PO_NUMBER_WIDTH", "5"))
    )
    # e.g. prefix "PO-" and width 5 → PO-00001, PO-00002, …

    # --- Document header (XML / PDF exports) ---
    company_name: str = field(
        default_factory=lambda: os.getenv("COMPANY_NAME", "MTM Windows Pty Ltd")
    )
    company_address: str = field(
        default_factory=lambda: os.getenv(
            "COMPANY_ADDRESS", "4 Tullamarine Park Road\nTullamarine, Victoria 3043"
        )
    )
    company_phone: str = field(
        default_factory=lambda: os.getenv("COMPANY_PHONE", "+61 3 9310 5544")
    )
    company_email: str = field(
        default_factory=lambda: os.getenv("COMPANY_EMAIL", "quotes@mtmaluminium.com.au")
    )
    export_template: str = field(
        default_factory=lambda: os.getenv("EXPORT_TEMPLATE", "export_template.xml.j2")
    )

    # --- Backup settings ---
    backup_dir: Path = field(
        default_factory=lambda: Path(os.getenv("BACKUP_DIR", str(DEFAULT_BACKUP_DIR)))
    )
    backup_retention_count: int = field(
        default_factory=lambda: int(os.getenv("BACKUP_RETENTION_COUNT", "7"))
    )

    def __post_init__(self) -> None:
        """Overlay runtime-tunable settings from ledger_settings.json if present."""
        settings_file = self.config_dir / "ledger_settings.json"
        if not settings_file.exists():
            return
        _type_map: dict[str, type] = {
            "default_currency":        str,
            "po_number_prefix":        str,
            "po_number_width":         int,
            "company_name":            str,
            "company_address":         str,
            "company_phone":           str,
            "company_email":           str,
            "export_template":         str,
            "backup_retention_count":  int,
        }
        try:
            with open(settings_file, encoding="utf-8") as f:
                overrides = {k: v for k, v in json.load(f).items() if not k.startswith("_")}
            for key, val in overrides.items():
                if key in _type_map and hasattr(self, key):
                    setattr(self, key, _type_map[key](val))
        except Exception as exc:
            logger.warning("Failed to load ledger_settings.json: %s", exc)

    @property
    def config_dir(self) -> Path:
        return Path(os.getenv("CONFIG_DIR", str(PROJECT_ROOT / "config")))

    @property
    def export_template_path(self) -> Path:
        return self.config_dir / self.export_template

    def ensure_output_dir(self) -> None:
        self.output_dir.mkdir(parents=True, exist_ok=True)
        self.export_dir.mkdir(parents=True, exist_ok=True)
