"""
Commission Engine - Report Storage

Keeps the raw bytes of every uploaded carrier report on local disk so a
report can be re-inspected after processing.
"""
from __future__ import annotations
import logging
import os
import re
from datetime import datetime
from pathlib import Path
from typing import Optional

from ..errors import StorageError

logger = logging.getLogger(__name__)

REPORT_STORAGE_DIR = os.getenv(
    "REPORT_STORAGE_DIR",
    os.path.join(os.path.dirname(__file__), "..", "..", "..", "data", "storage"),
)

_UNSAFE_CHARS = re.compile(r"[^a-z0-9]+")
_UNSAFE_FILENAME_CHARS = re.compile(r"[^A-Za-z0-9._-]+")


def sanitize_carrier_name(carrier_name: str) -> str:
    """'Guarantee Trust Life (GTL)' -> 'guarantee-trust-life-gtl'"""
    return _UNSAFE_CHARS.sub("-", carrier_name.lower()).strip("-") or "carrier"


def sanitize_filename(filename: str) -> str:
    name = os.path.basename(filename or "") or "report"
    return _UNSAFE_FILENAME_CHARS.sub("_", name)


class ReportStorage:
    """Local-disk store rooted at `base_dir`."""

    def __init__(self, base_dir: Optional[str] = None):
        self.base_dir = Path(base_dir or REPORT_STORAGE_DIR).resolve()

    def build_key(self, agency_id: Optional[str], carrier_name: str, filename: str,
                  timestamp: Optional[datetime] = None) -> str:
        """uploads/<agency or unassigned>/<carrier>/<millis>-<filename>"""
        timestamp = timestamp or datetime.utcnow()
        millis = int(timestamp.timestamp() * 1000)
        return "/".join([
            "uploads",
            agency_id or "unassigned",
            sanitize_carrier_name(carrier_name),
            f"{millis}-{sanitize_filename(filename)}",
        ])

    def save(self, content: bytes, agency_id: Optional[str], carrier_name: str, filename: str) -> str:
        """
        Write the file and return its storage key.

        Raises:
            StorageError: if the file cannot be written
        """
        key = self.build_key(agency_id, carrier_name, filename)
        target = self.base_dir / key
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_bytes(content)
        except OSError as e:
            logger.error(f"Failed to store report {key}: {e}")
            raise StorageError(f"Failed to upload file to storage: {e}", details={"path": key}) from e

        logger.info(f"Stored report file at {key} ({len(content)} bytes)")
        return key

    def open(self, key: str) -> bytes:
        try:
            return (self.base_dir / key).read_bytes()
        except OSError as e:
            raise StorageError(f"Stored report not found: {key}", details={"path": key}) from e

    def delete(self, key: str) -> None:
        """Remove a stored file. A missing file is not an error."""
        try:
            (self.base_dir / key).unlink()
        except FileNotFoundError:
            return
        except OSError as e:
            logger.error(f"Failed to remove stored report {key}: {e}")
            return
        logger.info(f"Removed stored report {key}")
