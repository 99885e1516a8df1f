"""
Artifacts - Persist page sources and screenshots for post-mortem debugging
"""
import re
import time
from pathlib import Path
from typing import Optional


class ArtifactStore:
    """Writes diagnostic files under a single artifacts root"""

    DEBUG_DIR = "debug"
    PAGE_SOURCES_DIR = "pagesources"
    SCREENSHOTS_DIR = "screenshots"

    def __init__(self, root: str = "artifacts"):
        """
        Args:
            root: Artifacts root directory (created lazily)
        """
        self.root = Path(root)

    @staticmethod
    def safe_name(label: str) -> str:
        """Turn a test title or anchor description into a file-name fragment"""
        name = re.sub(r"\s+", "_", label.strip())
        return re.sub(r"[^\w.\-]", "", name) or "unnamed"

    def _path(self, subdir: str, label: str, suffix: str) -> Path:
        directory = self.root / subdir
        directory.mkdir(parents=True, exist_ok=True)
        timestamp = int(time.time() * 1000)
        return directory / f"{self.safe_name(label)}-{timestamp}{suffix}"

    def save_debug_source(self, source: str, label: str) -> Path:
        """Dump a UI snapshot captured after every locate strategy failed"""
        path = self._path(self.DEBUG_DIR, f"pageSource-{label}", ".xml")
        path.write_text(source, encoding="utf-8")
        return path

    def save_page_source(self, source: str, label: str) -> Path:
        path = self._path(self.PAGE_SOURCES_DIR, label, ".xml")
        path.write_text(source, encoding="utf-8")
        return path

    def save_screenshot(self, session, label: str) -> Optional[Path]:
        """
        Save a device screenshot

        Args:
            session: AutomationSession
            label: Test title or other label

        Returns:
            Path of the PNG, or None if the device refused
        """
        path = self._path(self.SCREENSHOTS_DIR, label, ".png")
        if session.save_screenshot(str(path)):
            return path
        return None
