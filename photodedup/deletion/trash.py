from __future__ import annotations

import logging
from pathlib import Path
from typing import Protocol

from send2trash import send2trash

from photodedup.library.types import RootDirectory

logger = logging.getLogger(__name__)


class FileRemover(Protocol):
    dry_run: bool

    def move_to_trash(self, path: str, root: RootDirectory) -> None:
        ...


class Send2TrashRemover:
    """Moves files to the platform trash. The root's access token is not needed here."""

    dry_run = False

    def move_to_trash(self, path: str, root: RootDirectory) -> None:
        target = Path(path)
        if not target.exists():
            raise FileNotFoundError(f"File not found: {target}")
        send2trash(str(target))
        logger.debug("Moved %s to trash (root %s)", target, root.id)


class DryRunRemover:
    dry_run = True

    def move_to_trash(self, path: str, root: RootDirectory) -> None:
        logger.info("Dry run: would move %s to trash (root %s)", path, root.id)
