"""Generated-content directory layout and provisioning."""

import logging
from dataclasses import dataclass
from pathlib import Path

from reelvault.infrastructure.fs import ensure_dir

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class GeneratedPaths:
    """Directories under the generated-content root."""

    root: str
    screenshots: str
    thumbnails: str
    vtt: str
    markers: str
    transcodes: str
    downloads: str
    tmp: str
    interactive_heatmap: str

    @classmethod
    def from_root(cls, root: str) -> "GeneratedPaths":
        base = Path(root)
        return cls(
            root=root,
            screenshots=str(base / "screenshots"),
            thumbnails=str(base / "thumbnails"),
            vtt=str(base / "vtt"),
            markers=str(base / "markers"),
            transcodes=str(base / "transcodes"),
            downloads=str(base / "download_stage"),
            tmp=str(base / "tmp"),
            interactive_heatmap=str(base / "interactive_heatmaps"),
        )


# Names of the directories provisioned on every config refresh
PROVISIONED = (
    "screenshots",
    "vtt",
    "markers",
    "transcodes",
    "downloads",
    "tmp",
    "interactive_heatmap",
)


@dataclass(frozen=True)
class Paths:
    """All derived paths. Rebuilt whenever configuration changes."""

    generated: GeneratedPaths

    @classmethod
    def from_generated_root(cls, generated_root: str) -> "Paths":
        return cls(generated=GeneratedPaths.from_root(generated_root))


class DirectoryProvisioner:
    """Ensures the generated-content directories exist.

    Each directory is independent: a failure is logged and the rest are still
    attempted.
    """

    def provision(self, paths: Paths) -> list[str]:
        """Create every provisioned directory.

        Returns:
            Names of directories that could not be created
        """
        failed: list[str] = []
        for name in PROVISIONED:
            directory = getattr(paths.generated, name)
            try:
                ensure_dir(directory)
            except OSError as e:
                logger.warning("Could not create directory for %s: %s", name, e)
                failed.append(name)
        return failed


__all__ = ["DirectoryProvisioner", "GeneratedPaths", "Paths", "PROVISIONED"]
