"""Locate, or fetch, the ffmpeg / ffprobe binary pair.

Search order: the system PATH, then each candidate directory in order. When
either binary is missing the orchestrator downloads a static build into the
config directory and searches again.
"""

import logging
import os
import platform
import shutil
import stat
import sys
import tarfile
import tempfile
import zipfile
from dataclasses import dataclass
from pathlib import Path

import httpx

from reelvault.domain.exceptions import TranscoderError

logger = logging.getLogger(__name__)

FFMPEG = "ffmpeg"
FFPROBE = "ffprobe"

# One archive per platform containing both binaries
DOWNLOAD_URLS = {
    "windows": "https://www.gyan.dev/ffmpeg/builds/ffmpeg-release-essentials.zip",
    "linux": "https://johnvansickle.com/ffmpeg/releases/ffmpeg-release-amd64-static.tar.xz",
    "linux-arm64": "https://johnvansickle.com/ffmpeg/releases/ffmpeg-release-arm64-static.tar.xz",
    "darwin": "https://github.com/eugeneware/ffmpeg-static/releases/latest/download/ffmpeg-ffprobe-darwin-x64.zip",
}


@dataclass(frozen=True)
class TranscoderPaths:
    """Resolved binaries. Empty string means not found."""

    ffmpeg: str = ""
    ffprobe: str = ""

    @property
    def complete(self) -> bool:
        return bool(self.ffmpeg and self.ffprobe)


def executable_name(name: str) -> str:
    return f"{name}.exe" if sys.platform == "win32" else name


def platform_key() -> str | None:
    """Key into DOWNLOAD_URLS for this machine, or None if unsupported."""
    system = platform.system().lower()
    machine = platform.machine().lower()
    if system == "linux" and machine in ("aarch64", "arm64"):
        return "linux-arm64"
    if system in DOWNLOAD_URLS:
        return system
    return None


def _find_in_paths(directories: list[str], filename: str) -> str:
    for directory in directories:
        if not directory:
            continue
        candidate = Path(directory) / filename
        if candidate.is_file():
            return str(candidate)
    return ""


def find_binaries(directories: list[str]) -> TranscoderPaths:
    """Look for ffmpeg and ffprobe on PATH, then in directories (in order)."""
    found: dict[str, str] = {}
    for name in (FFMPEG, FFPROBE):
        filename = executable_name(name)
        found[name] = shutil.which(filename) or _find_in_paths(directories, filename)
    return TranscoderPaths(ffmpeg=found[FFMPEG], ffprobe=found[FFPROBE])


def _make_executable(path: Path) -> None:
    mode = path.stat().st_mode
    path.chmod(mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)


def _extract_binaries(archive_path: Path, dest_dir: Path) -> list[Path]:
    """Pull ffmpeg/ffprobe out of an archive, ignoring its folder layout."""
    wanted = {executable_name(FFMPEG), executable_name(FFPROBE)}
    extracted: list[Path] = []

    if zipfile.is_zipfile(archive_path):
        with zipfile.ZipFile(archive_path) as zf:
            for info in zf.infolist():
                name = Path(info.filename).name
                if info.is_dir() or name not in wanted:
                    continue
                target = dest_dir / name
                with zf.open(info) as src, open(target, "wb") as dst:
                    shutil.copyfileobj(src, dst)
                extracted.append(target)
    elif tarfile.is_tarfile(archive_path):
        with tarfile.open(archive_path) as tf:
            for member in tf.getmembers():
                name = Path(member.name).name
                if not member.isfile() or name not in wanted:
                    continue
                src = tf.extractfile(member)
                if src is None:
                    continue
                target = dest_dir / name
                with src, open(target, "wb") as dst:
                    shutil.copyfileobj(src, dst)
                extracted.append(target)
    else:
        raise TranscoderError(f"unsupported archive format: {archive_path.name}")

    return extracted


def download(
    dest_dir: str,
    url: str | None = None,
    timeout: float = 300.0,
) -> list[str]:
    """Download and unpack ffmpeg + ffprobe into dest_dir.

    Raises:
        TranscoderError: If the platform is unsupported, the download fails,
            or the archive does not contain both binaries
    """
    if url is None:
        key = platform_key()
        if key is None:
            raise TranscoderError(
                f"no ffmpeg download available for {platform.system()} {platform.machine()}"
            )
        url = DOWNLOAD_URLS[key]

    dest = Path(dest_dir)
    dest.mkdir(parents=True, exist_ok=True)
    logger.info("Downloading ffmpeg from %s", url)

    fd, tmp_name = tempfile.mkstemp(prefix="ffmpeg-", dir=dest)
    archive_path = Path(tmp_name)
    try:
        with os.fdopen(fd, "wb") as out:
            with httpx.stream("GET", url, follow_redirects=True, timeout=timeout) as response:
                response.raise_for_status()
                for chunk in response.iter_bytes():
                    out.write(chunk)

        extracted = _extract_binaries(archive_path, dest)
    except httpx.HTTPError as e:
        raise TranscoderError(f"error downloading ffmpeg: {e}") from e
    except (OSError, zipfile.BadZipFile, tarfile.TarError) as e:
        raise TranscoderError(f"error extracting ffmpeg: {e}") from e
    finally:
        archive_path.unlink(missing_ok=True)

    names = {p.name for p in extracted}
    if names != {executable_name(FFMPEG), executable_name(FFPROBE)}:
        raise TranscoderError(f"downloaded archive is missing binaries (found: {sorted(names)})")

    for path in extracted:
        _make_executable(path)
        logger.info("Installed %s", path)
    return [str(p) for p in extracted]


class TranscoderLocator:
    """Resolves transcoder binaries, downloading them once if needed."""

    def __init__(self, download_timeout: float = 300.0, download_url: str | None = None) -> None:
        self._download_timeout = download_timeout
        self._download_url = download_url

    def resolve(self, search_dirs: list[str], download_dir: str) -> TranscoderPaths:
        """Find both binaries; fetch into download_dir if either is missing.

        Raises:
            TranscoderError: If the binaries cannot be found or downloaded
        """
        paths = find_binaries(search_dirs)
        if paths.complete:
            return paths

        logger.info("Couldn't find FFMPEG, attempting to download it")
        try:
            download(download_dir, url=self._download_url, timeout=self._download_timeout)
        except TranscoderError as e:
            logger.error(
                "Unable to locate / automatically download FFMPEG. The ffmpeg and "
                "ffprobe binaries should be placed in %s. The error was: %s",
                download_dir,
                e,
            )
            raise

        # Re-resolve after download
        paths = find_binaries(search_dirs)
        if not paths.complete:
            raise TranscoderError("ffmpeg and/or ffprobe still missing after download")
        return paths
