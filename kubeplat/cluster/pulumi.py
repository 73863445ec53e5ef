import os
import platform
import shutil
import tarfile
import zipfile
from pathlib import Path
from typing import Dict

import requests

from kubeplat.logger import logger
from kubeplat.utils import calculate_sha256, download_url, get_project_data_dir

# Pin the Pulumi version to avoid breaking changes
PULUMI_VERSION = "v3.137.0"
RELEASES_URL = "https://github.com/pulumi/pulumi/releases/download"


def change_permissions_recursive(path: Path, mode: int) -> None:
    for child in path.iterdir():
        child.chmod(mode)
        if child.is_dir():
            change_permissions_recursive(child, mode)


def _release_arch(machine: str) -> str:
    if machine in ["amd64", "x86_64"]:
        return "x64"
    elif machine in ["arm64", "aarch64"]:
        return "arm64"
    raise RuntimeError(f"Unsupported architecture: {machine}")


def archive_name(version: str, system: str, machine: str) -> str:
    """
    The name of the release archive for a platform, e.g. pulumi-v3.137.0-linux-x64.tar.gz.
    """
    ext = "zip" if system == "windows" else "tar.gz"
    return f"pulumi-{version}-{system}-{_release_arch(machine)}.{ext}"


def fetch_checksums(version: str) -> Dict[str, str]:
    """
    Downloads the SHA-256 checksums published with a Pulumi release.

    Returns:
        Dict[str, str]: The checksums by archive name.
    """
    url = f"{RELEASES_URL}/{version}/pulumi-{version[1:]}-checksums.txt"
    response = requests.get(url, timeout=30)
    response.raise_for_status()

    checksums = {}
    for line in response.text.strip().splitlines():
        sha256, filename = line.split()
        checksums[filename] = sha256
    return checksums


def _extract(archive_file: str, dest: Path, system: str) -> None:
    if system == "windows":
        with zipfile.ZipFile(archive_file, "r") as zip_ref:
            zip_ref.extractall(dest)
    else:
        with tarfile.open(archive_file, "r:gz") as tar:
            tar.extractall(dest)


def _prepend_path(path: Path) -> None:
    os.environ["PATH"] = f"{path}{os.pathsep}{os.environ.get('PATH', '')}"


def ensure_pulumi(version: str = PULUMI_VERSION) -> None:
    """
    Makes a pinned Pulumi CLI available on PATH, downloading it into the
    kubeplat data directory on first use. The archive is verified against the
    release checksums.
    """
    # A Pulumi CLI already on PATH wins
    if shutil.which("pulumi"):
        return

    bin_dir = Path(get_project_data_dir()) / "bin"
    bin_dir.mkdir(parents=True, exist_ok=True)

    installed = bin_dir / f"pulumi-{version}"
    if installed.is_dir():
        _prepend_path(installed)
        return

    system = platform.system().lower()
    archive = archive_name(version, system, platform.machine().lower())

    checksums = fetch_checksums(version)
    if archive not in checksums:
        raise RuntimeError(f"SHA256 not found for {archive}")

    logger.info(f"Downloading {archive}...")

    with download_url(f"{RELEASES_URL}/{version}/{archive}") as archive_file:
        actual = calculate_sha256(archive_file)
        if actual != checksums[archive]:
            raise RuntimeError(f"SHA256 mismatch: {actual} != {checksums[archive]}")
        _extract(archive_file, bin_dir, system)

    # Archives unpack into a "pulumi" directory
    extracted = bin_dir / "pulumi"
    change_permissions_recursive(extracted, 0o755)
    extracted.rename(installed)

    # On windows the binaries are under pulumi/bin
    if system == "windows":
        for file in (installed / "bin").iterdir():
            if file.is_file():
                shutil.move(str(file), str(installed))

    logger.info("Pulumi installed successfully.")
    _prepend_path(installed)
