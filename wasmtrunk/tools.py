"""Locate external build tools, downloading and installing them when missing."""

from __future__ import annotations

import enum
import logging
import os
import platform
import shutil
import subprocess
import sys
import tarfile
import threading
import zipfile
from collections.abc import Sequence
from pathlib import Path, PurePosixPath

import platformdirs
import requests

logger = logging.getLogger(__name__)

_VERSION_FLAG = "--version"
_DOWNLOAD_CHUNK = 64 * 1024
_DOWNLOAD_TIMEOUT = 60


class ToolError(Exception):
    """Raised when a tool cannot be located, downloaded, installed or run."""


def _current_os() -> str | None:
    if sys.platform.startswith("win"):
        return "windows"
    if sys.platform == "darwin":
        return "macos"
    if sys.platform.startswith("linux"):
        return "linux"
    return None


def _current_arch() -> str | None:
    machine = platform.machine().lower()
    if machine in ("x86_64", "amd64"):
        return "x86_64"
    if machine in ("aarch64", "arm64"):
        return "aarch64"
    return None


class Application(enum.Enum):
    """An external application; the value is its executable base name."""

    SASS = "sass"
    WASM_BINDGEN = "wasm-bindgen"
    WASM_OPT = "wasm-opt"

    def executable_path(self) -> str:
        """Path of the executable within the downloaded archive."""
        if _current_os() == "windows":
            return {
                Application.SASS: "sass.bat",
                Application.WASM_BINDGEN: "wasm-bindgen.exe",
                Application.WASM_OPT: "bin/wasm-opt.exe",
            }[self]
        return {
            Application.SASS: "sass",
            Application.WASM_BINDGEN: "wasm-bindgen",
            Application.WASM_OPT: "bin/wasm-opt",
        }[self]

    def extra_paths(self) -> tuple[str, ...]:
        """Additional archive files needed to run the main binary."""
        target_os = _current_os()
        if self is Application.SASS:
            if target_os == "windows":
                return ("src/dart.exe", "src/sass.snapshot")
            if target_os == "macos":
                return ("src/dart", "src/sass.snapshot")
            return ()
        if self is Application.WASM_OPT and target_os == "macos":
            return ("lib/libbinaryen.dylib",)
        return ()

    def default_version(self) -> str:
        """Version used when none is configured."""
        return {
            Application.SASS: "1.50.0",
            Application.WASM_BINDGEN: "0.2.80",
            Application.WASM_OPT: "version_105",
        }[self]

    def url(
        self,
        version: str,
        target_os: str | None = None,
        target_arch: str | None = None,
    ) -> str:
        """Download URL of the release archive for the given platform."""
        target_os = target_os or _current_os()
        if target_os not in ("windows", "macos", "linux"):
            raise ToolError("unsupported OS")
        target_arch = target_arch or _current_arch()
        if target_arch not in ("x86_64", "aarch64"):
            raise ToolError("unsupported target architecture")

        if self is Application.SASS:
            base = f"https://github.com/sass/dart-sass/releases/download/{version}/dart-sass-{version}"
            if target_os == "windows" and target_arch == "x86_64":
                return f"{base}-windows-x64.zip"
            if target_os in ("macos", "linux") and target_arch == "x86_64":
                return f"{base}-{target_os}-x64.tar.gz"
            if target_os in ("macos", "linux") and target_arch == "aarch64":
                return f"{base}-{target_os}-arm64.tar.gz"
            raise ToolError(f"Unable to download Sass for {target_os} {target_arch}")

        if self is Application.WASM_BINDGEN:
            triple = {
                "windows": "pc-windows-msvc",
                "macos": "apple-darwin",
                "linux": "unknown-linux-musl",
            }[target_os]
            return (
                f"https://github.com/rustwasm/wasm-bindgen/releases/download/{version}/"
                f"wasm-bindgen-{version}-x86_64-{triple}.tar.gz"
            )

        base = f"https://github.com/WebAssembly/binaryen/releases/download/{version}/binaryen-{version}"
        if target_os == "macos" and target_arch == "aarch64":
            return f"{base}-arm64-macos.tar.gz"
        return f"{base}-{target_arch}-{target_os}.tar.gz"

    def format_version_output(self, text: str) -> str:
        """Extract the version from the output of ``<app> --version``."""
        text = text.strip()
        malformed = ToolError(f"missing or malformed version output: {text}")
        if self is Application.SASS:
            lines = text.splitlines()
            if not lines:
                raise malformed
            return lines[0]
        words = text.split(" ")
        index = 1 if self is Application.WASM_BINDGEN else 2
        if len(words) <= index:
            raise malformed
        if self is Application.WASM_BINDGEN:
            return words[index]
        return f"version_{words[index]}"


def _entry_matches(name: str, wanted: str) -> bool:
    """Compare an archive entry with a path, ignoring the entry's first component."""
    return PurePosixPath(name).parts[1:] == PurePosixPath(wanted).parts


def _write_output(source, file: str, target: Path) -> Path:
    out = Path(target) / file
    try:
        out.parent.mkdir(parents=True, exist_ok=True)
    except OSError as err:
        raise ToolError("failed creating output directory") from err
    try:
        with out.open("wb") as handle:
            shutil.copyfileobj(source, handle)
    except OSError as err:
        raise ToolError("failed copying over final output file from archive") from err
    return out


def _set_permissions(path: Path, mode: int) -> None:
    if os.name != "posix":
        return
    try:
        os.chmod(path, mode & 0o7777)
    except OSError as err:
        raise ToolError("failed setting file permissions") from err


class Archive:
    """A downloaded release archive, either gzipped tar or zip."""

    def __init__(self, path: str | os.PathLike, is_zip: bool = False) -> None:
        self.path = Path(path)
        self.is_zip = is_zip

    def extract_file(self, file: str, target: str | os.PathLike) -> Path:
        """Extract ``file`` (without the archive's top directory) below ``target``."""
        if self.is_zip:
            return self._extract_zip(file, Path(target))
        return self._extract_tar(file, Path(target))

    def _extract_tar(self, file: str, target: Path) -> Path:
        try:
            with tarfile.open(self.path, "r:gz") as archive:
                for member in archive:
                    if not _entry_matches(member.name, file):
                        continue
                    source = archive.extractfile(member)
                    if source is None:
                        raise ToolError(f"archive entry is not a file: {member.name}")
                    with source:
                        out = _write_output(source, file, target)
                    _set_permissions(out, member.mode)
                    return out
        except (tarfile.TarError, OSError, EOFError) as err:
            raise ToolError("failed getting archive entries") from err
        raise ToolError("file not found in archive")

    def _extract_zip(self, file: str, target: Path) -> Path:
        try:
            with zipfile.ZipFile(self.path) as archive:
                for info in archive.infolist():
                    name = PurePosixPath(info.filename)
                    if name.is_absolute() or ".." in name.parts:
                        raise ToolError("invalid entry path")
                    if not _entry_matches(info.filename, file):
                        continue
                    with archive.open(info) as source:
                        out = _write_output(source, file, target)
                    mode = info.external_attr >> 16
                    if mode:
                        _set_permissions(out, mode)
                    return out
        except (zipfile.BadZipFile, OSError) as err:
            raise ToolError("failed reading zip archive") from err
        raise ToolError("file not found in archive")


def cache_dir() -> Path:
    """Locate the tool cache directory, creating it when needed."""
    path = Path(platformdirs.user_cache_dir("wasmtrunk", "wasmtrunk"))
    try:
        path.mkdir(parents=True, exist_ok=True)
    except OSError as err:
        raise ToolError("failed creating cache directory") from err
    return path


def _is_executable(path: Path) -> bool:
    return path.is_file() and os.access(path, os.X_OK)


def find_system(app: Application, version: str | None) -> tuple[Path, str] | None:
    """Find a system-installed ``app``, returning it only if its version fits."""
    try:
        found = shutil.which(app.value)
        if found is None:
            raise ToolError(f"{app.value} not found on PATH")
        result = subprocess.run(
            [found, _VERSION_FLAG], capture_output=True, check=False
        )
        if result.returncode != 0:
            raise ToolError(f"running command `{found} {_VERSION_FLAG}` failed")
        text = result.stdout.decode("utf-8", errors="replace")
        system_version = app.format_version_output(text)
    except (ToolError, OSError, subprocess.SubprocessError) as err:
        logger.debug("system version not found for %s: %s", app.value, err)
        return None
    if version is not None and version != system_version:
        return None
    return Path(found), system_version


def download(app: Application, version: str) -> Path:
    """Download the release archive of ``app`` into the cache directory."""
    logger.info("downloading %s %s", app.value, version)
    temp_out = cache_dir() / f"{app.value}-{version}.tmp"
    url = app.url(version)
    try:
        resp = requests.get(url, stream=True, timeout=_DOWNLOAD_TIMEOUT)
    except requests.RequestException as err:
        raise ToolError("error sending HTTP request") from err
    try:
        if not 200 <= resp.status_code < 300:
            raise ToolError(f"error downloading archive file: {resp.status_code}\n{url}")
        try:
            with temp_out.open("wb") as handle:
                for chunk in resp.iter_content(chunk_size=_DOWNLOAD_CHUNK):
                    handle.write(chunk)
        except requests.RequestException as err:
            raise ToolError("error reading chunk from download") from err
        except OSError as err:
            raise ToolError("failed creating temporary output file") from err
    finally:
        resp.close()
    return temp_out


def install(app: Application, archive_path: str | os.PathLike, target: str | os.PathLike) -> None:
    """Extract the executable of ``app`` and its support files into ``target``."""
    logger.info("installing %s", app.value)
    is_zip = app is Application.SASS and _current_os() == "windows"
    archive = Archive(archive_path, is_zip=is_zip)
    archive.extract_file(app.executable_path(), target)
    for extra in app.extra_paths():
        archive.extract_file(extra, target)


_install_lock = threading.Lock()
_installed: set[tuple[Application, str]] = set()


def _install_once(app: Application, version: str, app_dir: Path) -> None:
    with _install_lock:
        key = (app, version)
        if key in _installed:
            return
        archive_path = download(app, version)
        install(app, archive_path, app_dir)
        try:
            archive_path.unlink()
        except OSError as err:
            raise ToolError("failed deleting temporary archive") from err
        _installed.add(key)


def get(app: Application, version: str | None = None) -> Path:
    """Locate ``app``, downloading the requested version if it is missing."""
    system = find_system(app, version)
    if system is not None:
        path, system_version = system
        logger.info("using system installed binary %s %s", app.value, system_version)
        return path

    version = version or app.default_version()
    app_dir = cache_dir() / f"{app.value}-{version}"
    bin_path = app_dir / app.executable_path()
    if not _is_executable(bin_path):
        _install_once(app, version, app_dir)
    return bin_path


def run_command(name: str, path: str | os.PathLike, args: Sequence[str]) -> None:
    """Run ``path`` with ``args``, raising ToolError if it fails to start or exits badly."""
    try:
        result = subprocess.run([os.fspath(path), *args], check=False)
    except FileNotFoundError as err:
        raise ToolError(f"{name} not found") from err
    except OSError as err:
        raise ToolError(f"error spawning {name} call") from err
    if result.returncode != 0:
        raise ToolError(f"{name} call returned a bad status")