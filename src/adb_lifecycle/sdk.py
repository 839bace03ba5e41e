"""Android SDK tool lookup - finds adb, emulator and build-tools binaries."""

from __future__ import annotations

import asyncio
import shutil
import sys
from pathlib import Path

import structlog

from adb_lifecycle.errors import sdk_binary_not_found_error

logger = structlog.get_logger()

# Relative to the SDK root, searched in order; build-tools versions are appended.
SDK_TOOL_DIRS = ("platform-tools", "tools", "emulator")


def is_windows() -> bool:
    return sys.platform.startswith("win")


def binary_name_for_os(binary: str, windows: bool | None = None) -> str:
    """Return the on-disk name of an SDK tool for the current platform."""
    windows = is_windows() if windows is None else windows
    if not windows:
        return binary
    if binary == "android":
        return f"{binary}.bat"
    if not binary.endswith(".exe"):
        return f"{binary}.exe"
    return binary


class SdkLocator:
    """Resolves SDK binaries from ANDROID_HOME or PATH."""

    def __init__(self, sdk_root: Path | None = None) -> None:
        self.sdk_root = sdk_root
        self._cache: dict[str, str] = {}

    async def get_binary_path(self, binary: str) -> str:
        """Locate an SDK binary.

        Args:
            binary: Tool name without extension (e.g. 'adb', 'emulator')

        Returns:
            Absolute path to the binary

        Raises:
            AgentError: If the binary cannot be found
        """
        if binary in self._cache:
            return self._cache[binary]

        logger.info("sdk_binary_lookup", binary=binary, sdk_root=str(self.sdk_root or ""))
        if self.sdk_root:
            path = await asyncio.to_thread(self._from_sdk_root, binary)
        else:
            logger.warning(
                "sdk_root_not_set",
                binary=binary,
                hint="ANDROID_HOME is required for SDK 23+, checking PATH",
            )
            path = await asyncio.to_thread(self._from_path, binary)

        logger.info("sdk_binary_found", binary=binary, path=path)
        self._cache[binary] = path
        return path

    def candidate_paths(self, binary: str) -> list[Path]:
        """List every location under the SDK root a tool may live in."""
        if self.sdk_root is None:
            return []
        name = binary_name_for_os(binary)
        root = Path(self.sdk_root)
        candidates = [root / tool_dir / name for tool_dir in SDK_TOOL_DIRS]
        build_tools = root / "build-tools"
        if build_tools.is_dir():
            for version_dir in sorted(p for p in build_tools.iterdir() if p.is_dir()):
                candidates.append(version_dir / name)
        return candidates

    def _from_sdk_root(self, binary: str) -> str:
        found: Path | None = None
        # Last existing candidate wins so the newest build-tools is preferred.
        for candidate in self.candidate_paths(binary):
            if candidate.is_file():
                found = candidate
        if found is None:
            raise sdk_binary_not_found_error(binary, str(self.sdk_root))
        return str(found).strip()

    def _from_path(self, binary: str) -> str:
        located = shutil.which(binary_name_for_os(binary))
        if not located:
            raise sdk_binary_not_found_error(binary, None)
        return located.strip()
