"""Tests for SDK binary lookup."""

from __future__ import annotations

from pathlib import Path
from unittest.mock import patch

import pytest


def _touch(path: Path) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text("")
    return path


class TestBinaryNameForOs:
    """Tests for binary_name_for_os."""

    def test_posix_unchanged(self) -> None:
        """Should keep the bare name off Windows."""
        from adb_lifecycle.sdk import binary_name_for_os

        assert binary_name_for_os("adb", windows=False) == "adb"

    def test_windows_suffixes(self) -> None:
        """Should add .exe, or .bat for the android script."""
        from adb_lifecycle.sdk import binary_name_for_os

        assert binary_name_for_os("adb", windows=True) == "adb.exe"
        assert binary_name_for_os("android", windows=True) == "android.bat"
        assert binary_name_for_os("emulator.exe", windows=True) == "emulator.exe"


class TestSdkLocator:
    """Tests for SdkLocator."""

    @pytest.mark.asyncio
    async def test_finds_platform_tool(self, tmp_path: Path) -> None:
        """Should resolve adb under platform-tools."""
        from adb_lifecycle.sdk import SdkLocator

        adb = _touch(tmp_path / "platform-tools" / "adb")
        with patch("adb_lifecycle.sdk.is_windows", return_value=False):
            path = await SdkLocator(tmp_path).get_binary_path("adb")

        assert path == str(adb)

    @pytest.mark.asyncio
    async def test_prefers_newest_build_tools(self, tmp_path: Path) -> None:
        """Should take the last matching build-tools version."""
        from adb_lifecycle.sdk import SdkLocator

        _touch(tmp_path / "build-tools" / "33.0.0" / "aapt")
        newest = _touch(tmp_path / "build-tools" / "34.0.0" / "aapt")
        with patch("adb_lifecycle.sdk.is_windows", return_value=False):
            path = await SdkLocator(tmp_path).get_binary_path("aapt")

        assert path == str(newest)

    @pytest.mark.asyncio
    async def test_missing_under_root(self, tmp_path: Path) -> None:
        """Should raise ERR_SDK_BINARY_NOT_FOUND naming the root."""
        from adb_lifecycle.errors import AgentError
        from adb_lifecycle.sdk import SdkLocator

        with pytest.raises(AgentError) as exc_info:
            await SdkLocator(tmp_path).get_binary_path("emulator")

        assert exc_info.value.code == "ERR_SDK_BINARY_NOT_FOUND"
        assert exc_info.value.context["sdk_root"] == str(tmp_path)

    @pytest.mark.asyncio
    async def test_path_fallback_and_cache(self) -> None:
        """Should use PATH without a root and only look once."""
        from adb_lifecycle.sdk import SdkLocator

        locator = SdkLocator()
        with patch("shutil.which", return_value="/usr/bin/adb") as which:
            first = await locator.get_binary_path("adb")
            second = await locator.get_binary_path("adb")

        assert first == second == "/usr/bin/adb"
        which.assert_called_once()

    @pytest.mark.asyncio
    async def test_path_fallback_missing(self) -> None:
        """Should point at ANDROID_HOME when PATH has nothing."""
        from adb_lifecycle.errors import AgentError
        from adb_lifecycle.sdk import SdkLocator

        with patch("shutil.which", return_value=None), pytest.raises(AgentError) as exc_info:
            await SdkLocator().get_binary_path("adb")

        assert exc_info.value.code == "ERR_SDK_BINARY_NOT_FOUND"
        assert "ANDROID_HOME" in exc_info.value.remediation
