"""adb connection and emulator lifecycle management."""

__version__ = "0.1.0"
