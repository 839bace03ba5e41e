"""adb invocation, discovery, server control and retry."""
