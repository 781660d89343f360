#!/usr/bin/env python3
"""Nova voice assistant daemon."""

from __future__ import annotations

from nova.assistant.runtime import run

if __name__ == "__main__":
    run()
