# Copyright (c) 2024 clisession Contributors
# MIT License

"""clisession release metadata."""

from __future__ import annotations

__version__ = "0.1.0"
__author__ = "clisession Contributors"
__codename__ = "Fingerprint"

# Version info tuple for programmatic comparison
VERSION_INFO = (0, 1, 0)
