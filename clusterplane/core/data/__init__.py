"""
Bundled static data shipped with the package.

    providers.yml — default infrastructure provider registrations
"""

from __future__ import annotations

from pathlib import Path

DATA_DIR = Path(__file__).parent
PROVIDERS_FILE = DATA_DIR / "providers.yml"
