# FILE: bteditor/__main__.py
"""
bteditor.__main__: Paketweiter Entry-Point.

- Delegiert an bteditor.app.cli.main() und reicht den Exit-Code durch.
- Logging-Konfiguration erfolgt innerhalb der CLI (EditorConfig.logging).
"""

import sys

from .app.cli import main

if __name__ == "__main__":
    sys.exit(main())
