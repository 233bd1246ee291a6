#main.py

"""
watchfs - run a command after a watched directory has gone quiet

Convenience entry point for running from a source checkout; the installed
console script is ``watchfs``.
"""
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent))

from watchfs.cli import main


if __name__ == "__main__":
    sys.exit(main())
