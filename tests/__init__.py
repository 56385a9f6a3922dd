# Make "tests" importable as a package for absolute imports used in conftest/tests.
# Also put the project root and src/ on sys.path when running pytest without an install.
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
for p in (ROOT, ROOT / "src"):
    if str(p) not in sys.path:
        sys.path.insert(0, str(p))
