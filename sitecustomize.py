"""Path bootstrapper for running from a source checkout.

Python imports ``sitecustomize`` automatically when it is on the path. This
module puts ``src/`` on ``sys.path`` so ``python -m cshealth.cli.score_accounts``
works from the repository root without ``pip install -e .``. The tests add the
same path in ``tests/conftest.py``.
"""
from __future__ import annotations

import sys
from pathlib import Path

_SRC = Path(__file__).resolve().parent / "src"
if _SRC.exists() and str(_SRC) not in sys.path:
    sys.path.insert(0, str(_SRC))
