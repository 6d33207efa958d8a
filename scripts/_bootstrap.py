from __future__ import annotations

import sys
from pathlib import Path


def ensure_repo_root_on_sys_path() -> None:
    """Make `import wf_power...` work when running `python scripts/xxx.py`.

    Executing a script by path puts `scripts/` on `sys.path[0]`, not the repo
    root, so the package is not importable without an install.
    """

    root = Path(__file__).resolve().parents[1]
    root_str = str(root)
    if root_str not in sys.path:
        sys.path.insert(0, root_str)
