from __future__ import annotations

from _bootstrap import ensure_repo_root_on_sys_path

ensure_repo_root_on_sys_path()

from wf_power.monitor import main


if __name__ == "__main__":
    raise SystemExit(main())
