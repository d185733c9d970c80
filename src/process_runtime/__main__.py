"""`python -m process_runtime` 入口。"""

from __future__ import annotations

from process_runtime.cli.main import main

if __name__ == "__main__":
    raise SystemExit(main())
