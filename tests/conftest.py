from __future__ import annotations

import json
import sys
from pathlib import Path

import pytest
from dotenv import load_dotenv

_PROJECT_ROOT = Path(__file__).resolve().parents[1]
_SRC = (_PROJECT_ROOT / "src").resolve()
if str(_SRC) not in sys.path:
    sys.path.insert(0, str(_SRC))

# Load .env from project root (e.g. BUNDLEPLAN_LOG_LEVEL for local runs)
load_dotenv(_PROJECT_ROOT / ".env", override=False)


@pytest.fixture()
def project(tmp_path: Path) -> Path:
    """Minimal application project with the files a build requires."""
    root = tmp_path / "demo-app"
    (root / "public").mkdir(parents=True)
    (root / "src").mkdir()
    (root / "public" / "index.html").write_text("<!doctype html><div id=\"root\"></div>")
    (root / "src" / "index.js").write_text("import './index.css';\n")
    (root / "package.json").write_text(json.dumps({"name": "demo-app", "version": "0.1.0"}))
    return root.resolve()
