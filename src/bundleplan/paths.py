"""Discovery of the files and directories an application build relies on."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Optional
from urllib.parse import urljoin, urlparse

from .env import BuildMode
from .settings import ProjectSettings, load_settings

_logger = logging.getLogger("bundleplan.paths")

# Order matters: the first extension that exists on disk wins.
MODULE_FILE_EXTENSIONS: tuple[str, ...] = (
    "web.mjs",
    "mjs",
    "web.js",
    "js",
    "web.ts",
    "ts",
    "web.tsx",
    "tsx",
    "json",
    "web.jsx",
    "jsx",
)

_STUB_DOMAIN = "https://create-react-app.dev"

PNP_MANIFESTS = (".pnp.cjs", ".pnp.js")


def resolve_module(base: Path) -> Path:
    """Return ``base`` with the first existing module extension (``.js`` if none)."""
    for ext in MODULE_FILE_EXTENSIONS:
        candidate = base.with_name(f"{base.name}.{ext}")
        if candidate.exists():
            return candidate
    return base.with_name(f"{base.name}.js")


def get_public_url_or_path(
    is_development: bool,
    homepage: Optional[str],
    env_public_url: Optional[str],
) -> str:
    """Compute the URL prefix the built assets are served from.

    ``PUBLIC_URL`` takes precedence over ``homepage`` from package.json.
    The result always ends in ``/``.
    """
    if env_public_url:
        url = env_public_url if env_public_url.endswith("/") else env_public_url + "/"
        pathname = urlparse(urljoin(_STUB_DOMAIN, url)).path or "/"
        if is_development:
            return "/" if url.startswith(".") else pathname
        return url

    if homepage:
        home = homepage if homepage.endswith("/") else homepage + "/"
        pathname = urlparse(urljoin(_STUB_DOMAIN, home)).path or "/"
        if is_development:
            return "/" if home.startswith(".") else pathname
        return home if home.startswith(".") else pathname

    return "/"


def _read_package_json(path: Path) -> dict:
    if not path.exists():
        return {}
    try:
        data = json.loads(path.read_text())
    except (OSError, ValueError) as e:
        _logger.warning("[paths] Ignoring unreadable %s: %s", path, e)
        return {}
    return data if isinstance(data, dict) else {}


@dataclass(frozen=True)
class AppPaths:
    """Resolved locations inside one application project."""

    app_path: Path
    app_src: Path
    app_public: Path
    app_html: Path
    app_build: Path
    app_index_js: Path
    app_package_json: Path
    app_tsconfig: Path
    app_jsconfig: Path
    app_node_modules: Path
    sw_src: Path
    pnp_manifest: Optional[Path]
    public_url_or_path: str
    app_name: str = ""

    @property
    def public_url_is_relative(self) -> bool:
        return self.public_url_or_path.startswith(".")

    @classmethod
    def discover(
        cls,
        project_root: str | Path,
        mode: BuildMode,
        env: Optional[Mapping[str, str]] = None,
        settings: Optional[ProjectSettings] = None,
    ) -> "AppPaths":
        """Locate every project file relative to *project_root*.

        Only existence checks are performed; nothing is required to exist
        here (see ``descriptor.check_required_files``).
        """
        root = Path(project_root).resolve()
        src = env or {}
        cfg = settings if settings is not None else load_settings(root)

        pkg_path = root / "package.json"
        pkg = _read_package_json(pkg_path)

        build_path = (src.get("BUILD_PATH") or "").strip()
        app_build = (root / build_path) if build_path else (root / cfg.build_dir)

        app_src = root / cfg.src_dir
        app_public = root / cfg.public_dir

        pnp_manifest = next((root / m for m in PNP_MANIFESTS if (root / m).exists()), None)

        paths = cls(
            app_path=root,
            app_src=app_src,
            app_public=app_public,
            app_html=app_public / cfg.html_template,
            app_build=app_build.resolve(),
            app_index_js=resolve_module(app_src / cfg.entry),
            app_package_json=pkg_path,
            app_tsconfig=root / "tsconfig.json",
            app_jsconfig=root / "jsconfig.json",
            app_node_modules=root / "node_modules",
            sw_src=resolve_module(app_src / cfg.service_worker),
            pnp_manifest=pnp_manifest,
            public_url_or_path=get_public_url_or_path(
                mode is BuildMode.DEVELOPMENT,
                pkg.get("homepage"),
                src.get("PUBLIC_URL"),
            ),
            app_name=str(pkg.get("name") or ""),
        )
        _logger.debug(
            "[paths] root=%s src=%s public_url=%s", paths.app_path, paths.app_src, paths.public_url_or_path
        )
        return paths
