"""Tests for the transformation rule assembler."""

import re
from pathlib import Path
from typing import Optional

import pytest

from bundleplan.env import BuildMode, EnvironmentFlags
from bundleplan.rules import FileMatcher, build_module_rules, select_rule
from bundleplan.steps import ProcessorId

ROOT = Path("/work/app")
APP_SRC = ROOT / "src"

DEV = EnvironmentFlags(mode=BuildMode.DEVELOPMENT)
PROD = EnvironmentFlags(mode=BuildMode.PRODUCTION)

EXPECTED_ORDER = [
    "avif",
    "images",
    "app-scripts",
    "dependency-scripts",
    "css",
    "css-modules",
    "sass",
    "sass-modules",
    "fallback",
]

SAMPLE_PATHS = [
    "src/App.js",
    "src/App.jsx",
    "src/App.ts",
    "src/components/Button.tsx",
    "src/worker.mjs",
    "src/index.css",
    "src/Button.module.css",
    "src/theme.scss",
    "src/theme.sass",
    "src/Card.module.scss",
    "src/Card/index.module.sass",
    "src/logo.svg",
    "src/photo.jpg",
    "src/photo.jpeg",
    "src/photo.png",
    "src/anim.gif",
    "src/old.bmp",
    "src/modern.avif",
    "src/font.woff2",
    "src/data.json",
    "src/template.html",
    "public/index.html",
    "node_modules/lib/index.js",
    "node_modules/lib/index.mjs",
    "node_modules/lib/index.ts",
    "node_modules/lib/styles.css",
    "node_modules/lib/styles.module.css",
    "node_modules/@babel/runtime/helpers/extends.js",
    "node_modules/lib/image.png",
    "README.md",
]


def _reference_owner(path: str) -> Optional[str]:
    """Independent scan of the documented category order."""
    src = APP_SRC.as_posix() + "/"
    if path.endswith(".avif"):
        return "avif"
    if re.search(r"\.(bmp|gif|jpe?g|png)$", path):
        return "images"
    if path.startswith(src) and re.search(r"\.(js|mjs|jsx|ts|tsx)$", path):
        return "app-scripts"
    if re.search(r"\.(js|mjs)$", path) and "@babel/runtime" not in path:
        return "dependency-scripts"
    if path.endswith(".module.css"):
        return "css-modules"
    if path.endswith(".css"):
        return "css"
    if re.search(r"\.module\.(scss|sass)$", path):
        return "sass-modules"
    if re.search(r"\.(scss|sass)$", path):
        return "sass"
    if re.search(r"\.(js|mjs|jsx|ts|tsx|html|json)$", path):
        return None
    return "fallback"


# ---------------------------------------------------------------------------
# Ordering
# ---------------------------------------------------------------------------

@pytest.mark.parametrize("flags", [DEV, PROD])
def test_rule_order(flags: EnvironmentFlags) -> None:
    rules = build_module_rules(flags, app_src=APP_SRC)
    assert [r.name for r in rules] == EXPECTED_ORDER


@pytest.mark.parametrize("flags", [DEV, PROD])
def test_only_last_rule_is_fallback_and_others_have_steps(flags: EnvironmentFlags) -> None:
    rules = build_module_rules(flags, app_src=APP_SRC)
    assert [r.is_fallback for r in rules] == [False] * 8 + [True]
    assert all(r.steps for r in rules)


@pytest.mark.parametrize("relative", SAMPLE_PATHS)
@pytest.mark.parametrize("flags", [DEV, PROD])
def test_first_match_agrees_with_reference_scan(flags: EnvironmentFlags, relative: str) -> None:
    path = (ROOT / relative).as_posix()
    rule = select_rule(build_module_rules(flags, app_src=APP_SRC), path)
    assert (rule.name if rule else None) == _reference_owner(path)


@pytest.mark.parametrize("relative", SAMPLE_PATHS)
def test_fallback_never_intercepts_earlier_matches(relative: str) -> None:
    rules = build_module_rules(PROD, app_src=APP_SRC)
    path = ROOT / relative
    specific = [r for r in rules[:-1] if r.applies_to(path)]
    if specific:
        assert select_rule(rules, path) is specific[0]


def test_select_rule_examples() -> None:
    rules = build_module_rules(DEV, app_src=APP_SRC)
    assert select_rule(rules, APP_SRC / "Button.module.css").name == "css-modules"
    assert select_rule(rules, APP_SRC / "index.css").name == "css"
    assert select_rule(rules, APP_SRC / "logo.svg").name == "fallback"
    assert select_rule(rules, ROOT / "node_modules/lib/index.ts") is None
    assert select_rule(rules, APP_SRC / "data.json") is None


# ---------------------------------------------------------------------------
# FileMatcher
# ---------------------------------------------------------------------------

def test_file_matcher_include_is_directory_prefix() -> None:
    matcher = FileMatcher.of(r"\.js$", include=APP_SRC)
    assert matcher(APP_SRC / "a.js")
    assert matcher(APP_SRC / "nested" / "b.js")
    assert not matcher(ROOT / "src-other" / "a.js")
    assert not matcher(ROOT / "a.js")


def test_file_matcher_windows_separators() -> None:
    matcher = FileMatcher.of(r"@babel(?:/|\\{1,2})runtime")
    assert matcher("C:/app/node_modules/@babel/runtime/x.js")


# ---------------------------------------------------------------------------
# Per-rule steps
# ---------------------------------------------------------------------------

def test_image_rules() -> None:
    flags = EnvironmentFlags(mode=BuildMode.PRODUCTION, image_inline_size_limit=2048)
    avif, images = build_module_rules(flags, app_src=APP_SRC)[:2]
    assert avif.steps[0].processor is ProcessorId.URL
    assert avif.steps[0].options["limit"] == 2048
    assert avif.steps[0].options["mimetype"] == "image/avif"
    assert images.steps[0].options["limit"] == 2048
    assert "mimetype" not in images.steps[0].options
    assert images.steps[0].options["name"] == "static/media/[name].[hash:8].[ext]"


def _app_script_options(flags: EnvironmentFlags):
    rule = build_module_rules(flags, app_src=APP_SRC)[2]
    assert len(rule.steps) == 1
    assert rule.steps[0].processor is ProcessorId.BABEL
    return rule.steps[0].options


def test_app_scripts_jsx_runtime() -> None:
    automatic = _app_script_options(EnvironmentFlags(mode=BuildMode.PRODUCTION, has_automatic_jsx_runtime=True))
    classic = _app_script_options(EnvironmentFlags(mode=BuildMode.PRODUCTION, has_automatic_jsx_runtime=False))
    assert automatic["presets"][0][1]["runtime"] == "automatic"
    assert classic["presets"][0][1]["runtime"] == "classic"


def test_app_scripts_refresh_plugin_only_in_development() -> None:
    dev = _app_script_options(EnvironmentFlags(mode=BuildMode.DEVELOPMENT, fast_refresh_enabled=True))
    dev_off = _app_script_options(EnvironmentFlags(mode=BuildMode.DEVELOPMENT, fast_refresh_enabled=False))
    prod = _app_script_options(EnvironmentFlags(mode=BuildMode.PRODUCTION, fast_refresh_enabled=True))
    assert "react-refresh/babel" in dev["plugins"]
    assert "react-refresh/babel" not in dev_off["plugins"]
    assert "react-refresh/babel" not in prod["plugins"]


def test_app_scripts_caching_and_compaction() -> None:
    dev = _app_script_options(DEV)
    prod = _app_script_options(PROD)
    assert dev["cacheDirectory"] is True and prod["cacheDirectory"] is True
    assert dev["cacheCompression"] is False
    assert dev["compact"] is False
    assert prod["compact"] is True


def test_dependency_scripts() -> None:
    rule = build_module_rules(EnvironmentFlags(mode=BuildMode.PRODUCTION, source_maps=False), app_src=APP_SRC)[3]
    opts = rule.steps[0].options
    assert opts["babelrc"] is False
    assert opts["configFile"] is False
    assert opts["sourceMaps"] is False
    assert opts["inputSourceMap"] is False
    assert opts["presets"][0][0] == "babel-preset-react-app/dependencies"


@pytest.mark.parametrize(
    "index, import_loaders, modules, side_effects, last",
    [
        (4, 1, False, True, ProcessorId.POSTCSS),
        (5, 1, True, False, ProcessorId.POSTCSS),
        (6, 3, False, True, ProcessorId.SASS),
        (7, 3, True, False, ProcessorId.SASS),
    ],
)
def test_style_rules(index, import_loaders, modules, side_effects, last) -> None:
    rule = build_module_rules(PROD, app_src=APP_SRC)[index]
    css = next(s for s in rule.steps if s.processor is ProcessorId.CSS)
    assert css.options["importLoaders"] == import_loaders
    assert ("modules" in css.options) is modules
    assert rule.side_effects is side_effects
    assert rule.steps[0].processor is ProcessorId.CSS_EXTRACT
    assert rule.steps[-1].processor is last


def test_fallback_rule() -> None:
    fallback = build_module_rules(DEV, app_src=APP_SRC)[-1]
    assert fallback.test is None
    assert fallback.steps[0].processor is ProcessorId.FILE
    assert not fallback.applies_to("/x/y.json")
    assert fallback.applies_to("/x/y.txt")


def test_rule_to_dict() -> None:
    css = build_module_rules(DEV, app_src=APP_SRC)[4]
    data = css.to_dict()
    assert data["test"] == [r"\.css$"]
    assert data["exclude"] == [r"\.module\.css$"]
    assert data["sideEffects"] is True
    assert [u["loader"] for u in data["use"]] == ["style-loader", "css-loader", "postcss-loader"]


def test_select_rule_resolves_relative_paths_against_root() -> None:
    rules = build_module_rules(DEV, app_src=APP_SRC)
    assert select_rule(rules, "src/App.js", root=ROOT).name == "app-scripts"
    assert select_rule(rules, "src/App.module.css", root=ROOT).name == "css-modules"
    assert select_rule(rules, "node_modules/lib/index.js", root=ROOT).name == "dependency-scripts"
    assert select_rule(rules, APP_SRC / "App.js", root="/elsewhere").name == "app-scripts"
