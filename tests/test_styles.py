"""Tests for the style chain builder and CSS-module naming."""

import re
from pathlib import Path

import pytest

from bundleplan.env import BuildMode, EnvironmentFlags
from bundleplan.errors import ConfigError
from bundleplan.steps import ProcessorId
from bundleplan.styles import (
    CSS_MODULE_IDENT,
    LocalIdentStrategy,
    StyleOptions,
    _hash_digest,
    build_style_chain,
    css_module_local_ident,
)

APP_SRC = Path("/work/app/src")

DEV = EnvironmentFlags(mode=BuildMode.DEVELOPMENT)
PROD = EnvironmentFlags(mode=BuildMode.PRODUCTION)


def _ids(chain) -> list[ProcessorId]:
    return [s.processor for s in chain]


# ---------------------------------------------------------------------------
# Chain structure
# ---------------------------------------------------------------------------

def test_development_chain_without_preprocessor() -> None:
    chain = build_style_chain(StyleOptions(import_loaders=1, source_map=False), flags=DEV, app_src=APP_SRC)
    assert _ids(chain) == [ProcessorId.STYLE_INJECT, ProcessorId.CSS, ProcessorId.POSTCSS]
    assert chain[0].processor is ProcessorId.STYLE_INJECT
    assert chain[-1].processor is ProcessorId.POSTCSS


def test_production_chain_with_sass() -> None:
    chain = build_style_chain(
        StyleOptions(import_loaders=3, source_map=True), "sass", flags=PROD, app_src=APP_SRC
    )
    assert _ids(chain) == [
        ProcessorId.CSS_EXTRACT,
        ProcessorId.CSS,
        ProcessorId.POSTCSS,
        ProcessorId.RESOLVE_URL,
        ProcessorId.SASS,
    ]
    assert _ids(chain[-2:]) == [ProcessorId.RESOLVE_URL, ProcessorId.SASS]


def test_development_chain_with_sass() -> None:
    chain = build_style_chain(StyleOptions(import_loaders=3, source_map=True), "sass", flags=DEV, app_src=APP_SRC)
    assert _ids(chain) == [
        ProcessorId.STYLE_INJECT,
        ProcessorId.CSS,
        ProcessorId.POSTCSS,
        ProcessorId.RESOLVE_URL,
        ProcessorId.SASS,
    ]


def test_production_never_injects_and_development_never_extracts() -> None:
    opts = StyleOptions(import_loaders=1, source_map=True)
    assert ProcessorId.STYLE_INJECT not in _ids(build_style_chain(opts, flags=PROD, app_src=APP_SRC))
    assert ProcessorId.CSS_EXTRACT not in _ids(build_style_chain(opts, flags=DEV, app_src=APP_SRC))


# ---------------------------------------------------------------------------
# Step options
# ---------------------------------------------------------------------------

def test_css_step_carries_options_verbatim() -> None:
    chain = build_style_chain(
        StyleOptions(import_loaders=3, source_map=False, local_ident=CSS_MODULE_IDENT),
        flags=PROD,
        app_src=APP_SRC,
    )
    css = chain[1]
    assert css.options["importLoaders"] == 3
    assert css.options["sourceMap"] is False
    assert css.options["modules"]["getLocalIdent"] == "css-module"


def test_css_step_without_modules() -> None:
    chain = build_style_chain(StyleOptions(import_loaders=1, source_map=True), flags=DEV, app_src=APP_SRC)
    assert "modules" not in chain[1].options


def test_extract_step_relative_public_path() -> None:
    relative = EnvironmentFlags(mode=BuildMode.PRODUCTION, public_url_or_path="./")
    chain = build_style_chain(StyleOptions(1, True), flags=relative, app_src=APP_SRC)
    assert chain[0].options["publicPath"] == "../../"

    absolute = build_style_chain(StyleOptions(1, True), flags=PROD, app_src=APP_SRC)
    assert dict(absolute[0].options) == {}


def test_postcss_step() -> None:
    chain = build_style_chain(StyleOptions(1, True), flags=PROD, app_src=APP_SRC)
    postcss = chain[2]
    names = [p["name"] for p in postcss.options["plugins"]]
    assert names == ["postcss-flexbugs-fixes", "postcss-preset-env", "postcss-normalize"]
    preset = postcss.options["plugins"][1]["options"]
    assert preset["stage"] == 3
    assert preset["autoprefixer"]["flexbox"] == "no-2009"
    assert postcss.options["ident"] == "postcss"


@pytest.mark.parametrize(
    "flags, expected",
    [
        (EnvironmentFlags(mode=BuildMode.PRODUCTION, source_maps=False), False),
        (EnvironmentFlags(mode=BuildMode.PRODUCTION, source_maps=True), True),
        (EnvironmentFlags(mode=BuildMode.DEVELOPMENT, source_maps=False), True),
    ],
)
def test_postcss_source_map_policy(flags: EnvironmentFlags, expected: bool) -> None:
    chain = build_style_chain(StyleOptions(1, True), flags=flags, app_src=APP_SRC)
    assert chain[2].options["sourceMap"] is expected


def test_preprocessor_steps_force_source_maps() -> None:
    flags = EnvironmentFlags(mode=BuildMode.PRODUCTION, source_maps=False)
    chain = build_style_chain(StyleOptions(3, False), "sass", flags=flags, app_src=APP_SRC)
    resolve_url, sass = chain[-2:]
    assert resolve_url.options == {"sourceMap": True, "root": str(APP_SRC)}
    assert sass.options == {"sourceMap": True}


def test_preprocessor_by_package_name() -> None:
    chain = build_style_chain(StyleOptions(3, True), "sass-loader", flags=DEV, app_src=APP_SRC)
    assert chain[-1].processor is ProcessorId.SASS


@pytest.mark.parametrize("name", ["less", "css"])
def test_unknown_or_non_preprocessor_rejected(name: str) -> None:
    with pytest.raises(ConfigError):
        build_style_chain(StyleOptions(3, True), name, flags=DEV, app_src=APP_SRC)


def test_step_options_are_read_only() -> None:
    chain = build_style_chain(StyleOptions(1, True), flags=DEV, app_src=APP_SRC)
    with pytest.raises(TypeError):
        chain[1].options["importLoaders"] = 9  # type: ignore[index]


# ---------------------------------------------------------------------------
# CSS-module local identifiers
# ---------------------------------------------------------------------------

def test_local_ident_uses_file_name() -> None:
    name = css_module_local_ident("/app", "/app/src/Button.module.css", "primary")
    assert name.startswith("Button_primary__")
    assert len(name) == len("Button_primary__") + 5
    assert "." not in name


def test_local_ident_index_module_uses_folder() -> None:
    name = css_module_local_ident("/app", "/app/src/Card/index.module.scss", "title")
    assert name.startswith("Card_title__")


def test_local_ident_is_deterministic_and_path_sensitive() -> None:
    a = css_module_local_ident("/app", "/app/src/a/Button.module.css", "x")
    b = css_module_local_ident("/app", "/app/src/b/Button.module.css", "x")
    assert a == css_module_local_ident("/app", "/app/src/a/Button.module.css", "x")
    assert a[:-5] == b[:-5]
    assert a != b


def test_local_ident_strategy_is_callable() -> None:
    strategy = LocalIdentStrategy()
    assert strategy("/app", "/app/src/App.module.css", "root") == css_module_local_ident(
        "/app", "/app/src/App.module.css", "root"
    )
    assert strategy.to_dict() == {"getLocalIdent": "css-module"}


CSS_IDENTIFIER_RE = re.compile(r"^-?[_a-zA-Z][_a-zA-Z0-9-]*$")


def test_local_ident_is_always_a_valid_css_identifier() -> None:
    names = [css_module_local_ident("/app", "/app/src/Button.module.css", f"cls{i}") for i in range(200)]
    invalid = [n for n in names if not CSS_IDENTIFIER_RE.match(n)]
    assert invalid == []


@pytest.mark.parametrize(
    "digest, expected",
    [
        (b"\x01", "1"),
        (b"\x3f", "_"),
        (b"\x40", "10"),
        (b"\x00\x01", "40"),
        (b"\x3e\x00", "-"),
    ],
)
def test_hash_digest_is_little_endian_base64(digest: bytes, expected: str) -> None:
    assert _hash_digest(digest, 5) == expected


def test_hash_digest_truncates() -> None:
    assert _hash_digest(bytes(range(1, 17)), 5) == _hash_digest(bytes(range(1, 17)), 20)[:5]
    assert len(_hash_digest(bytes(range(1, 17)), 5)) == 5


def test_local_ident_only_first_module_marker_collapses() -> None:
    name = css_module_local_ident("/app", "/app/src/Foo.module_x.module.css", "a")
    assert name.startswith("Foo_x_module_a__")
