"""Tests for provisioner.dsl: overrides, layering, templates and validation."""

from pathlib import Path

import pytest
import yaml

from provisioner.dsl import (
    _deep_merge,
    load_config,
    parse_overrides,
    resolve_paths,
    validate_scenario,
)


def _write(path, data):
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(yaml.safe_dump(data), encoding="utf-8")


@pytest.fixture
def project(tmp_path):
    _write(
        tmp_path / "configs" / "defaults.yaml",
        {"settings": {"defaults": {"timeout": "10m"}, "vars": {"ruby_version": "3.2.0"}}},
    )
    _write(
        tmp_path / "configs" / "profiles" / "latest.yaml",
        {"settings": {"vars": {"ruby_version": "3.3.5"}}},
    )
    _write(
        tmp_path / "scenarios" / "dev.yaml",
        {
            "version": 1,
            "steps": [
                {"kind": "asdf_install", "plugin": "ruby", "version": "{{ ruby_version }}"},
            ],
        },
    )
    return tmp_path


def test_deep_merge_is_immutable_and_replaces_lists():
    a = {"x": {"y": 1, "z": [1, 2]}, "k": 1}
    b = {"x": {"z": [3]}}
    out = _deep_merge(a, b)

    assert out == {"x": {"y": 1, "z": [3]}, "k": 1}
    assert a == {"x": {"y": 1, "z": [1, 2]}, "k": 1}


def test_parse_overrides_types():
    out = parse_overrides(
        [
            "settings.vars.node_version=20.1.0",
            "settings.defaults.retries=3",
            "settings.dry=true",
            "settings.ratio=0.5",
            'settings.list=["a", "b"]',
        ]
    )
    assert out == {
        "settings": {
            "vars": {"node_version": "20.1.0"},
            "defaults": {"retries": 3},
            "dry": True,
            "ratio": 0.5,
            "list": ["a", "b"],
        }
    }


def test_parse_overrides_rejects_garbage():
    with pytest.raises(ValueError):
        parse_overrides(["no-equals-sign"])
    with pytest.raises(ValueError):
        parse_overrides(["a=1", "a.b=2"])


def test_resolve_paths_by_name(tmp_path):
    defaults, prof, scenario = resolve_paths(tmp_path, "dev", "latest")

    assert defaults == tmp_path / "configs" / "defaults.yaml"
    assert prof == tmp_path / "configs" / "profiles" / "latest.yaml"
    assert scenario.resolve() == (tmp_path / "scenarios" / "dev.yaml").resolve()


def test_load_config_renders_vars(project):
    cfg = load_config(project, "dev", None, [])

    assert cfg["steps"][0]["version"] == "3.2.0"
    assert cfg["settings"]["defaults"]["timeout"] == "10m"
    assert Path(cfg["paths"]["scenario_dir"]).resolve() == (project / "scenarios").resolve()


def test_profile_and_overrides_win(project):
    cfg = load_config(project, "dev", "latest", [])
    assert cfg["steps"][0]["version"] == "3.3.5"

    cfg = load_config(project, "dev", "latest", ["settings.vars.ruby_version=3.4.1"])
    assert cfg["steps"][0]["version"] == "3.4.1"
    assert cfg["profile"]["name"] == "latest"


def test_missing_scenario_or_profile(project):
    with pytest.raises(FileNotFoundError):
        load_config(project, "nope", None, [])
    with pytest.raises(FileNotFoundError):
        load_config(project, "dev", "nope", [])


def test_undefined_template_var(project):
    _write(
        project / "scenarios" / "broken.yaml",
        {"version": 1, "steps": [{"kind": "shell", "run": "echo {{ missing_var }}"}]},
    )
    with pytest.raises(ValueError, match="missing_var"):
        load_config(project, "broken", None, [])


def test_validate_scenario():
    assert validate_scenario({"version": 1, "steps": [{"kind": "brew"}]}, ["brew"]) == []

    errors = validate_scenario(
        {"version": 2, "steps": [{"kind": "brew"}, "oops", {"name": "x"}, {"kind": "nope"}]},
        ["brew"],
    )
    assert errors == [
        "version must be 1",
        "step #2 must be a mapping",
        "step #3 missing 'kind'",
        "step #4 has unknown kind 'nope'",
    ]


def test_validate_scenario_requires_steps_and_bool_fatal():
    assert validate_scenario({"version": 1, "steps": []}) == ["steps must be a non-empty list"]
    assert validate_scenario({"version": 1, "steps": [{"kind": "x", "fatal": "no"}]}) == [
        "step #1 'fatal' must be true/false"
    ]
