import json

from buildforce_cli.config import (
    ProjectConfig,
    atomic_write_text,
    config_path,
    read_config,
    read_config_data,
    save_config,
    write_project_config,
)


def test_missing_config_reads_as_none(tmp_path):
    assert read_config(tmp_path) is None
    assert read_config_data(tmp_path) is None


def test_invalid_config_reads_as_none(tmp_path):
    path = config_path(tmp_path)
    path.parent.mkdir(parents=True)
    path.write_text("{ broken")

    assert read_config_data(tmp_path) is None


def test_save_config_updates_in_place_and_appends_new_keys(tmp_path):
    save_config(tmp_path, {"selectedAssistants": ["claude"], "scriptFlavor": "sh", "currentSession": None})
    save_config(tmp_path, {"currentSession": "001-auth", "templateVersion": "v0.3.0"})

    text = config_path(tmp_path).read_text()
    data = json.loads(text)
    assert list(data) == ["selectedAssistants", "scriptFlavor", "currentSession", "templateVersion"]
    assert data["currentSession"] == "001-auth"
    assert text.endswith("}\n")
    assert '\n  "currentSession": "001-auth",\n' in text


def test_save_config_preserves_unknown_keys(tmp_path):
    path = config_path(tmp_path)
    path.parent.mkdir(parents=True)
    path.write_text(json.dumps({"custom": {"x": 1}}))

    save_config(tmp_path, {"currentSession": None})

    assert read_config_data(tmp_path) == {"custom": {"x": 1}, "currentSession": None}


def test_project_config_round_trip(tmp_path):
    config = ProjectConfig(selected_assistants=["claude", "cursor"], script_flavor="ps", template_version="v0.2.0")

    write_project_config(tmp_path, config)

    assert read_config(tmp_path) == config


def test_atomic_write_leaves_no_temp_files(tmp_path):
    target = tmp_path / "nested" / "file.json"

    atomic_write_text(target, "one")
    atomic_write_text(target, "two")

    assert target.read_text() == "two"
    assert [p.name for p in target.parent.iterdir()] == ["file.json"]
