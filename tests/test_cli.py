import json

import numpy as np
import pytest

from conftest import FakeClassifier, make_png
from localrembg import cli
from localrembg.lifecycle import ModelLifecycle
from localrembg.surface import decode_rgba


@pytest.fixture
def fake_lifecycle(monkeypatch):
    model = ModelLifecycle(lambda device: FakeClassifier(), device="cpu")
    monkeypatch.setattr(cli, "get_model_lifecycle", lambda config, assets: model)
    return model


def test_cache_status_on_empty_cache(tmp_path, capsys):
    cli.run(["cache", "status", "--cache-dir", str(tmp_path)])

    assert "0 cached entries" in capsys.readouterr().out


def test_remove_writes_outputs_and_report(tmp_path, fake_lifecycle):
    inputs = []
    for name in ("one.png", "two.png"):
        path = tmp_path / name
        path.write_bytes(make_png(width=12, height=8))
        inputs.append(str(path))
    strokes = tmp_path / "strokes.json"
    strokes.write_text(json.dumps({"one.png": [{"action": "erase", "x": 1, "y": 1, "radius": 1}]}))
    report = tmp_path / "report.json"

    cli.run(
        ["remove"]
        + inputs
        + [
            "--output-dir",
            str(tmp_path / "out"),
            "--strokes",
            str(strokes),
            "--json",
            str(report),
            "--cache-dir",
            str(tmp_path / "cache"),
        ]
    )

    one = decode_rgba((tmp_path / "out" / "bg-removed-one.png").read_bytes())
    two = decode_rgba((tmp_path / "out" / "bg-removed-two.png").read_bytes())
    assert one[1, 1, 3] == 0
    assert two[1, 1, 3] == 255
    assert np.all(two[:, 6:, 3] == 0)
    assert json.loads(report.read_text()) == {
        "processed": ["one.png", "two.png"],
        "errors": {},
        "device": "cpu",
    }


def test_remove_rejects_unsupported_upload(tmp_path, fake_lifecycle):
    path = tmp_path / "anim.gif"
    path.write_bytes(b"GIF89a")

    with pytest.raises(SystemExit) as excinfo:
        cli.run(["remove", str(path), "--output-dir", str(tmp_path / "out"), "--cache-dir", str(tmp_path)])

    assert "JPG, PNG, HEIC, HEIF" in str(excinfo.value)


def test_remove_exits_with_load_failure(tmp_path, monkeypatch):
    def loader(device):
        raise RuntimeError("weights missing")

    model = ModelLifecycle(loader, device="cpu")
    monkeypatch.setattr(cli, "get_model_lifecycle", lambda config, assets: model)
    path = tmp_path / "one.png"
    path.write_bytes(make_png())

    with pytest.raises(SystemExit) as excinfo:
        cli.run(["remove", str(path), "--output-dir", str(tmp_path / "out"), "--cache-dir", str(tmp_path)])

    assert str(excinfo.value) == "Failed to load AI model: weights missing"
    assert not (tmp_path / "out").exists()


def test_cache_version_flag_selects_the_version(tmp_path, capsys):
    cli.run(["cache", "activate", "--cache-dir", str(tmp_path), "--cache-version", "v9"])

    assert "Activated cache version v9" in capsys.readouterr().out


def test_cache_version_flag_parses(tmp_path):
    args = cli.parse_args(["cache", "status", "--cache-dir", str(tmp_path), "--cache-version", "v9"])

    assert args.cache_version == "v9"
