from __future__ import annotations

import json

import audit
from batchgcd import pipeline
from tests._helpers import weak_moduli, write_csv


def _args(tmp_path, **extra):
    args = {
        "moduli_file": str(tmp_path / "moduli.csv"),
        "data_dir": str(tmp_path / "product_tree"),
    }
    args.update(extra)
    return args


def test_batch_gcd_small_example(tmp_path):
    write_csv(tmp_path / "moduli.csv", [(0, 15), (1, 21), (2, 22)])
    reply = pipeline.batch_gcd(_args(tmp_path))
    assert reply["compromised"] == 2
    assert reply["ids"] == [0, 1]
    assert reply["levels"] == 3
    assert set(reply["elapsed"]) == {"product_tree", "remainders", "gcd"}


def test_light_and_pooled_runs_agree(tmp_path):
    moduli, weak = weak_moduli(count=12)
    write_csv(tmp_path / "moduli.csv", list(enumerate(moduli)))
    light = pipeline.batch_gcd(_args(tmp_path, algorithm="light"))
    pooled = pipeline.batch_gcd(_args(tmp_path, algorithm="fast", workers=2))
    assert light["ids"] == pooled["ids"] == sorted(weak)


def test_phases_as_separate_invocations(tmp_path):
    write_csv(tmp_path / "moduli.csv", [(10, 15), (11, 21), (12, 22), (13, 35)])
    built = pipeline.build_tree(_args(tmp_path))
    assert built["moduli"] == 4
    assert built["levels"] == 3

    reply = pipeline.find_weak_keys(_args(tmp_path))
    assert reply["ids"] == [10, 11, 13]

    assert pipeline.cross_check(_args(tmp_path))["identical"] is True


def test_find_weak_keys_detects_input_mismatch(tmp_path):
    write_csv(tmp_path / "moduli.csv", [(0, 15), (1, 21)])
    pipeline.build_tree(_args(tmp_path))
    write_csv(tmp_path / "moduli.csv", [(0, 15), (1, 21), (2, 22)])

    reply = audit.dispatch_action("find_weak_keys", _args(tmp_path), audit.ACTION_LUT)
    assert reply["kind"] == "incomplete_tree"


def test_dispatch_reports_error_kind_and_context(tmp_path):
    (tmp_path / "moduli.csv").write_text("", encoding="utf-8")
    reply = audit.dispatch_action("batch_gcd", _args(tmp_path), audit.ACTION_LUT)
    assert reply["kind"] == "empty_input"
    assert reply["phase"] == "product_tree"


def test_dispatch_unknown_action():
    assert audit.dispatch_action("rsa_factor", {}, audit.ACTION_LUT) == {"error": "Unknown action"}


def test_dispatch_invalid_algorithm(tmp_path):
    reply = audit.dispatch_action("batch_gcd", _args(tmp_path, algorithm="slow"), audit.ACTION_LUT)
    assert "Invalid algorithm" in reply["error"]


def test_main_runs_job_file(tmp_path, capsys):
    write_csv(tmp_path / "moduli.csv", [(0, 15), (1, 21), (2, 22)])
    jobs = tmp_path / "jobs.json"
    jobs.write_text(json.dumps({"jobs": {
        "a": {"action": "build_tree", "arguments": _args(tmp_path)},
        "b": {"action": "find_weak_keys", "arguments": _args(tmp_path, algorithm="light")},
    }}), encoding="utf-8")

    assert audit.main([str(jobs)]) == 0
    lines = [json.loads(l) for l in capsys.readouterr().out.splitlines()]
    assert [l["id"] for l in lines] == ["a", "b"]
    assert lines[1]["reply"]["ids"] == [0, 1]


def test_main_exit_status_on_failure(tmp_path, capsys):
    jobs = tmp_path / "jobs.json"
    jobs.write_text(json.dumps({"x": {"action": "batch_gcd", "arguments": _args(tmp_path)}}), encoding="utf-8")
    assert audit.main([str(jobs)]) == 1
    reply = json.loads(capsys.readouterr().out)["reply"]
    assert reply["kind"] == "io_error"


def test_main_rejects_missing_job_file(tmp_path):
    assert audit.main([str(tmp_path / "missing.json")]) == 1


def test_main_default_uses_fixed_input_location(tmp_path, monkeypatch, capsys):
    monkeypatch.chdir(tmp_path)
    (tmp_path / "data").mkdir()
    write_csv(tmp_path / "data" / "moduli.csv", [(0, 15), (1, 21), (2, 22)])
    assert audit.main([]) == 0
    reply = json.loads(capsys.readouterr().out)["reply"]
    assert reply["compromised"] == 2
    assert (tmp_path / "data" / "product_tree" / "shape.json").is_file()
