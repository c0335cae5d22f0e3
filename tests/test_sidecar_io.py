from __future__ import annotations

from pathlib import Path

import pytest

from sidecar.reader import SidecarReader, read_all
from sidecar.writer import SidecarWriter, write_atomic


def test_sidecar_roundtrip(tmp_path: Path):
    path = tmp_path / "events.jsonl"
    w = SidecarWriter(path)
    w.open()
    w.append({"id": "a", "motion_level": 12.5})
    w.extend([{"id": "b", "motion_level": 3.0}, {"id": "c", "motion_level": 0.0}])
    w.close()
    rows = list(SidecarReader(path))
    assert [r["id"] for r in rows] == ["a", "b", "c"]
    assert rows[0]["motion_level"] == 12.5


def test_sidecar_writer_creates_parent_and_truncates(tmp_path: Path):
    p = tmp_path / "nested" / "cm.jsonl"
    with SidecarWriter(p) as w:
        w.append({"n": 1})
    with SidecarWriter(p) as w:
        w.append({"n": 2})
    assert [r["n"] for r in read_all(p)] == [2]


def test_sidecar_writer_requires_open(tmp_path: Path):
    w = SidecarWriter(tmp_path / "x.jsonl")
    with pytest.raises(RuntimeError):
        w.append({})


def test_reader_skips_malformed_and_non_object_rows(tmp_path: Path):
    p = tmp_path / "mixed.jsonl"
    p.write_text('{"ok": 1}\n\nnot-json\n[1, 2]\n{"ok": 2}\n', encoding="utf-8")
    reader = SidecarReader(p)
    assert [r["ok"] for r in reader] == [1, 2]
    assert reader.skipped == 2


def test_read_all_missing_file(tmp_path: Path):
    assert read_all(tmp_path / "missing.jsonl") == []


def test_write_atomic_replaces_content(tmp_path: Path):
    p = tmp_path / "events.jsonl"
    write_atomic(p, [{"n": 1}, {"n": 2}])
    write_atomic(p, [{"n": 3}])
    assert read_all(p) == [{"n": 3}]
    assert not (tmp_path / "events.jsonl.tmp").exists()
