import io

import pytest

from xvkit.stressfs import BLOCK, NBLOCKS, main, stress


def test_stress_writes_files(tmp_path):
    out = io.StringIO()
    paths = stress(tmp_path, 5, out)
    assert [p.name for p in paths] == [f"stressfs{i}" for i in range(5)]
    for path in paths:
        content = path.read_bytes()
        assert len(content) == BLOCK * NBLOCKS
        assert set(content) == {ord("a")}


def test_stress_output(tmp_path):
    out = io.StringIO()
    stress(tmp_path, 3, out)
    lines = out.getvalue().splitlines()
    assert lines[0] == "stressfs starting"
    assert sorted(line for line in lines if line.startswith("write")) == [
        "write 0",
        "write 1",
        "write 2",
    ]
    assert lines.count("read") == 3


@pytest.mark.parametrize("workers", [0, 11])
def test_stress_rejects_worker_count(tmp_path, workers):
    with pytest.raises(ValueError):
        stress(tmp_path, workers, io.StringIO())


def test_main_uses_directory(tmp_path, capsys):
    assert main([str(tmp_path)]) == 0
    assert sorted(p.name for p in tmp_path.iterdir()) == [f"stressfs{i}" for i in range(5)]
    assert "stressfs starting" in capsys.readouterr().out