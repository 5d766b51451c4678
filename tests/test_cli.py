"""Tests for the command line interface."""

import json

import pytest

from posetmsa.cli import main
from posetmsa.io import read_fasta


@pytest.fixture
def input_fasta(tmp_path):
    p = tmp_path / "in.fa"
    p.write_text(">a\nACGTTGCAAGT\n>b\nACGTTGCTAGT\n>c\nACGTGCAAGT\n")
    return p


class TestAlignCommand:
    def test_align_to_file(self, input_fasta, tmp_path):
        out = tmp_path / "out.fa"
        main(["align", str(input_fasta), "--output", str(out), "--threshold", "0.1"])
        records = list(read_fasta(out))
        assert [name for name, _ in records] == ["a", "b", "c"]
        assert len({len(row) for _, row in records}) == 1
        assert records[2][1].replace("-", "") == "ACGTGCAAGT"

    def test_align_to_stdout(self, input_fasta, capsys):
        main(["align", str(input_fasta), "--spanning-trees", "1"])
        out = capsys.readouterr().out
        assert out.startswith(">a\n")
        assert out.count(">") == 3

    def test_missing_input(self, tmp_path, capsys):
        with pytest.raises(SystemExit) as exc:
            main(["align", str(tmp_path / "nope.fa")])
        assert exc.value.code == 1
        assert "Error" in capsys.readouterr().err


class TestDistancesCommand:
    def test_json(self, input_fasta, capsys):
        main(["distances", str(input_fasta), "--json"])
        data = json.loads(capsys.readouterr().out)
        assert data["names"] == ["a", "b", "c"]
        subs = data["subs_per_site"]
        assert all(subs[i][j] == subs[j][i] for i in range(3) for j in range(3))

    def test_text(self, input_fasta, capsys):
        main(["distances", str(input_fasta)])
        lines = capsys.readouterr().out.splitlines()
        assert lines[0].split("\t")[1:] == ["a", "b", "c"]
        assert len(lines) == 4


class TestMergeChunksCommand:
    def test_merge(self, tmp_path):
        chunk = tmp_path / "c.fa"
        chunk.write_text(">s|0\nAC\n>s|2\nGT\n")
        out = tmp_path / "out.fa"
        with pytest.raises(SystemExit) as exc:
            main(["merge-chunks", str(out), str(chunk)])
        assert exc.value.code == 0
        assert out.read_text() == ">s\nAC\nGT\n"

    def test_missing_arguments(self, capsys):
        with pytest.raises(SystemExit) as exc:
            main(["merge-chunks"])
        assert exc.value.code == -1
        assert "USAGE" in capsys.readouterr().err

    def test_unwritable_output(self, tmp_path, capsys):
        with pytest.raises(SystemExit) as exc:
            main(["merge-chunks", str(tmp_path / "no" / "out.fa")])
        assert exc.value.code == -1
        assert "cannot open" in capsys.readouterr().err


def test_no_command_prints_help(capsys):
    with pytest.raises(SystemExit) as exc:
        main([])
    assert exc.value.code == 0
    assert "posetmsa" in capsys.readouterr().out
