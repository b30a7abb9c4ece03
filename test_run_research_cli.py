from __future__ import annotations

import json
from pathlib import Path

import pytest

import run_research
from artifact_store import ArtifactStore
from models import DocumentRef, ExtractionResult, UtilityType


def test_list_views_prints_all_listing_views(capsys):
    assert run_research.main(["--list-views"]) == 0
    out_lines = capsys.readouterr().out.splitlines()
    assert len(out_lines) == 4
    assert any(line.startswith("electric") and "util=1&closed=0" in line for line in out_lines)
    assert any(line.startswith("natural_gas") and "util=4&closed=1" in line for line in out_lines)


def test_query_required_for_research_run():
    with pytest.raises(SystemExit) as exc:
        run_research.main([])
    assert exc.value.code == 2


def test_start_date_required_for_research_run():
    with pytest.raises(SystemExit) as exc:
        run_research.main(["rate case"])
    assert exc.value.code == 2


def test_bad_utility_is_rejected():
    with pytest.raises(SystemExit) as exc:
        run_research.main(["rate case", "--start", "2024-01-01", "--utilities", "water"])
    assert exc.value.code == 2


def test_inverted_date_range_is_rejected_before_any_work(tmp_path: Path, monkeypatch):
    monkeypatch.chdir(tmp_path)

    def fail(*args, **kwargs):
        raise AssertionError("run_research should not start")

    monkeypatch.setattr(run_research, "run_research", fail)
    with pytest.raises(SystemExit) as exc:
        run_research.main(["rate case", "--start", "2024-12-31", "--end", "2024-01-01"])
    assert exc.value.code == 2


def test_from_artifacts_search_prints_results(tmp_path: Path, monkeypatch, capsys):
    monkeypatch.chdir(tmp_path)
    store = ArtifactStore(tmp_path / "out" / "artifacts")
    doc = DocumentRef(
        case_number="IPC-E-24-07",
        viewer_url="https://docs.test/WebLink/DocView.aspx?id=12",
        display_name="SMITH DI.PDF",
        company="Idaho Power Company",
        utility_type=UtilityType.ELECTRIC,
    )
    store.save(
        ExtractionResult(
            document=doc,
            success=True,
            pages_extracted=1,
            raw_text="--- PAGE 3 ---\nStaff recommends a return on equity of 9.4% for the Company.",
        )
    )

    code = run_research.main(
        ["--from-artifacts", "--output", str(tmp_path / "out"), "--search", "return on equity"]
    )

    assert code == 0
    payload = json.loads(capsys.readouterr().out)
    assert payload["summary"]["chunks_indexed"] == 1
    [result] = payload["results"]
    assert result["citation"]["short"] == "IPC-E-24-07, SMITH DI.PDF, p. 3"
    assert result["financial_percentages"] == ["9.4%"]
    assert (Path(payload["run_dir"]) / "chunks.json").exists()
    assert (tmp_path / "logs").is_dir()
