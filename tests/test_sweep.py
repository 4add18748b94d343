# tests/test_sweep.py

from datetime import date, timedelta

from paper_kb.ingest.sweep import run_sweep


class FakeHarvester:
    def __init__(self, ids):
        self.ids = ids
        self.calls = []

    def fetch_new_ids(self, categories, from_date, until_date):
        self.calls.append((list(categories), from_date, until_date))
        return list(self.ids)


def test_sweep_submits_new_papers_and_skips_known_ones(pipeline, queue):
    pipeline.submit("2402.00001")
    harvester = FakeHarvester(["2402.00001", "2402.00002", "2402.00003"])

    stats = run_sweep(pipeline, harvester, categories=["cs.CL", "cs.IR"], day=date(2024, 2, 1))

    assert harvester.calls == [(["cs.CL", "cs.IR"], "2024-02-01", "2024-02-01")]
    assert (stats.found, stats.queued, stats.skipped) == (3, 2, 1)
    assert stats.errors == []
    assert len(queue) == 3


def test_sweep_records_submit_errors_and_continues(pipeline):
    harvester = FakeHarvester(["2402.00001", "garbage", "2402.00003"])

    stats = run_sweep(pipeline, harvester, categories=["cs.CL"], day=date(2024, 2, 1))

    assert stats.queued == 2
    assert len(stats.errors) == 1
    assert stats.errors[0].startswith("garbage:")


def test_sweep_defaults_to_yesterday_and_configured_categories(pipeline, monkeypatch, kb_settings):
    kb_settings.ARXIV_CATEGORIES = "cs.CL,cs.LG"
    monkeypatch.setattr("paper_kb.ingest.sweep.get_settings", lambda: kb_settings)
    harvester = FakeHarvester([])

    stats = run_sweep(pipeline, harvester)

    yesterday = (date.today() - timedelta(days=1)).isoformat()
    assert harvester.calls == [(["cs.CL", "cs.LG"], yesterday, yesterday)]
    assert stats.found == 0


def test_sweep_without_categories_does_nothing(pipeline):
    harvester = FakeHarvester(["2402.00001"])

    stats = run_sweep(pipeline, harvester, categories=[])

    assert harvester.calls == []
    assert stats.found == 0
