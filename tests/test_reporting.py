import csv
import json
from datetime import datetime, timezone

import pytest

from adapter_bench.adapters import AdapterDescriptor
from adapter_bench.benchmark_utils import (
    AdapterResult, AdapterStatus, BenchmarkConfig, TimingSummary, TrialSample
)
from adapter_bench.reporting import ResultsReporter, iso_timestamp, rank_results


def _success(index, throughput, avg_ms=10.0):
    timing = TimingSummary(avg_ms=avg_ms, min_ms=avg_ms, max_ms=avg_ms, std_ms=0.0,
                           samples=(TrialSample(0, avg_ms),))
    return AdapterResult(index, f"gpu{index}", 'cuda', AdapterStatus.SUCCESS, timing=timing,
                         throughput_gflops=throughput, total_operations=1000,
                         flagged=throughput is None)


def _reporter(tmp_path, *results):
    reporter = ResultsReporter(BenchmarkConfig(matrix_size=64, trial_runs=1), output_dir=str(tmp_path))
    for r in results:
        reporter.add_result(r)
    return reporter


def test_ranking_descending_with_index_tiebreak():
    results = [_success(0, 50.0), _success(1, 80.0), _success(2, 80.0), _success(3, None)]
    assert [r.adapter for r in rank_results(results)] == [1, 2, 0, 3]


def test_ranking_tie_order_independent_of_insertion():
    results = [_success(5, 10.0), _success(2, 10.0)]
    assert [r.adapter for r in rank_results(results)] == [2, 5]


def test_partition_success_and_failures(tmp_path):
    failed = AdapterResult.init_failed(AdapterDescriptor(1, 'igpu', 'vulkan'))
    errored = AdapterResult.error(AdapterDescriptor(2, 'egpu', 'cuda'), 'oom')
    reporter = _reporter(tmp_path, _success(0, 10.0), failed, errored)
    assert [r.adapter for r in reporter.ranked()] == [0]
    assert reporter.failed() == [failed, errored]


def test_duplicate_adapter_rejected(tmp_path):
    reporter = _reporter(tmp_path, _success(0, 10.0))
    with pytest.raises(ValueError):
        reporter.add_result(_success(0, 20.0))


def test_report_keeps_insertion_order_and_does_not_mutate(tmp_path):
    results = [_success(0, 10.0), _success(1, 90.0)]
    reporter = _reporter(tmp_path, *results)
    before = [r.to_dict() for r in results]

    reporter.print_summary()
    report = reporter.build_report(timestamp='2026-01-01T00:00:00.000Z')

    assert [r['adapter'] for r in report['results']] == [0, 1]
    assert [r.to_dict() for r in reporter.results] == before
    assert report['timestamp'] == '2026-01-01T00:00:00.000Z'
    assert report['config']['matrixSize'] == 64
    assert report['config']['trialCount'] == 1
    assert set(report) == {'timestamp', 'config', 'results'}


def test_save_json_roundtrip(tmp_path):
    reporter = _reporter(tmp_path, _success(0, 10.0),
                         AdapterResult.error(AdapterDescriptor(1, 'x', 'y'), 'boom'))
    path = reporter.save_json('report.json')
    with open(path) as f:
        data = json.load(f)
    assert data['results'][1]['errorMessage'] == 'boom'
    assert data['results'][0]['timing']['samples'] == [{'runIndex': 0, 'durationMs': 10.0}]


def test_save_csv_rows(tmp_path):
    reporter = _reporter(tmp_path, _success(0, 10.0),
                         AdapterResult.init_failed(AdapterDescriptor(1, 'x', 'y')))
    path = reporter.save_csv()
    assert path.endswith('gpu_performance_results.csv')
    with open(path, newline='') as f:
        rows = list(csv.DictReader(f))
    assert [row['status'] for row in rows] == ['SUCCESS', 'INIT_FAILED']
    assert rows[1]['avgMs'] == ''


def test_save_csv_without_results(tmp_path):
    assert _reporter(tmp_path).save_csv() is None


def test_summary_lists_failed_adapters(tmp_path, capsys):
    reporter = _reporter(tmp_path, _success(0, None, avg_ms=0.0),
                         AdapterResult.error(AdapterDescriptor(1, 'egpu', 'cuda'), 'oom'))
    reporter.print_summary()
    out = capsys.readouterr().out
    assert "Throughput: n/a (flagged)" in out
    assert "egpu (cuda): ERROR" in out
    assert "Error: oom" in out


def test_iso_timestamp_format():
    stamp = iso_timestamp(datetime(2026, 3, 4, 5, 6, 7, 890000, tzinfo=timezone.utc))
    assert stamp == '2026-03-04T05:06:07.890Z'
