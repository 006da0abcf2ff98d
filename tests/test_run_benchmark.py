import json
import os

import pytest

from adapter_bench.run_benchmark import main
from conftest import FakeTensorLibrary, two_adapters


def test_default_run_writes_report(tmp_path, monkeypatch):
    monkeypatch.delenv('ADAPTER_BENCH_TRIALS', raising=False)
    library = FakeTensorLibrary(adapters=two_adapters(), fail_init={1})
    code = main(['--matrix-size', '8', '--warmup', '0', '--trials', '2',
                 '--output-dir', str(tmp_path), '--csv'], library=library)
    assert code == 0

    with open(tmp_path / 'gpu_performance_results.json') as f:
        report = json.load(f)
    assert report['config']['matrixSize'] == 8
    assert report['config']['trialCount'] == 2
    assert [r['status'] for r in report['results']] == ['SUCCESS', 'INIT_FAILED']
    assert len(report['results'][0]['timing']['samples']) == 2
    assert (tmp_path / 'gpu_performance_results.csv').exists()


def test_no_adapters_writes_nothing(tmp_path, capsys):
    code = main(['--output-dir', str(tmp_path / 'out')], library=FakeTensorLibrary(adapters=[]))
    assert code == 0
    assert not os.path.exists(tmp_path / 'out')
    assert "No GPU adapters available!" in capsys.readouterr().out


def test_list_adapters_only(tmp_path, capsys):
    library = FakeTensorLibrary(adapters=two_adapters())
    assert main(['--list-adapters', '--output-dir', str(tmp_path)], library=library) == 0
    out = capsys.readouterr().out
    assert "0: Fast GPU (vulkan)" in out
    assert not library.contexts
    assert list(tmp_path.iterdir()) == []


def test_invalid_option_is_usage_error(tmp_path):
    with pytest.raises(SystemExit) as exc:
        main(['--trials', '0'], library=FakeTensorLibrary(adapters=two_adapters()))
    assert exc.value.code == 2


def test_unwritable_output_returns_failure(tmp_path):
    blocker = tmp_path / 'file'
    blocker.write_text('x')
    library = FakeTensorLibrary(adapters=two_adapters())
    code = main(['--matrix-size', '4', '--warmup', '0', '--trials', '1',
                 '--output-dir', str(blocker / 'sub')], library=library)
    assert code == 1
