"""
Run the composite workload benchmark on every GPU adapter and save the report
"""
import argparse
import sys

from .adapters import list_adapters
from .bench_adapters import run_adapter_benchmark
from .benchmark_utils import BenchmarkConfig


def build_parser():
    parser = argparse.ArgumentParser(description='Benchmark tensor throughput on all GPU adapters')
    parser.add_argument('--matrix-size', type=int, default=None,
                        help='Square matrix dimension (default 1024)')
    parser.add_argument('--warmup', dest='warmup_runs', type=int, default=None,
                        help='Untimed warmup iterations per adapter (default 3)')
    parser.add_argument('--trials', dest='trial_runs', type=int, default=None,
                        help='Timed trials per adapter (default 10)')
    parser.add_argument('--output-dir', default=None,
                        help='Directory for result files (default benchmark_results)')
    parser.add_argument('--output', dest='output_file', default=None,
                        help='Report filename (default gpu_performance_results.json)')
    parser.add_argument('--csv', dest='save_csv', action='store_true', default=None,
                        help='Also save results as CSV')
    parser.add_argument('--visualize', action='store_true', default=None,
                        help='Generate charts after the run')
    parser.add_argument('--progress', action='store_true', default=None,
                        help='Print every timed trial')
    parser.add_argument('--list-adapters', action='store_true',
                        help='List adapters and exit')
    return parser


def main(argv=None, library=None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    options = vars(args)
    list_only = options.pop('list_adapters')

    try:
        config = BenchmarkConfig.from_env(**options)
    except ValueError as e:
        parser.error(str(e))

    if library is None:
        from tensor_ext import TorchTensorLibrary
        library = TorchTensorLibrary()

    if list_only:
        adapters = list_adapters(library)
        if not adapters:
            print("No GPU adapters available!")
        for adapter in adapters:
            print(f"{adapter.index}: {adapter.name} ({adapter.backend})")
        return 0

    reporter = run_adapter_benchmark(library, config)
    if reporter is None:
        return 0

    try:
        report_path = reporter.save_json()
        if config.save_csv:
            reporter.save_csv()
    except OSError as e:
        print(f"ERROR: could not write results: {e}")
        return 1

    if config.visualize:
        from .visualize_results import generate_all
        generate_all(report_path)
    return 0


if __name__ == "__main__":
    sys.exit(main())
