"""
Composite tensor workload benchmark across every available adapter
"""
import time
from typing import Callable, Optional

from .adapters import AdapterDescriptor, list_adapters
from .benchmark_utils import (
    AdapterResult, BenchmarkConfig, BenchmarkTimer,
    composite_operation_count, get_environment_info, summarize_trials
)
from .context import ContextToken, TensorScope, run_in_context, synchronizer
from .reporting import ResultsReporter


class CompositeWorkload:
    """r1 = A@B, r2 = B@C, r3 = r1+r2, r4 = r3*A, r5 = r4@B"""

    def __init__(self, matrix_size: int):
        self.matrix_size = matrix_size

    @property
    def shape(self):
        return (self.matrix_size, self.matrix_size)

    def allocate(self, scope: TensorScope):
        a = scope.random_uniform(self.shape, 0.0, 1.0)
        b = scope.random_uniform(self.shape, 0.0, 1.0)
        c = scope.random_uniform(self.shape, 0.0, 1.0)
        return a, b, c

    def __call__(self, scope: TensorScope, a, b, c):
        r1 = scope.matmul(a, b)
        r2 = scope.matmul(b, c)
        r3 = scope.add(r1, r2)
        r4 = scope.multiply(r3, a)
        return scope.matmul(r4, b)


def benchmark_adapter(library, adapter: AdapterDescriptor, config: BenchmarkConfig,
                      clock: Callable[[], float] = time.perf_counter) -> AdapterResult:
    """Warmup + timed trials of the composite workload on one adapter"""
    workload = CompositeWorkload(config.matrix_size)
    timer = BenchmarkTimer(config.warmup_runs, config.trial_runs, clock=clock, progress=config.progress)

    def body(token: ContextToken, scope: TensorScope) -> AdapterResult:
        # Base matrices live in the adapter scope, intermediates in per-trial scopes
        a, b, c = workload.allocate(scope)

        if timer.warmup_runs:
            print("Warmup runs...")
        print(f"Intensive performance measurement ({timer.trial_runs} runs + combined operations)...")
        samples = timer.benchmark(
            lambda trial_scope: workload(trial_scope, a, b, c),
            scope_factory=lambda: TensorScope(library, token),
            sync=synchronizer(library, token),
        )

        timing = summarize_trials(samples)
        total_ops = composite_operation_count(config.matrix_size)
        result = AdapterResult.success(adapter, timing, total_ops)

        print(f"STATS: Average time: {timing.avg_ms:.2f}ms "
              f"(min: {timing.min_ms:.2f}ms, max: {timing.max_ms:.2f}ms, std: {timing.std_ms:.2f}ms)")
        if result.throughput_gflops is None:
            print("WARNING: measured duration is zero; throughput undefined, result flagged")
        else:
            print(f"PERF: Throughput: {result.throughput_gflops:.2f} GFLOPS")
        print(f"OPS: Combined operations: 3x matmul + add + multiply = {total_ops / 1e9:.2f}B ops")
        return result

    return run_in_context(library, adapter, body)


def run_adapter_benchmark(library, config: Optional[BenchmarkConfig] = None,
                          clock: Callable[[], float] = time.perf_counter) -> Optional[ResultsReporter]:
    """Benchmark every adapter sequentially.

    Returns the populated reporter, or None when no adapters exist.
    """
    config = config or BenchmarkConfig()

    print("=" * 60)
    print("GPU ADAPTER PERFORMANCE TEST")
    print("=" * 60)

    env = get_environment_info()
    print(f"\nPyTorch: {env['pytorch_version']}")
    print(f"CUDA available: {env['cuda_available']} (CUDA {env['cuda_version'] or 'n/a'})")
    if env['hip_version']:
        print(f"HIP: {env['hip_version']}")
    print()

    adapters = list_adapters(library)
    if not adapters:
        print("No GPU adapters available!")
        return None

    print("Available GPU adapters:")
    for adapter in adapters:
        print(f"{adapter.index}: {adapter.name} ({adapter.backend})")
    print()

    m = config.matrix_size
    print(f"Test matrix size: {m}x{m} ({m * m / 1e6:.1f}M elements)")

    reporter = ResultsReporter(config)
    for adapter in adapters:
        print(f"\n--- Adapter {adapter.index}: {adapter.name} ---")
        result = benchmark_adapter(library, adapter, config, clock=clock)
        reporter.add_result(result)

    reporter.print_summary()
    return reporter
