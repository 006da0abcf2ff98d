"""
Benchmark utilities for per-adapter tensor throughput measurements
"""
import os
import time
from dataclasses import dataclass, field, fields
from enum import Enum
from typing import Callable, ContextManager, Dict, List, Mapping, Optional, Sequence, Tuple

import numpy as np
import torch


# Composite workload: r1 = A@B, r2 = B@C, r3 = r1+r2, r4 = r3*A, r5 = r4@B
OPERATION_SEQUENCE: Tuple[str, ...] = ('matmul', 'matmul', 'add', 'multiply', 'matmul')
WORKLOAD_DESCRIPTION = 'Intensive combined GPU operations'

_ENV_OVERRIDES = {
    'matrix_size': 'ADAPTER_BENCH_MATRIX_SIZE',
    'warmup_runs': 'ADAPTER_BENCH_WARMUP',
    'trial_runs': 'ADAPTER_BENCH_TRIALS',
}


class AdapterStatus(str, Enum):
    SUCCESS = 'SUCCESS'
    INIT_FAILED = 'INIT_FAILED'
    ERROR = 'ERROR'


@dataclass
class BenchmarkConfig:
    """Run-wide benchmark parameters"""
    matrix_size: int = 1024
    warmup_runs: int = 3
    trial_runs: int = 10
    output_dir: str = 'benchmark_results'
    output_file: str = 'gpu_performance_results.json'
    save_csv: bool = False
    visualize: bool = False
    progress: bool = False
    operation_sequence: Tuple[str, ...] = field(default=OPERATION_SEQUENCE, init=False)
    description: str = field(default=WORKLOAD_DESCRIPTION, init=False)

    def __post_init__(self):
        if self.matrix_size < 1:
            raise ValueError(f"matrix_size must be >= 1, got {self.matrix_size}")
        if self.warmup_runs < 0:
            raise ValueError(f"warmup_runs must be >= 0, got {self.warmup_runs}")
        if self.trial_runs < 1:
            raise ValueError(f"trial_runs must be >= 1, got {self.trial_runs}")

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None, **overrides) -> 'BenchmarkConfig':
        """Build a config from defaults, then environment, then explicit overrides.

        Overrides set to None are ignored so argparse namespaces can be
        passed through directly. Unparseable environment values are skipped.
        """
        environ = os.environ if environ is None else environ
        values = {}
        for name, var in _ENV_OVERRIDES.items():
            raw = environ.get(var)
            if raw is None:
                continue
            try:
                values[name] = int(raw)
            except ValueError:
                pass
        if environ.get('ADAPTER_BENCH_PROGRESS') is not None:
            values['progress'] = True

        settable = {f.name for f in fields(cls) if f.init}
        for name, value in overrides.items():
            if name not in settable:
                raise TypeError(f"unknown config option {name!r}")
            if value is not None:
                values[name] = value
        return cls(**values)

    def to_report_dict(self) -> Dict:
        return {
            'matrixSize': self.matrix_size,
            'trialCount': self.trial_runs,
            'warmupRuns': self.warmup_runs,
            'operationSequence': list(self.operation_sequence),
            'description': self.description,
        }


@dataclass(frozen=True)
class TrialSample:
    run_index: int
    duration_ms: float

    def to_dict(self):
        return {'runIndex': self.run_index, 'durationMs': self.duration_ms}


@dataclass(frozen=True)
class TimingSummary:
    """Reduced timings of one adapter's trials"""
    avg_ms: float
    min_ms: float
    max_ms: float
    std_ms: float
    samples: Tuple[TrialSample, ...]

    @property
    def variance_percent(self) -> Optional[float]:
        return variance_percent(self.min_ms, self.max_ms, self.avg_ms)

    def to_dict(self):
        # std_ms is display-only
        return {
            'avgMs': self.avg_ms,
            'minMs': self.min_ms,
            'maxMs': self.max_ms,
            'samples': [s.to_dict() for s in self.samples],
        }


@dataclass(frozen=True)
class AdapterResult:
    """Outcome of one adapter's benchmark run"""
    adapter: int
    name: str
    backend: str
    status: AdapterStatus
    timing: Optional[TimingSummary] = None
    throughput_gflops: Optional[float] = None
    total_operations: Optional[int] = None
    error_message: Optional[str] = None
    flagged: bool = False

    @classmethod
    def success(cls, descriptor, timing: TimingSummary, total_operations: int) -> 'AdapterResult':
        throughput = throughput_gflops(total_operations, timing.avg_ms)
        return cls(
            adapter=descriptor.index,
            name=descriptor.name,
            backend=descriptor.backend,
            status=AdapterStatus.SUCCESS,
            timing=timing,
            throughput_gflops=throughput,
            total_operations=total_operations,
            flagged=throughput is None,
        )

    @classmethod
    def init_failed(cls, descriptor) -> 'AdapterResult':
        return cls(descriptor.index, descriptor.name, descriptor.backend, AdapterStatus.INIT_FAILED)

    @classmethod
    def error(cls, descriptor, message: str) -> 'AdapterResult':
        return cls(descriptor.index, descriptor.name, descriptor.backend, AdapterStatus.ERROR,
                   error_message=message)

    def to_dict(self):
        return {
            'adapter': self.adapter,
            'name': self.name,
            'backend': self.backend,
            'status': self.status.value,
            'timing': self.timing.to_dict() if self.timing is not None else None,
            'throughputGFLOPS': self.throughput_gflops,
            'totalOperations': self.total_operations,
            'errorMessage': self.error_message,
            'flagged': self.flagged,
        }


class BenchmarkTimer:
    """Wall-clock warmup + trial loop.

    Each iteration runs inside its own resource scope. The clock stops
    before the scope exits, so releasing the iteration's tensors is not
    part of the measured duration.
    """

    def __init__(self, warmup_runs: int = 3, trial_runs: int = 10,
                 clock: Callable[[], float] = time.perf_counter, progress: bool = False):
        self.warmup_runs = warmup_runs
        self.trial_runs = trial_runs
        self.clock = clock
        self.progress = progress

    def benchmark(self, workload: Callable, scope_factory: Callable[[], ContextManager],
                  sync: Optional[Callable[[], None]] = None) -> List[TrialSample]:
        """Run ``workload(scope)`` for warmup, then timed trials.

        ``sync`` is called inside the timed window after the workload so that
        queued device work is included.
        """
        for _ in range(self.warmup_runs):
            with scope_factory() as scope:
                workload(scope)
                if sync is not None:
                    sync()

        samples = []
        for run in range(self.trial_runs):
            with scope_factory() as scope:
                start = self.clock()
                workload(scope)
                if sync is not None:
                    sync()
                elapsed_ms = (self.clock() - start) * 1000.0
            samples.append(TrialSample(run_index=run, duration_ms=elapsed_ms))
            if self.progress:
                print(f"  Run {run + 1}: {elapsed_ms:.2f}ms")
        return samples


def summarize_trials(samples: Sequence[TrialSample]) -> TimingSummary:
    if not samples:
        raise ValueError("cannot summarize an empty trial sequence")
    times = np.array([s.duration_ms for s in samples], dtype=float)
    min_ms = float(np.min(times))
    max_ms = float(np.max(times))
    # Rounding in the mean can land just outside [min, max] for equal samples
    avg_ms = min(max(float(np.mean(times)), min_ms), max_ms)
    return TimingSummary(
        avg_ms=avg_ms,
        min_ms=min_ms,
        max_ms=max_ms,
        std_ms=float(np.std(times)),
        samples=tuple(samples),
    )


def composite_operation_count(matrix_size: int) -> int:
    """FLOPs of one composite iteration: 3 matmuls (2*m^3) + add + multiply (m^2 each)"""
    m = int(matrix_size)
    matmul_ops = 3 * 2 * m ** 3
    elementwise_ops = 2 * m ** 2
    return matmul_ops + elementwise_ops


def throughput_gflops(total_operations: int, avg_ms: float) -> Optional[float]:
    """GFLOPS for one iteration taking ``avg_ms``; None when the duration is degenerate"""
    if not np.isfinite(avg_ms) or avg_ms <= 0:
        return None
    return total_operations / (avg_ms / 1000.0) / 1e9


def variance_percent(min_ms: float, max_ms: float, avg_ms: float) -> Optional[float]:
    if avg_ms <= 0:
        return None
    return (max_ms - min_ms) / avg_ms * 100.0


def get_environment_info() -> Dict[str, object]:
    """Get torch / accelerator runtime information"""
    info = {
        'pytorch_version': torch.__version__,
        'numpy_version': np.__version__,
        'cuda_available': torch.cuda.is_available(),
        'cuda_version': torch.version.cuda,
        'hip_version': getattr(torch.version, 'hip', None),
    }
    mps = getattr(torch.backends, 'mps', None)
    info['mps_available'] = bool(mps is not None and mps.is_available())
    return info
