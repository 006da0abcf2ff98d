"""
GPU Adapter Benchmark Suite

Measures compute throughput of a fixed composite tensor workload
(3x matmul + add + multiply) on every available GPU adapter.

Usage:
    python -m adapter_bench.run_benchmark --csv --visualize

Visualization:
    python -m adapter_bench.visualize_results benchmark_results/gpu_performance_results.json
"""

__version__ = "1.0.0"
__all__ = [
    "adapters",
    "benchmark_utils",
    "bench_adapters",
    "context",
    "reporting",
    "run_benchmark",
    "visualize_results",
]
