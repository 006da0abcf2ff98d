"""
Aggregation, ranking and persistence of per-adapter results
"""
import csv
import json
import os
from datetime import datetime, timezone
from typing import Dict, List, Optional, Tuple

from .benchmark_utils import AdapterResult, AdapterStatus, BenchmarkConfig


def _rank_key(result: AdapterResult):
    # Highest throughput first, undefined throughput last, ties by adapter index
    undefined = result.throughput_gflops is None
    return (undefined, -(result.throughput_gflops or 0.0), result.adapter)


def rank_results(results) -> List[AdapterResult]:
    successful = [r for r in results if r.status is AdapterStatus.SUCCESS]
    return sorted(successful, key=_rank_key)


def failed_results(results) -> List[AdapterResult]:
    return [r for r in results if r.status is not AdapterStatus.SUCCESS]


def iso_timestamp(now: Optional[datetime] = None) -> str:
    now = now or datetime.now(timezone.utc)
    return now.astimezone(timezone.utc).isoformat(timespec='milliseconds').replace('+00:00', 'Z')


class ResultsReporter:
    """Collects one AdapterResult per adapter and renders reports"""

    def __init__(self, config: Optional[BenchmarkConfig] = None, output_dir: Optional[str] = None):
        self.config = config or BenchmarkConfig()
        self.output_dir = output_dir or self.config.output_dir
        self._results: List[AdapterResult] = []

    @property
    def results(self) -> Tuple[AdapterResult, ...]:
        return tuple(self._results)

    def add_result(self, result: AdapterResult):
        if any(r.adapter == result.adapter for r in self._results):
            raise ValueError(f"adapter {result.adapter} already has a result")
        self._results.append(result)

    def ranked(self) -> List[AdapterResult]:
        return rank_results(self._results)

    def failed(self) -> List[AdapterResult]:
        return failed_results(self._results)

    def build_report(self, timestamp: Optional[str] = None) -> Dict:
        return {
            'timestamp': timestamp or iso_timestamp(),
            'config': self.config.to_report_dict(),
            'results': [r.to_dict() for r in self._results],
        }

    def save_json(self, filename: Optional[str] = None, report: Optional[Dict] = None) -> str:
        """Save the report to JSON"""
        os.makedirs(self.output_dir, exist_ok=True)
        filepath = os.path.join(self.output_dir, filename or self.config.output_file)
        with open(filepath, 'w') as f:
            json.dump(report or self.build_report(), f, indent=2)
        print(f"\nDetailed results saved to: {filepath}")
        return filepath

    def save_csv(self, filename: Optional[str] = None) -> Optional[str]:
        """Save one flattened row per adapter to CSV"""
        if not self._results:
            return None
        if filename is None:
            filename = os.path.splitext(self.config.output_file)[0] + '.csv'
        os.makedirs(self.output_dir, exist_ok=True)
        filepath = os.path.join(self.output_dir, filename)

        fieldnames = ['adapter', 'name', 'backend', 'status', 'avgMs', 'minMs', 'maxMs',
                      'throughputGFLOPS', 'totalOperations', 'errorMessage', 'flagged']
        with open(filepath, 'w', newline='') as f:
            writer = csv.DictWriter(f, fieldnames=fieldnames)
            writer.writeheader()
            for r in self._results:
                writer.writerow({
                    'adapter': r.adapter,
                    'name': r.name,
                    'backend': r.backend,
                    'status': r.status.value,
                    'avgMs': r.timing.avg_ms if r.timing else '',
                    'minMs': r.timing.min_ms if r.timing else '',
                    'maxMs': r.timing.max_ms if r.timing else '',
                    'throughputGFLOPS': '' if r.throughput_gflops is None else r.throughput_gflops,
                    'totalOperations': '' if r.total_operations is None else r.total_operations,
                    'errorMessage': r.error_message or '',
                    'flagged': r.flagged,
                })
        print(f"Results saved to {filepath}")
        return filepath

    def print_summary(self):
        """Print ranked results and failed adapters to console"""
        print("\n" + "=" * 60)
        print("PERFORMANCE SUMMARY")
        print("=" * 60)

        ranked = self.ranked()
        if ranked:
            print("\nPERFORMANCE RESULTS:")
            for rank, r in enumerate(ranked, start=1):
                timing = r.timing
                variance = timing.variance_percent
                variance_str = f"±{variance:.1f}%" if variance is not None else "±n/a"
                print(f"{rank}. {r.name}")
                print(f"    Backend: {r.backend}")
                print(f"    Average time: {timing.avg_ms:.2f}ms ({variance_str})")
                if r.throughput_gflops is None:
                    print("    Throughput: n/a (flagged)")
                else:
                    print(f"    Throughput: {r.throughput_gflops:.2f} GFLOPS")
                print(f"    Operations: {r.total_operations / 1e9:.2f}B ops")
                print()

        failed = self.failed()
        if failed:
            print("FAILED ADAPTERS:")
            for r in failed:
                print(f"   {r.name} ({r.backend}): {r.status.value}")
                if r.error_message:
                    print(f"      Error: {r.error_message}")
