"""
Visualize adapter benchmark results
Creates charts from a saved benchmark report JSON
"""
import argparse
import json
import os
from typing import Dict, List, Optional

import matplotlib
matplotlib.use('Agg')  # Non-interactive backend
import matplotlib.pyplot as plt
import numpy as np


def load_report(path: str) -> Dict:
    with open(path, 'r') as f:
        report = json.load(f)
    if not isinstance(report, dict):
        raise ValueError(f"{path} is not a benchmark report (top level is {type(report).__name__})")
    for key in ('timestamp', 'config', 'results'):
        if key not in report:
            raise ValueError(f"{path} is not a benchmark report (missing {key!r})")
    return report


def _label(r: Dict) -> str:
    return f"{r['adapter']}: {r['name']} ({r['backend']})"


def plot_throughput(report: Dict, output_path: str) -> Optional[str]:
    """Bar chart of GFLOPS per successful adapter"""
    entries = [r for r in report['results']
               if r['status'] == 'SUCCESS' and r.get('throughputGFLOPS') is not None]
    if not entries:
        print("No successful results with defined throughput")
        return None

    entries.sort(key=lambda r: (-r['throughputGFLOPS'], r['adapter']))
    labels = [_label(r) for r in entries]
    values = [r['throughputGFLOPS'] for r in entries]

    plt.figure(figsize=(10, 6))
    bars = plt.bar(range(len(labels)), values, color='#1f77b4')
    m = report['config']['matrixSize']
    plt.xlabel('Adapter', fontsize=12)
    plt.ylabel('Throughput (GFLOPS)', fontsize=12)
    plt.title(f'Composite Workload Throughput ({m}x{m})', fontsize=14, fontweight='bold')
    plt.xticks(range(len(labels)), labels, rotation=15, ha='right')
    plt.grid(True, axis='y', alpha=0.3)

    for bar, value in zip(bars, values):
        plt.text(bar.get_x() + bar.get_width()/2, bar.get_height() + max(values)*0.02,
                 f'{value:.1f}', ha='center', va='bottom', fontsize=9)

    plt.tight_layout()
    plt.savefig(output_path, dpi=300)
    print(f"Saved plot to {output_path}")
    plt.close()
    return output_path


def plot_trial_times(report: Dict, output_path: str) -> Optional[str]:
    """Per-trial duration for each successful adapter"""
    entries = [r for r in report['results'] if r['status'] == 'SUCCESS' and r.get('timing')]
    if not entries:
        print("No trial timings found")
        return None

    plt.figure(figsize=(10, 6))
    for r in entries:
        samples = r['timing']['samples']
        runs = np.array([s['runIndex'] + 1 for s in samples])
        times = np.array([s['durationMs'] for s in samples])
        plt.plot(runs, times, marker='o', label=_label(r), linewidth=2)

    plt.xlabel('Trial', fontsize=12)
    plt.ylabel('Time (ms)', fontsize=12)
    plt.title('Per-Trial Duration', fontsize=14, fontweight='bold')
    plt.grid(True, alpha=0.3)
    plt.legend(fontsize=9)
    plt.tight_layout()
    plt.savefig(output_path, dpi=300)
    print(f"Saved plot to {output_path}")
    plt.close()
    return output_path


def generate_all(report_path: str, output_dir: Optional[str] = None) -> List[str]:
    report = load_report(report_path)
    output_dir = output_dir or os.path.join(os.path.dirname(report_path) or '.', 'visualizations')
    os.makedirs(output_dir, exist_ok=True)

    written = []
    for name, plot in (('throughput.png', plot_throughput), ('trial_times.png', plot_trial_times)):
        path = plot(report, os.path.join(output_dir, name))
        if path:
            written.append(path)
    return written


def main(argv=None):
    parser = argparse.ArgumentParser(description='Visualize adapter benchmark results')
    parser.add_argument('report', nargs='?',
                        default=os.path.join('benchmark_results', 'gpu_performance_results.json'),
                        help='Benchmark report JSON')
    parser.add_argument('--output-dir', default=None, help='Directory for PNG files')
    args = parser.parse_args(argv)

    written = generate_all(args.report, args.output_dir)
    print(f"\nGenerated {len(written)} visualization(s)")


if __name__ == "__main__":
    main()
