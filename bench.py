#!/usr/bin/env python3
"""
Convenience entry point for the force engine benchmark.

Usage:
    python bench.py                       # 10K uniform boids, fast mode
    python bench.py --mode safe -n 2k     # numpy + thread pool path
    python bench.py --preset flat_school  # Named scenario
    python bench.py --list                # List presets
"""

from tools.bench import main

if __name__ == "__main__":
    raise SystemExit(main())
