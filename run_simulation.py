#!/usr/bin/env python3
"""
Floor Control Simulation Runner.

Convenience script to run the preemption scenario.

Usage:
    python run_simulation.py

Or run as module:
    python -m mcptt_floor
"""

import sys
import os

# Add python directory to path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), 'python'))

if __name__ == "__main__":
    from mcptt_floor.__main__ import main
    import asyncio
    asyncio.run(main())
