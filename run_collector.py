#!/usr/bin/env python
"""
Run script for the Solana rent collector.

This script sets up logging directories and runs the collector.
"""

import os
import sys
import asyncio
from pathlib import Path

# Ensure 'rentcollector' is importable when run from a checkout
sys.path.insert(0, os.path.abspath(os.path.dirname(__file__)))

# Create logs directory if it doesn't exist
logs_dir = Path("logs")
logs_dir.mkdir(exist_ok=True)

# Import the collector's main function after setting up paths
from rentcollector.main import main

if __name__ == "__main__":
    sys.exit(asyncio.run(main()))
