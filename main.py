#!/usr/bin/env python3
"""
Flora Sensor Service - Main Entry Point

Discovers Flower Care / Flower Mate plant sensors over Bluetooth Low
Energy, polls them on a fixed interval and stores the readings in InfluxDB.

Usage:
    python main.py --help                 # Show help
    python main.py run                    # Run the collection daemon
    python main.py discover               # Scan and list sensors
    python main.py fetch                  # Scan and read every sensor once
    python main.py check-config           # Validate .env and the device file
    python main.py dump-config > .env     # Write the default configuration

Requirements:
    - Python 3.8+
    - Bluetooth adapter available
    - InfluxDB server accessible (for run)
"""

import sys

from src.cli.app import cli


def main():
    """Main entry point."""
    try:
        cli()
    except KeyboardInterrupt:
        print("\nInterrupted by user")
        sys.exit(0)


if __name__ == "__main__":
    main()
