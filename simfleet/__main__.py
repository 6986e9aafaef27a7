"""
SimFleet CLI Entry Point

This module allows running SimFleet as:
    python -m simfleet [command] [options]
"""

from simfleet.cli import main

if __name__ == "__main__":
    main()
