"""
Main entry point when running the robot_control module with python -m.
"""

import sys

from .cli import main

if __name__ == "__main__":
    try:
        sys.exit(main())
    except KeyboardInterrupt:
        import logging

        logging.info("\nExiting...")
        sys.exit(0)
