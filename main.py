"""
main.py
========
Central entry point for the mulmo-movie pipeline.

Run with:
    python main.py talk.mp4 --lang ja
"""

import sys

from mulmo_movie.cli import main

if __name__ == "__main__":
    sys.exit(main())
