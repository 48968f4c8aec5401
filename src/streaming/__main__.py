"""Run a lesson: ``python -m src.streaming <lesson>``."""

import sys

from src.streaming.lessons import main

if __name__ == "__main__":
    sys.exit(main())
