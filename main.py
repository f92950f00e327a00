#!/usr/bin/env python
"""
DoodleMorph - Main Entry Point
==============================
Run the generation API (serve) or the drawing application (draw).
"""

from pathlib import Path

# Load environment variables from .env file
from dotenv import load_dotenv
load_dotenv(Path(__file__).parent / ".env")

from doodlemorph.ui import main

if __name__ == "__main__":
    main()
