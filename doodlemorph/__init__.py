# DoodleMorph - Sketch a character, morph it with AI, place it back on the canvas
# Author: DoodleMorph Team
# Version: 1.0.0

"""
Core modules for the doodle-to-character system:
- config: Environment driven settings
- canvas: Shape and asset document with raster export
- selection: Classifies the current selection
- media: Data URL and asset payload helpers
- capture: Rasterizes selections and extracts image data
- placeholder: In-progress placeholder shapes
- placement: Places generated images and videos on the canvas
- generation: fal.ai / Hugging Face / mock generators and prompt writers
- server: FastAPI generation endpoints
- tools: Canvas workflows behind the contextual toolbar
- ui: Desktop drawing application
"""

__version__ = "1.0.0"
__author__ = "DoodleMorph Team"
