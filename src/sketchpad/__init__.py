"""
Sketchpad Character Classifier
Classifies a hand-drawn digit (0-9) or letter (A-Z) with a small classifier
trained at startup on synthetic glyph images.
"""

__version__ = "1.0.0"
__author__ = "Sketchpad Team"
