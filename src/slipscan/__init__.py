"""
Slipscan receipt OCR extraction package.

The package turns a photographed or scanned receipt into a structured record by
running an ordered chain of OCR providers and a heuristic text parser.
"""

__all__ = ["__version__"]

__version__ = "0.1.0"
