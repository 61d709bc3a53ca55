"""
OC_Libs - Open Cutout Library Modules

This package contains the raster editing engine of the Open Cutout project,
organized into specialized sub-packages:

- ImageEditingLib: Pixel buffer, coordinate mapping, selection algorithms and history
- SessionLib: Edit session orchestration, segmentation providers and gesture routing
"""

__version__ = "0.1.0"
