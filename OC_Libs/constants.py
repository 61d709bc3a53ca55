"""
Constants and configuration values for Open Cutout.

This module centralizes all constant values, magic numbers, and
configuration settings used throughout the editing engine.
"""

# History constants
DEFAULT_HISTORY_CAPACITY = 10

# Tool defaults (view-space pixels / 0-100 tolerance scale)
DEFAULT_BRUSH_SIZE = 60.0
DEFAULT_TOLERANCE = 40.0
MIN_TOLERANCE = 0.0
MAX_TOLERANCE = 100.0

# Tolerance scaling: 0-100 user scale to 0-255 channel range
TOLERANCE_CHANNEL_SCALE = 2.55
COLOR_CHANNEL_COUNT = 3

# View constants
DEFAULT_TOUCH_OFFSET_Y = 0.0

# Pixel format
RGBA_CHANNELS = 4
ALPHA_CHANNEL = 3
TRANSPARENT_ALPHA = 0
IMAGE_MODE = "RGBA"

# Worker pool
DEFAULT_MAX_WORKERS = 1
WORKER_THREAD_PREFIX = "oc-session"

# Segmentation providers
PRIMARY_REMBG_MODEL = "u2net"
SECONDARY_REMBG_MODEL = "silueta"
MASK_MODEL_INPUT_SIZE = 320
