"""Central configuration for house number circle detection.

All tunable parameters are defined here with descriptive names.
These values can be adjusted to fine-tune detection performance on
different map scans.
"""

# =============================================================================
# IMAGE PREPROCESSING
# =============================================================================

# Gaussian blur strength applied before edge detection (noise suppression)
BLUR_SIGMA = 1.5

# Canny hysteresis thresholds on the gradient magnitude
EDGE_LOW_THRESHOLD = 50.0
EDGE_HIGH_THRESHOLD = 100.0

# =============================================================================
# CONTOUR DETECTION
# =============================================================================

# Minimum number of edge pixels for a connected component to be kept
CONTOUR_MIN_AREA = 10

# Margin (pixels) added around each contour bounding box before cropping
CONTOUR_PADDING = 10

# Pixel connectivity used when labelling edge components (4 or 8)
CONTOUR_CONNECTIVITY = 8

# Maximum deviation (pixels) when smoothing a boundary into a polygon before
# measuring it. Removes the pixel staircase that inflates the perimeter.
CONTOUR_SMOOTHING_EPSILON = 1.0

# =============================================================================
# CIRCLE FILTERING
# =============================================================================

# Radius bounds in pixels, radius is (width + height) / 4 of the contour box
MIN_CIRCLE_RADIUS = 10.0
MAX_CIRCLE_RADIUS = 200.0

# Maximum accepted circularity score (perimeter^2 / (4 * pi * area)).
# A perfect circle scores 1.0, jagged or elongated shapes score higher.
CIRCULARITY_THRESHOLD = 2.0

# Bounding box aspect ratio band (width / height), circles are roughly square
MIN_CIRCLE_ASPECT_RATIO = 0.7
MAX_CIRCLE_ASPECT_RATIO = 1.4

# =============================================================================
# BRIGHTNESS VALIDATION
# =============================================================================

# Mean brightness (0-255) inside the circle for it to count as a white marker
WHITE_BRIGHTNESS_THRESHOLD = 200.0

# =============================================================================
# BACKGROUND REMOVAL
# =============================================================================

# Pixels shaved off the estimated radius so the printed ring is masked out
RING_MARGIN = 2.0

# Pixels at or above this value are treated as background (ring, paper)
DARK_PIXEL_THRESHOLD = 150

# Pixels below this value count as content when cropping to the digits
CONTENT_THRESHOLD = 250

# Uniform white border (pixels) kept around the isolated digits
CONTENT_BORDER = 5

# =============================================================================
# OCR
# =============================================================================

# Square canvas size the digits are scaled onto before recognition
UPSCALE_TARGET_SIZE = 100

# Sharpening strength for the optional sharpen step (disabled by default,
# it did not improve recognition on the sample maps)
SHARPEN_STRENGTH = 0.5
SHARPEN_ENABLED = False

# EasyOCR reader settings
OCR_LANGUAGES = ("en",)
OCR_GPU = False

# Characters a house number may contain (digits plus suffix letters)
OCR_ALLOWLIST = "0123456789abcdefghijklmnopqrstuvwxyzABCDEFGHIJKLMNOPQRSTUVWXYZ"

# Regions recognized below this confidence are dropped
OCR_CONFIDENCE_THRESHOLD = 0.3

# =============================================================================
# DEBUG OUTPUT
# =============================================================================

# File extension for debug snapshots (lossless so edge images stay exact)
DEBUG_IMAGE_EXTENSION = "png"

# Separator between lineage segments in debug filenames ("01-03-02.png")
LINEAGE_SEPARATOR = "-"
