"""Shared default values for user-facing configuration settings."""
from lbfgs_style_transfer.type_defs import InitMethod

# Image
DEFAULT_TARGET_HEIGHT = 400

# Loss weights
DEFAULT_CONTENT_WEIGHT = 0.025
DEFAULT_STYLE_WEIGHT = 1.0
DEFAULT_TV_WEIGHT = 1e-4
DEFAULT_TV_POWER = 1.25
# Layer names follow the Keras VGG19 convention, see
# constants.VGG19_LAYER_NAMES.
DEFAULT_CONTENT_LAYER = "block5_conv2"
DEFAULT_STYLE_LAYERS: tuple[str, ...] = (
    "block1_conv1",
    "block2_conv1",
    "block3_conv1",
    "block4_conv1",
    "block5_conv1",
)

# Optimization
DEFAULT_ITERATIONS = 20
DEFAULT_MAX_ITER = 15
DEFAULT_MAX_FUN: int | None = None
DEFAULT_INIT_METHOD: InitMethod = "content"
DEFAULT_SEED = 0
DEFAULT_FUSED_CALLBACKS = False

# Output
DEFAULT_OUTPUT_DIR = "out"
DEFAULT_SAVE_EVERY = 1
DEFAULT_CREATE_GIF = False
DEFAULT_GIF_FPS = 2
DEFAULT_PLOT_LOSSES = True

# Hardware
DEFAULT_DEVICE = "cuda"
