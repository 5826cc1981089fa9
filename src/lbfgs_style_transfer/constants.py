"""
Constants used internally by the L-BFGS style transfer tool.

These are implementation-level values that should not be overridden
via config files or CLI arguments.
"""

# Per-channel means (BGR order) subtracted by the original Caffe VGG
# preprocessing.
# See: https://github.com/keras-team/keras/blob/master/keras/src/applications/imagenet_utils.py
CAFFE_BGR_MEAN = (103.939, 116.779, 123.68)

# Standard ImageNet normalization values used in torchvision.models
# See: https://pytorch.org/vision/stable/models.html#classification
IMAGENET_MEAN = (0.485, 0.456, 0.406)
IMAGENET_STD = (0.229, 0.224, 0.225)

# Shape used for per-channel broadcasting against [N, C, H, W]
CHANNEL_VIEW_SHAPE = (1, 3, 1, 1)

# Pixel range of the display image
PIXEL_MAX = 255.0

# Images above this size are accepted but logged as slow
MAX_DIMENSION = 3000

# Internal color constants
COLOR_MODE_RGB = "RGB"

# PIL modes that convert cleanly to 8-bit RGB
SUPPORTED_IMAGE_MODES = frozenset(
    {"1", "L", "LA", "P", "PA", "RGB", "RGBA", "RGBX", "CMYK", "YCbCr"},
)

# Number of images in the stacked extractor batch (content, style, candidate)
BATCH_CONTENT = 0
BATCH_STYLE = 1
BATCH_CANDIDATE = 2

# Names of the VGG19 feature layers, in network order, for torchvision's
# vgg19().features. Convolution names refer to the post-ReLU activation.
VGG19_LAYER_NAMES = (
    "block1_conv1", "block1_conv2", "block1_pool",
    "block2_conv1", "block2_conv2", "block2_pool",
    "block3_conv1", "block3_conv2", "block3_conv3", "block3_conv4",
    "block3_pool",
    "block4_conv1", "block4_conv2", "block4_conv3", "block4_conv4",
    "block4_pool",
    "block5_conv1", "block5_conv2", "block5_conv3", "block5_conv4",
    "block5_pool",
)

# L-BFGS-B warnflag reported when the optimizer aborted abnormally
LBFGS_WARNFLAG_ABNORMAL = 2
