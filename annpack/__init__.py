import logging

from annpack.ffn import FFN
from annpack.layers import Layer, Linear, BaseLayer, Sequential, WeightNorm
from annpack.activation_functions import get_activation
from annpack.preprocess import impute

__version__ = "0.1.0"

logging.getLogger(__name__).addHandler(logging.NullHandler())
