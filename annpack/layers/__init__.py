from annpack.layers.layer import Layer
from annpack.layers.linear import Linear
from annpack.layers.base_layer import BaseLayer
from annpack.layers.sequential import Sequential
from annpack.layers.weight_norm import WeightNorm
