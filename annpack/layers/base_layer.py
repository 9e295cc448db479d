import numpy as np
from annpack.activation_functions import get_activation
from annpack.layers.layer import Layer

class BaseLayer(Layer):
    '''Applies an elementwise activation function, no parameters.'''

    def __init__(self, activation='inverse_quadratic', dtype=None, **kwargs):
        super().__init__(dtype)
        self.activation = activation
        self.activation_kwargs = kwargs
        self.fn, self.deriv = get_activation(activation, **kwargs)

    def forward(self, input):
        self.output = self.fn(np.asarray(input, dtype=self.dtype))
        return self.output

    def backward(self, input, gy):
        self.delta = gy * self.deriv(np.asarray(input, dtype=self.dtype))
        return self.delta

    def config(self):
        return {'activation': self.activation, 'dtype': np.dtype(self.dtype).name, **self.activation_kwargs}
