import numpy as np
import annpack.init as init
from annpack.layers.layer import Layer

class Linear(Layer):
    '''Fully connected layer, output = input @ weight.T + bias.

    parameters holds [weight (output_size x input_size, row-major), bias (output_size)],
    so row j of weight and bias[j] belong to output unit j.
    '''

    def __init__(self, input_size, output_size, bias=True, dtype=None, rng=None):
        super().__init__(dtype)
        if input_size <= 0 or output_size <= 0:
            raise ValueError(f"Linear sizes have to be positive, got {input_size} -> {output_size}")

        self.input_size = input_size
        self.output_size = output_size
        self.has_bias = bias
        self.parameters = init.linear_params_init(input_size, output_size, bias, rng=rng, dtype=self.dtype)
        self.reset()

    def reset(self):
        weight_count = self.output_size * self.input_size
        self.weight = self.parameters[:weight_count].reshape(self.output_size, self.input_size)
        self.bias = self.parameters[weight_count:] if self.has_bias else None

    def _check_input(self, input):
        input = np.asarray(input, dtype=self.dtype)
        if input.shape[-1] != self.input_size:
            raise ValueError(f"Linear expects {self.input_size} input features, got input of shape {input.shape}")

        return np.atleast_2d(input)

    def forward(self, input):
        input = self._check_input(input)

        output = np.matmul(input, self.weight.T)
        if self.has_bias: output = output + self.bias

        self.output = output
        return output

    def backward(self, input, gy):
        self.delta = np.matmul(np.atleast_2d(gy), self.weight)
        return self.delta

    def gradient(self, input, error):
        input = self._check_input(input)
        error = np.atleast_2d(error)

        weight_grad = np.matmul(error.T, input)
        if self.has_bias:
            self.grad = np.concatenate((weight_grad.ravel(), error.sum(axis=0)))
        else:
            self.grad = weight_grad.ravel()

        return self.grad

    def bias_size(self):
        return self.output_size if self.has_bias else 0

    def units(self):
        return self.output_size

    def config(self):
        return {'input_size': self.input_size, 'output_size': self.output_size, 'bias': self.has_bias,
                'dtype': np.dtype(self.dtype).name}
