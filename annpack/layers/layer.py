import numpy as np
import annpack.config as config

class Layer:
    '''Base of every layer.

    A layer maps an input to an output (forward), propagates an upstream
    gradient back to its input (backward) and computes the gradient of its own
    flat parameter buffer (gradient). The buffers are plain attributes:
    parameters, grad, delta and output.
    '''

    def __init__(self, dtype=None):
        self.dtype = config.DTYPE if dtype is None else dtype
        self.parameters = np.empty(0, dtype=self.dtype)
        self.grad = np.empty(0, dtype=self.dtype)
        self.delta = None
        self.output = None

    def forward(self, input):
        raise NotImplementedError

    def backward(self, input, gy):
        raise NotImplementedError

    def gradient(self, input, error):
        self.grad = np.empty(0, dtype=self.dtype)
        return self.grad

    def reset(self):
        pass

    def weight_size(self):
        return self.parameters.size

    def bias_size(self):
        return 0

    def units(self):
        return None

    def set_weights(self, buffer, offset=0):
        size = self.weight_size()
        assert buffer.ndim == 1, f'Parameter buffer has to be flat, got shape {buffer.shape}'
        if offset + size > buffer.size:
            raise ValueError(f"Buffer of size {buffer.size} can not hold {size} weights at offset {offset}")

        buffer[offset:offset + size] = self.parameters
        self.parameters = buffer[offset:offset + size]
        self.reset()

        return size

    def model(self):
        return []

    def config(self):
        return {}

    def state_dict(self):
        return {'parameters': self.parameters.copy()}

    def load_state_dict(self, state):
        parameters = np.asarray(state['parameters'], dtype=self.dtype)
        if parameters.size != self.weight_size():
            raise ValueError(f"{type(self).__name__} holds {self.weight_size()} parameters, got {parameters.size}")

        self.parameters[...] = parameters
        self.reset()

    def __repr__(self):
        args = ', '.join(f'{k}={v!r}' for k, v in self.config().items())
        return f'{type(self).__name__}({args})'
