import numpy as np
import annpack.visitors as visitors
from annpack.layers.layer import Layer

class Sequential(Layer):
    '''Chains layers, the output of each one is the input of the next.

    parameters is the concatenation of the children's parameters, installed
    through set_weights() so the children update in place.
    '''

    def __init__(self, *layers, model=True, dtype=None):
        super().__init__(dtype)
        self.network = []
        self.expose_model = model
        self.inputs = []
        for layer in layers: self.add(layer)

    def add(self, layer, *args, **kwargs):
        if isinstance(layer, type) and issubclass(layer, Layer):
            layer = layer(*args, **kwargs)
        if not isinstance(layer, Layer):
            raise TypeError(f"Sequential holds Layer instances, got {type(layer).__name__}")

        self.network.append(layer)
        return layer

    def reset(self):
        if not self.network:
            raise RuntimeError("Sequential has no layers, add() some before reset()")

        for layer in self.network: visitors.reset(layer)

        self.parameters = np.zeros(sum(visitors.weight_size(layer) for layer in self.network), dtype=self.dtype)
        self.grad = np.zeros_like(self.parameters)
        self._install()

    def _install(self):
        offset = 0
        for layer in self.network:
            offset += visitors.set_weights(layer, self.parameters, offset)

    def set_weights(self, buffer, offset=0):
        size = self.parameters.size
        if offset + size > buffer.size:
            raise ValueError(f"Buffer of size {buffer.size} can not hold {size} weights at offset {offset}")

        buffer[offset:offset + size] = self.parameters
        self.parameters = buffer[offset:offset + size]
        self._install()

        return size

    def forward(self, input):
        self.inputs = []
        for layer in self.network:
            self.inputs.append(input)
            input = layer.forward(input)

        self.output = input
        return self.output

    def backward(self, input, gy):
        if len(self.inputs) != len(self.network):
            raise RuntimeError("Sequential.backward() needs a preceding forward()")

        for layer, layer_input in zip(reversed(self.network), reversed(self.inputs)):
            gy = layer.backward(layer_input, gy)

        self.delta = gy
        return self.delta

    def gradient(self, input, error):
        '''error is the gradient w.r.t. the output, the children's deltas from backward() carry it inwards.'''
        if len(self.inputs) != len(self.network):
            raise RuntimeError("Sequential.gradient() needs a preceding forward()")

        offset = 0
        errors = [visitors.delta(layer) for layer in self.network[1:]] + [error]
        for layer, layer_input, layer_error in zip(self.network, self.inputs, errors):
            size = visitors.weight_size(layer)
            if size: self.grad[offset:offset + size] = layer.gradient(layer_input, layer_error)
            offset += size

        return self.grad

    def model(self):
        return self.network if self.expose_model else []

    def config(self):
        return {'model': self.expose_model, 'dtype': np.dtype(self.dtype).name}

    def state_dict(self):
        return {'layers': [layer.state_dict() for layer in self.network]}

    def load_state_dict(self, state):
        if len(state['layers']) != len(self.network):
            raise ValueError(f"Sequential holds {len(self.network)} layers, got state for {len(state['layers'])}")

        for layer, layer_state in zip(self.network, state['layers']):
            layer.load_state_dict(layer_state)
