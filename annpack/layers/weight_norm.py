import logging
import numpy as np
import annpack.config as config
import annpack.visitors as visitors
from annpack.layers.layer import Layer

logger = logging.getLogger(__name__)

class WeightNorm(Layer):
    '''Weight normalization wrapper around a single layer.

    The wrapped layer's weights w are reparametrized per unit as
    w = g * v / ||v||, decoupling the length of each weight vector (magnitude g)
    from its direction v (Salimans & Kingma, 2016). The wrapper owns v and g;
    the wrapped layer's parameters only cache the effective weights installed
    by the latest forward().

    parameters is one flat buffer laid out as

        [direction | bias | magnitude]

    where bias holds the wrapped layer's bias terms, passed through without
    normalization (empty when reparametrize_bias is set or the layer has no
    bias), and magnitude holds one scalar per unit. grad uses the same layout.

    Args:
        layer: layer to wrap, or None to add() it later.
        units: number of groups the norms are taken over. None uses the
            wrapped layer's units() (one magnitude per output neuron), 1 gives
            a single global magnitude.
        model: expose the wrapped layer through model().
        reparametrize_bias: normalize the bias terms together with the weights
            of their unit instead of passing them through.
        eps: floor on the squared norm of each unit's direction.
    '''

    def __init__(self, layer=None, units=None, model=True, reparametrize_bias=False, eps=None, dtype=None):
        super().__init__(dtype)
        self.network = []
        self.expose_model = model
        self.requested_units = units
        self.reparametrize_bias = reparametrize_bias
        self.eps = config.WEIGHT_NORM_EPSILON if eps is None else eps

        self._ready = False
        self._installed = False

        if layer is not None: self.add(layer)

    def add(self, layer, *args, **kwargs):
        '''Attach the wrapped layer. A Layer subclass is constructed with args and kwargs first.'''
        if layer is None:
            raise RuntimeError("WeightNorm can not wrap an empty layer")
        if self.network:
            raise RuntimeError(f"WeightNorm already wraps {self.network[0]!r}, it holds exactly one layer")

        if isinstance(layer, type) and issubclass(layer, Layer):
            layer = layer(*args, **kwargs)
        elif args or kwargs:
            raise ValueError("Constructor arguments are only accepted together with a layer class")

        if not isinstance(layer, Layer):
            raise TypeError(f"WeightNorm wraps Layer instances, got {type(layer).__name__}")

        self.network.append(layer)
        self._ready = False

        return layer

    def reset(self):
        '''Derive direction and magnitude from the wrapped layer's current parameters.

        Call exactly once per attached layer: a second call takes the
        currently installed effective weights as the new direction.
        '''
        if not self.network:
            raise RuntimeError("WeightNorm has no wrapped layer, call add() before reset()")

        layer = self.network[0]
        # Containers only allocate their concatenated buffer on reset
        if visitors.weight_size(layer) == 0: visitors.reset(layer)

        self._layer_weight_size = visitors.weight_size(layer)
        if self._layer_weight_size == 0:
            raise ValueError(f"{layer!r} has no parameters to normalize")

        layer_bias_size = visitors.bias_size(layer)
        self._bias_size = 0 if self.reparametrize_bias else layer_bias_size
        self._direction_size = self._layer_weight_size - self._bias_size
        # Direction elements that precede the wrapped layer's bias terms
        self._head = self._layer_weight_size - layer_bias_size
        self._units = self._resolve_units(layer, layer_bias_size)

        current = np.array(layer.parameters, dtype=self.dtype, copy=True)
        self.parameters = np.empty(self._direction_size + self._bias_size + self._units, dtype=self.dtype)
        self.grad = np.zeros_like(self.parameters)
        self._bind_views()

        self.direction[:] = current[:self._direction_size]
        self.bias[:] = current[self._direction_size:]
        self.magnitude[:] = np.linalg.norm(self._unit_view(self.direction), axis=1)

        visitors.reset(layer)
        self._ready = True
        self._installed = False

        logger.debug("WeightNorm reset around %r: %d direction, %d bias, %d magnitude elements",
                     layer, self._direction_size, self._bias_size, self._units)

    def _resolve_units(self, layer, layer_bias_size):
        units = self.requested_units or visitors.units(layer) or 1

        if self._direction_size % units != 0:
            raise ValueError(f"{self._direction_size} direction elements can not be split into {units} units")
        if self.reparametrize_bias and (self._head % units != 0 or layer_bias_size % units != 0):
            raise ValueError(f"Weights ({self._head}) and bias ({layer_bias_size}) of {layer!r} can not be split into {units} units")

        return units

    def _bind_views(self):
        d, b = self._direction_size, self._bias_size

        self.direction = self.parameters[:d]
        self.bias = self.parameters[d:d + b]
        self.magnitude = self.parameters[d + b:]

        self.direction_grad = self.grad[:d]
        self.bias_grad = self.grad[d:d + b]
        self.magnitude_grad = self.grad[d + b:]

    def _unit_view(self, flat):
        '''(units, elements per unit) matrix of a direction shaped buffer.'''
        if self._head == self._direction_size:
            return flat.reshape(self._units, -1)

        weights = flat[:self._head].reshape(self._units, -1)
        biases = flat[self._head:].reshape(self._units, -1)
        return np.hstack((weights, biases))

    def _flatten(self, per_unit):
        if self._head == self._direction_size:
            return per_unit.ravel()

        split = self._head // self._units
        return np.concatenate((per_unit[:, :split].ravel(), per_unit[:, split:].ravel()))

    def _norm(self, v):
        return np.sqrt(np.maximum(np.sum(v**2, axis=1, keepdims=True), self.eps))

    def _check_ready(self):
        if not self.network:
            raise RuntimeError("WeightNorm has no wrapped layer, call add() and reset() first")
        if not self._ready:
            raise RuntimeError("WeightNorm.reset() has to run after add() and before use")
        if visitors.weight_size(self.network[0]) != self._layer_weight_size:
            raise RuntimeError(f"Wrapped layer changed its parameter count from {self._layer_weight_size} "
                               f"to {visitors.weight_size(self.network[0])} after reset()")

    def effective_weights(self):
        '''Wrapped layer parameters for the current direction and magnitude.'''
        self._check_ready()

        v = self._unit_view(self.direction)
        weights = self.magnitude[:, np.newaxis] * v / self._norm(v)

        return np.concatenate((self._flatten(weights), self.bias))

    def forward(self, input):
        self._check_ready()
        layer = self.network[0]

        layer.parameters[:] = self.effective_weights()
        self._installed = True

        layer.forward(input)
        self.output = visitors.output_parameter(layer)
        return self.output

    def backward(self, input, gy):
        self._check_ready()
        if not self._installed:
            raise RuntimeError("WeightNorm.backward() needs a preceding forward() to install the effective weights")

        layer = self.network[0]
        layer.backward(input, gy)
        self.delta = visitors.delta(layer)
        return self.delta

    def gradient(self, input, error):
        self._check_ready()
        d = self._direction_size

        layer_grad = np.asarray(self.network[0].gradient(input, error), dtype=self.dtype)
        weights_grad = self._unit_view(layer_grad[:d])

        v = self._unit_view(self.direction)
        norm = self._norm(v)
        g = self.magnitude[:, np.newaxis]

        # dL/dg = (dL/dw . v) / ||v||, dL/dv = g / ||v|| * (dL/dw - dL/dg * v / ||v||)
        magnitude_grad = np.sum(weights_grad * v, axis=1, keepdims=True) / norm
        direction_grad = g / norm * (weights_grad - magnitude_grad / norm * v)

        self.direction_grad[:] = self._flatten(direction_grad)
        self.bias_grad[:] = layer_grad[d:]
        self.magnitude_grad[:] = magnitude_grad.ravel()

        return self.grad

    def set_weights(self, buffer, offset=0):
        self._check_ready()
        size = self.parameters.size
        if offset + size > buffer.size:
            raise ValueError(f"Buffer of size {buffer.size} can not hold {size} weights at offset {offset}")

        buffer[offset:offset + size] = self.parameters
        self.parameters = buffer[offset:offset + size]
        self._bind_views()

        return size

    def units(self):
        return visitors.units(self.network[0]) if self.network else None

    def model(self):
        return self.network if self.expose_model else []

    def config(self):
        return {'units': self.requested_units, 'model': self.expose_model,
                'reparametrize_bias': self.reparametrize_bias, 'eps': self.eps,
                'dtype': np.dtype(self.dtype).name}

    def state_dict(self):
        self._check_ready()

        state = {'direction': self.direction.copy()}
        if self._bias_size: state['bias'] = self.bias.copy()
        state['magnitude'] = self.magnitude.copy()
        state['layer'] = self.network[0].state_dict()

        return state

    def load_state_dict(self, state):
        self._check_ready()

        expected = ['direction'] + (['bias'] if self._bias_size else []) + ['magnitude', 'layer']
        if list(state) != expected:
            raise ValueError(f"WeightNorm state has fields {list(state)}, expected {expected}")

        self.network[0].load_state_dict(state['layer'])
        for name in expected[:-1]:
            target = getattr(self, name)
            value = np.asarray(state[name], dtype=self.dtype)
            if value.shape != target.shape:
                raise ValueError(f"WeightNorm {name} has shape {target.shape}, got {value.shape}")
            target[...] = value

        self._installed = False
