import logging
import tqdm
import numpy as np
import annpack.config as config
import annpack.visitors as visitors
import annpack.optimizer as optim
from annpack.data import dataloader
from annpack.layers.layer import Layer
from annpack.loss_functions import get_loss

logger = logging.getLogger(__name__)

class FFN:
    '''Feed forward network, drives forward, backward and gradient across its layers.

    All layer parameters live in one flat buffer (parameters) with a matching
    gradient buffer, which is what the optimizers update.
    '''

    def __init__(self, loss='mean_squared_error', dtype=None):
        self.network = []
        self.loss_name = loss
        self.loss_fn = get_loss(loss)
        self.dtype = config.DTYPE if dtype is None else dtype
        self.parameters = np.empty(0, dtype=self.dtype)
        self.gradient = np.empty(0, dtype=self.dtype)
        self._offsets = []
        self._inputs = []
        self._ready = False

    def add(self, layer, *args, **kwargs):
        if isinstance(layer, type) and issubclass(layer, Layer):
            layer = layer(*args, **kwargs)
        if not isinstance(layer, Layer):
            raise TypeError(f"FFN holds Layer instances, got {type(layer).__name__}")

        self.network.append(layer)
        self._ready = False
        return layer

    def reset(self):
        if not self.network:
            raise RuntimeError("FFN has no layers, add() some before reset()")

        for layer in self.network: visitors.reset(layer)

        self.parameters = np.zeros(sum(visitors.weight_size(layer) for layer in self.network), dtype=self.dtype)
        self.gradient = np.zeros_like(self.parameters)

        self._offsets = []
        offset = 0
        for layer in self.network:
            size = visitors.set_weights(layer, self.parameters, offset)
            self._offsets.append((offset, size))
            offset += size

        self._ready = True
        logger.debug("FFN reset: %d layers, %d parameters", len(self.network), self.parameters.size)

    def _check_ready(self):
        if not self._ready:
            raise RuntimeError("FFN.reset() has to run after the last add() and before use")

    def _forward(self, inputs):
        self._inputs = []
        output = np.asarray(inputs, dtype=self.dtype)
        for layer in self.network:
            self._inputs.append(output)
            output = layer.forward(output)

        return output

    def predict(self, inputs):
        self._check_ready()
        return self._forward(inputs)

    def evaluate(self, inputs, targets):
        self._check_ready()
        loss, _ = self.loss_fn(self._forward(inputs), targets)
        return loss

    def evaluate_with_gradient(self, inputs, targets):
        '''Forward, backward and gradient over one batch. Fills gradient and returns the loss.'''
        self._check_ready()

        loss, error = self.loss_fn(self._forward(inputs), targets)

        # Backward pass
        errors = []
        for layer, layer_input in zip(reversed(self.network), reversed(self._inputs)):
            errors.append(error)
            error = layer.backward(layer_input, error)
        errors.reverse()

        # Gradient w.r.t each layer parameters
        for layer, layer_input, layer_error, (offset, size) in zip(self.network, self._inputs, errors, self._offsets):
            if size: self.gradient[offset:offset + size] = layer.gradient(layer_input, layer_error)

        return loss

    def train(self, inputs, targets, optimizer=None, epochs=config.MAX_EPOCHS, batch_size=config.BATCH_SIZE, shuffle=True, rng=None, progress=True):
        '''Minibatch training, returns the mean loss of the last epoch.'''
        if epochs < 1: raise ValueError(f"epochs has to be at least 1, got {epochs}")
        if not self._ready: self.reset()
        step, _ = optimizer if optimizer is not None else optim.sgd()

        epoch_loss = None
        for _ in (t := tqdm.trange(epochs, disable=not progress)):
            each_batch_loss = []
            for batched_inputs, batched_targets in dataloader(inputs, targets, batch_size, shuffle, rng):
                each_batch_loss.append(self.evaluate_with_gradient(batched_inputs, batched_targets))
                step(self.parameters, self.gradient)

            epoch_loss = float(np.mean(each_batch_loss))
            t.set_description(f'Loss: {epoch_loss:.4f}')

        logger.info("Training finished after %d epochs, loss %.6f", epochs, epoch_loss)
        return epoch_loss

    def model(self):
        return self.network

    def config(self):
        return {'loss': self.loss_name, 'dtype': np.dtype(self.dtype).name}

    def state_dict(self):
        self._check_ready()
        return {'layers': [layer.state_dict() for layer in self.network]}

    def load_state_dict(self, state):
        self._check_ready()
        if len(state['layers']) != len(self.network):
            raise ValueError(f"FFN holds {len(self.network)} layers, got state for {len(state['layers'])}")

        for layer, layer_state in zip(self.network, state['layers']):
            layer.load_state_dict(layer_state)
