import numpy as np
import annpack.config as config

'''Optimizers update a flat parameter buffer in place from its gradient. Each factory returns (step, reset).'''

def sgd(lr=config.LEARNING_RATE):
    def step(parameters, gradient):
        parameters -= lr * gradient

    def reset(): pass

    return step, reset

def adam(lr=config.LEARNING_RATE, beta1=0.9, beta2=0.999, epsilon=1e-8, weight_decay=0.0):
    state = {}

    def step(parameters, gradient):
        # Moments are (re)created whenever the buffer size changes
        if state.get('m') is None or state['m'].shape != parameters.shape:
            state['m'] = np.zeros_like(parameters)
            state['v'] = np.zeros_like(parameters)
            state['t'] = 0

        state['t'] += 1
        # Decoupled weight decay
        if weight_decay: parameters -= lr * weight_decay * parameters

        # Update moments with current gradients
        state['m'] = beta1 * state['m'] + (1 - beta1) * gradient
        state['v'] = beta2 * state['v'] + (1 - beta2) * (gradient ** 2)

        # Compute bias-corrected moments
        m_hat = state['m'] / (1 - beta1 ** state['t'])
        v_hat = state['v'] / (1 - beta2 ** state['t'])

        parameters -= lr * (m_hat / (np.sqrt(v_hat) + epsilon))

    def reset(): state.clear()

    return step, reset

def adam_w(lr=config.LEARNING_RATE, beta1=0.9, beta2=0.999, weight_decay=0.01, epsilon=1e-8):
    return adam(lr, beta1, beta2, epsilon, weight_decay)

OPTIMIZERS = {'sgd': sgd, 'adam': adam, 'adam_w': adam_w}

def get_optimizer(name, **kwargs):
    if name not in OPTIMIZERS:
        raise ValueError(f"Unknown optimizer {name}, please use one of {sorted(OPTIMIZERS)}")

    return OPTIMIZERS[name](**kwargs)
