import numpy as np

'''Elementwise activation functions. Each factory returns the function and its first derivative, both taking the input x.'''

def inverse_quadratic():
    '''f(x) = 1 / (1 + x^2), f'(x) = -2x / (1 + x^2)^2'''

    def fn(x):
        x = np.asarray(x)
        return 1 / (1 + x**2)

    def deriv(x):
        x = np.asarray(x)
        return -2 * x / (1 + x**2)**2

    return fn, deriv

def identity():
    def fn(x): return np.asarray(x)

    def deriv(x): return np.ones_like(np.asarray(x, dtype=float))

    return fn, deriv

def logistic():
    def fn(x):
        x = np.asarray(x)
        # Split by sign so exp never overflows
        return np.where(x >= 0, 1 / (1 + np.exp(-np.abs(x))), np.exp(-np.abs(x)) / (1 + np.exp(-np.abs(x))))

    def deriv(x):
        y = fn(x)
        return y * (1 - y)

    return fn, deriv

def tanh():
    def fn(x): return np.tanh(x)

    def deriv(x): return 1 - np.tanh(x)**2

    return fn, deriv

def relu():
    def fn(x): return np.maximum(0, x)

    def deriv(x): return np.where(np.asarray(x) > 0, 1.0, 0.0)

    return fn, deriv

def leaky_relu(alpha=0.03):
    def fn(x):
        x = np.asarray(x)
        return np.where(x > 0, x, alpha * x)

    def deriv(x): return np.where(np.asarray(x) > 0, 1.0, alpha)

    return fn, deriv

ACTIVATIONS = {
    'inverse_quadratic': inverse_quadratic,
    'identity': identity,
    'logistic': logistic,
    'tanh': tanh,
    'relu': relu,
    'leaky_relu': leaky_relu,
}

def get_activation(name, **kwargs):
    if name not in ACTIVATIONS:
        raise ValueError(f"Unknown activation {name}, please use one of {sorted(ACTIVATIONS)}")

    return ACTIVATIONS[name](**kwargs)
