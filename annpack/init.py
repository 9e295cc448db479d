import math
import numpy as np
import annpack.config as config

'''Collection of parameters initializations'''

def calculate_gain(nonlinearity, param=None):
    if nonlinearity in ("linear", "identity", "sigmoid", "logistic"):
        return 1.0
    elif nonlinearity == "tanh":
        return 5.0 / 3
    elif nonlinearity == "relu":
        return math.sqrt(2.0)
    elif nonlinearity == "leaky_relu":
        if param is None:
            negative_slope = 0.01
        elif not isinstance(param, bool) and isinstance(param, (int, float)):
            # True/False are instances of int, hence the bool check
            negative_slope = param
        else:
            raise ValueError(f"negative_slope {param} not a valid number")
        return math.sqrt(2.0 / (1 + negative_slope**2))

    else: raise ValueError(f"Unsupported nonlinearity {nonlinearity}")

def _calculate_fan_in_and_fan_out(shape):
    if len(shape) < 2:
        raise ValueError(f"Fan in and fan out can not be computed for shape {tuple(shape)} with fewer than 2 dimensions")

    num_input_fmaps = shape[1]
    num_output_fmaps = shape[0]
    receptive_field_size = math.prod(shape[2:])

    return num_input_fmaps * receptive_field_size, num_output_fmaps * receptive_field_size

def _calculate_correct_fan(shape, mode):
    mode = mode.lower()
    valid_modes = ["fan_in", "fan_out"]
    if mode not in valid_modes:
        raise ValueError(f"Mode {mode} not supported, please use one of {valid_modes}")

    fan_in, fan_out = _calculate_fan_in_and_fan_out(shape)
    return fan_in if mode == "fan_in" else fan_out

def kaiming_uniform(shape, a=0, mode='fan_in', nonlinearity='leaky_relu', rng=None, dtype=None):
    rng = np.random.default_rng() if rng is None else rng
    fan = _calculate_correct_fan(shape, mode)
    gain = calculate_gain(nonlinearity, a)
    std = gain / math.sqrt(fan)
    bound = math.sqrt(3.0) * std # uniform bounds from standard deviation

    return rng.uniform(-bound, bound, size=shape).astype(config.DTYPE if dtype is None else dtype)

def linear_params_init(input_size, output_size, bias=True, rng=None, dtype=None):
    '''Flat [weight (output_size x input_size), bias (output_size)] buffer.'''
    rng = np.random.default_rng() if rng is None else rng
    dtype = config.DTYPE if dtype is None else dtype

    weights = kaiming_uniform((output_size, input_size), a=math.sqrt(5), rng=rng, dtype=dtype)
    if not bias: return weights.ravel()

    fan_in, _ = _calculate_fan_in_and_fan_out(weights.shape)
    bound = 1 / math.sqrt(fan_in) if fan_in > 0 else 0
    biases = rng.uniform(-bound, bound, size=(output_size,)).astype(dtype)

    return np.concatenate((weights.ravel(), biases))
