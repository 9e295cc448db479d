import numpy as np

'''Loss functions return the batch mean loss and its gradient w.r.t. the prediction'''

def _softmax(x):
    shifted = x - np.max(x, axis=-1, keepdims=True)
    exp = np.exp(shifted)
    return exp / np.sum(exp, axis=-1, keepdims=True)

def _log_softmax(x):
    shifted = x - np.max(x, axis=-1, keepdims=True)
    return shifted - np.log(np.sum(np.exp(shifted), axis=-1, keepdims=True))

def mean_squared_error():
    def forward(prediction, expected):
        prediction = np.atleast_2d(prediction)
        expected = np.asarray(expected, dtype=prediction.dtype).reshape(prediction.shape)

        diff = prediction - expected
        avg_loss = np.mean(np.sum(diff**2, axis=-1))
        grad = 2 * diff / prediction.shape[0]

        return avg_loss, grad

    return forward

def cross_entropy():
    def forward(prediction, expected):
        prediction = np.atleast_2d(prediction)
        expected = np.asarray(expected)

        # Class indices to one hot
        if expected.ndim == 1:
            one_hot = np.zeros_like(prediction)
            one_hot[np.arange(len(prediction)), expected.astype(np.int64)] = 1
            expected = one_hot

        avg_loss = -np.mean(np.sum(expected * _log_softmax(prediction), axis=-1))
        grad = (_softmax(prediction) - expected) / prediction.shape[0]

        return avg_loss, grad

    return forward

LOSSES = {'mean_squared_error': mean_squared_error, 'cross_entropy': cross_entropy}

def get_loss(name):
    if name not in LOSSES:
        raise ValueError(f"Unknown loss {name}, please use one of {sorted(LOSSES)}")

    return LOSSES[name]()
