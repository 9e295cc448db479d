import numpy as np
import annpack.config as config

def dataloader(inputs, targets, batch_size, shuffle, rng=None):
    inputs = np.asarray(inputs)
    targets = np.asarray(targets)
    assert inputs.shape[0] == targets.shape[0], f'inputs and targets have to hold the same number of samples: {inputs.shape[0]}, {targets.shape[0]}'

    num_samples = inputs.shape[0]
    indices = np.arange(num_samples)
    if shuffle: (np.random.default_rng() if rng is None else rng).shuffle(indices)

    for start_idx in range(0, num_samples, batch_size):
        batch = indices[start_idx:start_idx + batch_size]
        yield inputs[batch], targets[batch]

def load_csv(path, missing_value='nan', delimiter=',', dtype=None):
    '''Rows are points, columns are dimensions. Tokens equal to missing_value load as NaN.'''
    missing_value = str(missing_value).strip()
    rows = []
    with open(path, 'r') as f:
        for line_number, line in enumerate(f.read().splitlines(), start=1):
            if not line.strip(): continue

            row = []
            for token in line.split(delimiter):
                token = token.strip()
                if token == missing_value:
                    row.append(np.nan)
                    continue
                try:
                    row.append(float(token))
                except ValueError:
                    raise ValueError(f"{path}:{line_number}: can not parse {token!r} as a number") from None
            rows.append(row)

    if len({len(row) for row in rows}) > 1:
        raise ValueError(f"{path}: rows have different numbers of columns")

    return np.array(rows, dtype=config.DTYPE if dtype is None else dtype).reshape(len(rows), -1)

def save_csv(path, data, delimiter=','):
    np.savetxt(path, np.atleast_2d(data), delimiter=delimiter, fmt='%.10g')
