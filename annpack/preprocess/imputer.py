import logging
import numpy as np

logger = logging.getLogger(__name__)

'''Missing value imputation. Data is row-major: rows are points, columns are dimensions.'''

STRATEGIES = ('mean', 'median', 'custom', 'listwise_deletion')

def _missing_mask(data, missing_value):
    if isinstance(missing_value, float) and np.isnan(missing_value):
        return np.isnan(data)

    return (data == missing_value) | np.isnan(data)

def _dimensions(data, dimension):
    if dimension is None: return list(range(data.shape[1]))

    dimensions = [dimension] if np.isscalar(dimension) else list(dimension)
    for d in dimensions:
        if not 0 <= d < data.shape[1]:
            raise ValueError(f"Dimension {d} out of range for data with {data.shape[1]} dimensions")

    return dimensions

def impute(data, strategy, missing_value=np.nan, custom_value=None, dimension=None):
    '''Replace (or drop) missing values of the selected dimensions, all of them by default.

    mean and median use the non-missing values of the same dimension, custom
    writes custom_value and listwise_deletion removes every point holding a
    missing value in a selected dimension.
    '''
    if strategy not in STRATEGIES:
        raise ValueError(f"Unknown imputation strategy {strategy!r}, please use one of {list(STRATEGIES)}")
    if strategy == 'custom' and custom_value is None:
        raise ValueError("The custom strategy requires a custom_value")

    data = np.array(data, dtype=float, copy=True)
    if data.ndim == 1: data = data[:, np.newaxis]

    dimensions = _dimensions(data, dimension)
    missing = _missing_mask(data, missing_value)

    if strategy == 'listwise_deletion':
        keep = ~missing[:, dimensions].any(axis=1)
        logger.info("Listwise deletion removed %d of %d points", int((~keep).sum()), data.shape[0])
        return data[keep]

    for d in dimensions:
        column_missing = missing[:, d]
        if not column_missing.any(): continue

        if strategy == 'custom':
            value = custom_value
        else:
            available = data[~column_missing, d]
            if available.size == 0:
                raise ValueError(f"Dimension {d} holds no values to compute the {strategy} from")
            value = np.mean(available) if strategy == 'mean' else np.median(available)

        data[column_missing, d] = value
        logger.debug("Imputed %d values of dimension %d with %s", int(column_missing.sum()), d, value)

    return data
