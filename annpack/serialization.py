import pickle
from annpack.ffn import FFN
from annpack.layers.linear import Linear
from annpack.layers.base_layer import BaseLayer
from annpack.layers.sequential import Sequential
from annpack.layers.weight_norm import WeightNorm

'''Layers persist as records: the layer type, its constructor arguments, the records of the layers it owns and,
at the root only, the state of the whole tree (which nests the states of the owned layers).'''

LAYER_TYPES = {cls.__name__: cls for cls in (Linear, BaseLayer, Sequential, WeightNorm, FFN)}

def _describe(layer):
    return {
        'type': type(layer).__name__,
        'config': layer.config(),
        'children': [_describe(child) for child in getattr(layer, 'network', [])],
    }

def _build(record):
    if record['type'] not in LAYER_TYPES:
        raise ValueError(f"Unknown layer type {record['type']}, please use one of {sorted(LAYER_TYPES)}")

    layer = LAYER_TYPES[record['type']](**record['config'])
    for child in record['children']: layer.add(_build(child))

    return layer

def serialize(layer):
    record = _describe(layer)
    record['state'] = layer.state_dict()

    return record

def deserialize(record):
    layer = _build(record)
    layer.reset()
    layer.load_state_dict(record['state'])

    return layer

def save(layer, path):
    with open(path, 'wb') as f: pickle.dump(serialize(layer), f)

def load(path):
    with open(path, 'rb') as f: return deserialize(pickle.load(f))
