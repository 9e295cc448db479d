'''Single operation helpers that work on any layer, whatever its concrete type.

Containers (WeightNorm, Sequential) own their children in a `network` list and
choose what they expose to graph walkers through model().
'''

def weight_size(layer):
    return layer.weight_size()

def bias_size(layer):
    return layer.bias_size()

def units(layer):
    return layer.units()

def reset(layer):
    layer.reset()

def set_weights(layer, buffer, offset=0):
    return layer.set_weights(buffer, offset)

def output_parameter(layer):
    return layer.output

def delta(layer):
    return layer.delta

def walk(layer):
    '''Yield the layer and, depth first, every layer exposed through model().'''
    yield layer
    for child in layer.model():
        yield from walk(child)

def delete(layer):
    '''Release the buffers of a layer and of every layer it owns.'''
    for child in getattr(layer, 'network', []):
        delete(child)

    if hasattr(layer, 'network'): layer.network = []
    layer.parameters = layer.parameters[:0].copy()
    layer.grad = layer.grad[:0].copy()
    layer.delta = None
    layer.output = None
