import math
import torch
import pytest
import numpy as np
from annpack.layers import Linear, Sequential, WeightNorm

def numerical_gradient(loss, parameters, eps=1e-6):
    grad = np.zeros_like(parameters)
    for i in range(parameters.size):
        original = parameters[i]
        parameters[i] = original + eps
        plus = loss()
        parameters[i] = original - eps
        minus = loss()
        parameters[i] = original
        grad[i] = (plus - minus) / (2 * eps)

    return grad

def wrapped_linear(input_size=4, output_size=3, bias=True, seed=0, **kwargs):
    layer = Linear(input_size, output_size, bias=bias, rng=np.random.default_rng(seed))
    weight_norm = WeightNorm(layer, **kwargs)
    weight_norm.reset()

    return weight_norm, layer

def test_reset_reconstructs_the_wrapped_weights():
    layer = Linear(4, 3, rng=np.random.default_rng(0))
    original = layer.parameters.copy()
    weight_norm = WeightNorm(layer)
    weight_norm.reset()

    assert np.allclose(weight_norm.effective_weights(), original)
    assert np.allclose(weight_norm.direction, original[:12])
    assert np.allclose(weight_norm.bias, original[12:])
    assert np.allclose(weight_norm.magnitude, np.linalg.norm(original[:12].reshape(3, 4), axis=1))

    x = np.random.default_rng(1).normal(size=(5, 4))
    expected = x @ original[:12].reshape(3, 4).T + original[12:]
    assert np.allclose(weight_norm.forward(x), expected)

def test_forward_is_deterministic():
    weight_norm, _ = wrapped_linear()
    x = np.random.default_rng(2).normal(size=(3, 4))

    first = weight_norm.forward(x).copy()
    second = weight_norm.forward(x)

    assert np.array_equal(first, second)

def test_gradient_layout_matches_parameters():
    weight_norm, _ = wrapped_linear()
    rng = np.random.default_rng(3)
    x, error = rng.normal(size=(2, 4)), rng.normal(size=(2, 3))

    weight_norm.forward(x)
    weight_norm.backward(x, error)
    grad = weight_norm.gradient(x, error)

    assert grad.shape == weight_norm.parameters.shape
    assert weight_norm.direction_grad.size == weight_norm.direction.size == 12
    assert weight_norm.bias_grad.size == weight_norm.bias.size == 3
    assert weight_norm.magnitude_grad.size == weight_norm.magnitude.size == 3
    assert np.shares_memory(grad, weight_norm.magnitude_grad)

def test_gradient_of_single_unit_example():
    layer = Linear(3, 1, bias=False)
    layer.parameters[:] = [3, 4, 0]
    weight_norm = WeightNorm(layer)
    weight_norm.reset()
    weight_norm.magnitude[:] = 1

    x = np.array([[1.0, 2.0, 3.0]])
    error = np.array([[1.0]])
    assert np.allclose(weight_norm.forward(x), [[2.2]])

    grad = weight_norm.gradient(x, error)
    assert np.allclose(weight_norm.direction_grad, [-0.064, 0.048, 0.6])
    assert np.allclose(weight_norm.magnitude_grad, [2.2])

    numeric = numerical_gradient(lambda: np.sum(weight_norm.forward(x) * error), weight_norm.parameters)
    assert np.allclose(grad, numeric, atol=1e-6)

@pytest.mark.parametrize("kwargs", [{}, {'units': 1}, {'reparametrize_bias': True}, {'bias': False}])
def test_gradient_matches_finite_differences(kwargs):
    weight_norm, _ = wrapped_linear(4, 3, **kwargs)
    rng = np.random.default_rng(4)
    weight_norm.direction[:] = rng.normal(size=weight_norm.direction.size)
    weight_norm.magnitude[:] = rng.uniform(0.5, 2.0, size=weight_norm.magnitude.size)

    x, readout = rng.normal(size=(5, 4)), rng.normal(size=(5, 3))
    loss = lambda: 0.5 * np.sum((weight_norm.forward(x) * readout)**2)

    output = weight_norm.forward(x)
    analytic = weight_norm.gradient(x, output * readout**2).copy()
    numeric = numerical_gradient(loss, weight_norm.parameters)

    assert np.allclose(analytic, numeric, atol=1e-6)

def test_matches_torch_weight_norm_parametrization():
    rng = np.random.default_rng(5)
    weight_norm, layer = wrapped_linear(5, 3, seed=6)
    v, g = rng.normal(size=(3, 5)), rng.uniform(0.5, 2.0, size=3)
    weight_norm.direction[:] = v.ravel()
    weight_norm.magnitude[:] = g

    torch_linear = torch.nn.Linear(5, 3, dtype=torch.float64)
    with torch.no_grad():
        torch_linear.bias.copy_(torch.tensor(layer.bias))
    torch_linear = torch.nn.utils.parametrizations.weight_norm(torch_linear, name='weight', dim=0)
    torch_g = torch_linear.parametrizations.weight.original0
    torch_v = torch_linear.parametrizations.weight.original1
    with torch.no_grad():
        torch_g.copy_(torch.tensor(g).reshape(3, 1))
        torch_v.copy_(torch.tensor(v))

    x, gy = rng.normal(size=(4, 5)), rng.normal(size=(4, 3))
    torch_x = torch.tensor(x, requires_grad=True)
    torch_out = torch_linear(torch_x)
    torch_out.backward(torch.tensor(gy))

    output = weight_norm.forward(x)
    delta = weight_norm.backward(x, gy)
    weight_norm.gradient(x, gy)

    assert np.allclose(output, torch_out.detach().numpy())
    assert np.allclose(delta, torch_x.grad.numpy())
    assert np.allclose(weight_norm.direction_grad.reshape(3, 5), torch_v.grad.numpy())
    assert np.allclose(weight_norm.magnitude_grad, torch_g.grad.numpy().ravel())
    assert np.allclose(weight_norm.bias_grad, torch_linear.bias.grad.numpy())

def test_zero_direction_stays_finite():
    weight_norm, layer = wrapped_linear(3, 2)
    weight_norm.direction.reshape(2, 3)[0] = 0
    x, error = np.ones((2, 3)), np.ones((2, 2))

    output = weight_norm.forward(x)
    weight_norm.backward(x, error)
    grad = weight_norm.gradient(x, error)

    assert np.all(np.isfinite(output))
    assert np.all(np.isfinite(grad))
    assert np.allclose(output[:, 0], weight_norm.bias[0])

def test_add_twice_fails_and_keeps_the_first_layer():
    first, second = Linear(2, 2), Linear(2, 2)
    weight_norm = WeightNorm(first)

    with pytest.raises(RuntimeError):
        weight_norm.add(second)
    assert weight_norm.network == [first]

def test_add_rejects_empty_layer():
    with pytest.raises(RuntimeError):
        WeightNorm().add(None)

def test_add_constructs_layer_class():
    weight_norm = WeightNorm()
    layer = weight_norm.add(Linear, 3, 2, bias=False)

    assert isinstance(layer, Linear)
    assert weight_norm.network == [layer]
    assert layer.weight_size() == 6

def test_single_unit_end_to_end():
    layer = Linear(2, 1, bias=False)
    layer.parameters[:] = [1, 2]
    weight_norm = WeightNorm(layer)
    weight_norm.reset()

    assert np.allclose(weight_norm.direction, [1, 2])
    assert np.allclose(weight_norm.magnitude, [math.sqrt(5)])
    assert np.allclose(weight_norm.effective_weights(), [1, 2])
    assert np.allclose(weight_norm.forward(np.array([1.0, 1.0])), [[3.0]])

def test_use_before_reset_fails():
    x = np.ones((1, 2))
    with pytest.raises(RuntimeError):
        WeightNorm().forward(x)
    with pytest.raises(RuntimeError):
        WeightNorm().reset()
    with pytest.raises(RuntimeError):
        WeightNorm(Linear(2, 2)).forward(x)

def test_backward_needs_forward():
    weight_norm, _ = wrapped_linear(2, 2)
    with pytest.raises(RuntimeError):
        weight_norm.backward(np.ones((1, 2)), np.ones((1, 2)))

def test_backward_uses_installed_weights():
    weight_norm, layer = wrapped_linear(4, 3)
    rng = np.random.default_rng(7)
    weight_norm.direction[:] = rng.normal(size=12)
    x, gy = rng.normal(size=(2, 4)), rng.normal(size=(2, 3))

    weight_norm.forward(x)
    delta = weight_norm.backward(x, gy)

    effective = weight_norm.effective_weights()[:12].reshape(3, 4)
    assert np.allclose(delta, gy @ effective)
    assert delta is layer.delta

def test_direction_and_magnitude_are_the_source_of_truth():
    weight_norm, _ = wrapped_linear(3, 2, bias=False)
    x = np.random.default_rng(8).normal(size=(4, 3))
    before = weight_norm.forward(x).copy()

    # Optimizers only see the flat buffer
    weight_norm.parameters[-2:] *= 2

    assert np.allclose(weight_norm.forward(x), 2 * before)

def test_global_magnitude():
    weight_norm, layer = wrapped_linear(4, 3, units=1)

    assert weight_norm.magnitude.size == 1
    assert np.allclose(weight_norm.magnitude, np.linalg.norm(layer.parameters[:12]))

def test_reparametrized_bias_groups_each_unit():
    layer = Linear(4, 3, rng=np.random.default_rng(9))
    original = layer.parameters.copy()
    weight_norm = WeightNorm(layer, reparametrize_bias=True)
    weight_norm.reset()

    assert weight_norm.direction.size == layer.weight_size()
    assert weight_norm.bias.size == 0
    rows = np.hstack((original[:12].reshape(3, 4), original[12:].reshape(3, 1)))
    assert np.allclose(weight_norm.magnitude, np.linalg.norm(rows, axis=1))
    assert np.allclose(weight_norm.effective_weights(), original)

def test_units_have_to_split_the_direction():
    with pytest.raises(ValueError):
        wrapped_linear(3, 2, bias=False, units=4)

def test_parameter_count_change_is_detected():
    weight_norm, layer = wrapped_linear(2, 2)
    layer.parameters = np.zeros(3)

    with pytest.raises(RuntimeError):
        weight_norm.forward(np.ones((1, 2)))

def test_model_exposure():
    weight_norm, layer = wrapped_linear()
    hidden, _ = wrapped_linear(model=False)

    assert weight_norm.model() == [layer]
    assert hidden.model() == []

def test_state_dict_fields():
    weight_norm, _ = wrapped_linear()
    no_bias, _ = wrapped_linear(bias=False)

    assert list(weight_norm.state_dict()) == ['direction', 'bias', 'magnitude', 'layer']
    assert list(no_bias.state_dict()) == ['direction', 'magnitude', 'layer']

def test_load_state_dict_restores_output():
    source, _ = wrapped_linear(seed=10)
    target, _ = wrapped_linear(seed=11)
    source.magnitude[:] = [0.5, 1.5, 2.5]
    x = np.random.default_rng(12).normal(size=(2, 4))

    target.load_state_dict(source.state_dict())

    assert np.array_equal(target.parameters, source.parameters)
    assert np.allclose(target.forward(x), source.forward(x))

    state = source.state_dict()
    state['magnitude'] = np.ones(4)
    with pytest.raises(ValueError):
        target.load_state_dict(state)

def test_reset_allocates_an_unreset_container():
    rng = np.random.default_rng(13)
    first, second = Linear(2, 3, rng=rng), Linear(3, 1, rng=rng)
    original = np.concatenate((first.parameters, second.parameters))
    weight_norm = WeightNorm(Sequential(first, second))
    weight_norm.reset()

    assert weight_norm.direction.size == original.size
    assert weight_norm.magnitude.size == 1
    assert np.allclose(weight_norm.effective_weights(), original)

    x = rng.normal(size=(4, 2))
    expected = (x @ original[:6].reshape(3, 2).T + original[6:9]) @ original[9:12].reshape(1, 3).T + original[12:]
    assert np.allclose(weight_norm.forward(x), expected)
