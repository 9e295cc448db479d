'''Default knobs shared by layers, the network and the runners'''
import numpy as np

DTYPE = np.float64

# Floor on the squared per-unit norm of a weight norm direction
WEIGHT_NORM_EPSILON = 1e-12

# Training
MAX_EPOCHS = 10
BATCH_SIZE = 32
LEARNING_RATE = 0.01
