from annpack.preprocess.imputer import STRATEGIES, impute
