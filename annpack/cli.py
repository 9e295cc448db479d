'''
Command line binding of the missing value imputer.

Usage:
    annpack-imputer --input_file data.csv --output_file out.csv --missing_value nan --strategy mean
    annpack-imputer --input_file data.csv --output_file out.csv --missing_value ? --strategy custom --custom_value 75.12
'''

import sys
import logging
import argparse
import numpy as np
from annpack.data import load_csv, save_csv
from annpack.preprocess.imputer import STRATEGIES, impute

logger = logging.getLogger(__name__)

def _missing_marker(missing_value):
    # Tokens that are not numbers were mapped to NaN while loading
    try:
        return float(missing_value)
    except (TypeError, ValueError):
        return np.nan

def preprocess_imputer(params):
    '''Run the imputer on a dict of parameters, returns {'output': imputed data}.'''
    for name in ('input', 'missing_value', 'strategy'):
        if params.get(name) is None:
            raise ValueError(f"Missing required parameter {name!r}")

    strategy = params['strategy']
    custom_value = params.get('custom_value')
    if strategy != 'custom' and custom_value is not None:
        logger.warning("custom_value is ignored by the %s strategy", strategy)
        custom_value = None

    data = np.asarray(params['input'], dtype=float)
    output = impute(data, strategy, _missing_marker(params['missing_value']), custom_value, params.get('dimension'))

    return {'output': output}

def build_parser():
    parser = argparse.ArgumentParser(
        prog='annpack-imputer',
        description="Impute missing values of a CSV dataset (rows are points, columns are dimensions).",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    parser.add_argument("--input_file", "-i", required=True, help="CSV file holding the dataset")
    parser.add_argument("--output_file", "-o", help="CSV file the imputed dataset is written to")
    parser.add_argument("--missing_value", "-m", required=True, help="Token marking a missing value, e.g. nan or ?")
    parser.add_argument("--strategy", "-s", required=True, help=f"One of {', '.join(STRATEGIES)}")
    parser.add_argument("--custom_value", "-c", type=float, help="Replacement value of the custom strategy")
    parser.add_argument("--dimension", "-d", type=int, help="Only impute this dimension (column)")
    parser.add_argument("--verbose", "-v", action="store_true", help="Log progress")

    return parser

def main(argv=None):
    args = build_parser().parse_args(argv)
    logging.basicConfig(level=logging.INFO if args.verbose else logging.WARNING, format="%(levelname)s %(name)s: %(message)s")

    try:
        data = load_csv(args.input_file, args.missing_value)
        result = preprocess_imputer({
            'input': data,
            'missing_value': args.missing_value,
            'strategy': args.strategy,
            'custom_value': args.custom_value,
            'dimension': args.dimension,
        })
    except (OSError, ValueError) as e:
        logger.error("%s", e)
        return 1

    if args.output_file: save_csv(args.output_file, result['output'])
    else: logger.warning("No --output_file given, the imputed dataset is not saved")

    return 0

if __name__ == "__main__":
    sys.exit(main())
