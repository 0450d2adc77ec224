"""Command line front-end: hash field elements with Poseidon.

Run with: python -m poseidon_spec 1 2
"""

import argparse
import json
import logging
import sys
from typing import List, Optional

from .errors import PoseidonError
from .field import FieldElement
from .harness import EquivalenceError, check_equivalence, default_hashers
from .poseidon import Variant, poseidon_multi


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog='poseidon_spec',
        description='Poseidon hash over the BN254 scalar field (iden3 compatible)'
    )
    parser.add_argument(
        'inputs',
        nargs='+',
        help='Field elements as decimal or 0x-prefixed hex'
    )
    parser.add_argument(
        '--arity',
        type=int,
        default=None,
        help='State width t (default: number of inputs + 1)'
    )
    parser.add_argument(
        '--variant',
        choices=[v.value for v in Variant],
        default=Variant.V1.value,
        help='Permutation schedule (all produce the same digest)'
    )
    parser.add_argument(
        '--outputs',
        type=int,
        default=1,
        help='Number of state elements to print'
    )
    parser.add_argument(
        '--hex',
        action='store_true',
        help='Print digests as 32-byte hex instead of decimal'
    )
    parser.add_argument(
        '--json',
        action='store_true',
        help='Print a JSON object instead of plain lines'
    )
    parser.add_argument(
        '--compare',
        action='store_true',
        help='Hash under every applicable variant and fail on divergence'
    )
    parser.add_argument(
        '-v', '--verbose',
        action='store_true',
        help='Enable debug logging'
    )
    return parser


def _render(element: FieldElement, as_hex: bool) -> str:
    return element.to_hex() if as_hex else element.to_decimal()


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format='%(asctime)s %(levelname)s %(name)s: %(message)s',
    )

    try:
        if args.compare:
            arity = len(args.inputs) + 1 if args.arity is None else args.arity
            report = check_equivalence(args.inputs, default_hashers(arity))
            digests = {label: _render(d, args.hex) for label, d in report.digests.items()}
            if args.json:
                print(json.dumps({'inputs': [str(e) for e in report.inputs], 'digests': digests}))
            else:
                for label, digest in digests.items():
                    print(f"{label}: {digest}")
            return 0

        digest = poseidon_multi(
            args.inputs,
            arity=args.arity,
            n_outputs=args.outputs,
            variant=Variant(args.variant),
        )
    except EquivalenceError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    except (PoseidonError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 2

    rendered = [_render(d, args.hex) for d in digest]
    if args.json:
        print(json.dumps({'digest': rendered if len(rendered) > 1 else rendered[0]}))
    else:
        for line in rendered:
            print(line)
    return 0


if __name__ == '__main__':
    sys.exit(main())
