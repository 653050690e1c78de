"""
Hash a budget-holder PIN for the budget holders file.

    python -m staffcab.debug.hash_pin 1234
"""

import argparse

from staffcab.infrastructure.budget_holder_store import BCRYPT_ROUNDS, hash_pin


def main(argv=None) -> None:
    parser = argparse.ArgumentParser(description="Print the bcrypt hash of a budget-holder PIN")
    parser.add_argument("pin")
    parser.add_argument("--rounds", type=int, default=BCRYPT_ROUNDS)
    args = parser.parse_args(argv)
    print(hash_pin(args.pin, rounds=args.rounds))


if __name__ == "__main__":
    main()
