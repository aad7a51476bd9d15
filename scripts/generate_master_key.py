"""Generate a MASTER_KEY_HEX value for a new deployment.

Prints a fresh 32-byte key. Store it in the deployment's secret manager;
credentials encrypted under one key cannot be read with another.
"""

from __future__ import annotations

import argparse
import base64

from wa_gateway.credentials.keys import generate_master_key


def main() -> None:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument(
        "--encoding",
        choices=("hex", "base64"),
        default="hex",
        help="Output encoding (default: hex)",
    )
    args = parser.parse_args()

    key = generate_master_key()
    if args.encoding == "base64":
        print(base64.b64encode(key).decode("ascii"))
    else:
        print(key.hex())


if __name__ == "__main__":
    main()
