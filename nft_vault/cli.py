"""
Command-line front end for a persistent vault ledger.

Initialize a store from a JSON config, then run operations against it:

    nft-vault sample-config --output vault.json
    nft-vault --config vault.json --data-dir ./vault_data init
    nft-vault --data-dir ./vault_data mint --key vault.json.key --uri ipfs://x --collateral 1000

Operations run either as a signed call (`--key`, a PEM private key file) or,
for host-side scripting, directly as an address (`--caller`).
"""
import argparse
import json
import sys
from pathlib import Path
from typing import Optional

from nft_vault.config import Config
from nft_vault.core import Call, MINT, TRANSFER, LIST, PURCHASE, STAKE, UNSTAKE
from nft_vault.crypto import (
    generate_key_pair,
    load_private_key,
    public_key_to_address,
    serialize_private_key,
    serialize_public_key,
)
from nft_vault.db import DB
from nft_vault.errors import ErrorCode
from nft_vault.ledger import Ledger, Result
from nft_vault.state import PROTOCOL_KEY

_OPERATION_COMMANDS = {
    "mint": MINT,
    "transfer": TRANSFER,
    "list": LIST,
    "purchase": PURCHASE,
    "stake": STAKE,
    "unstake": UNSTAKE,
}


def _jsonable(value):
    if isinstance(value, bytes):
        return value.hex()
    if isinstance(value, dict):
        return {k: _jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_jsonable(v) for v in value]
    if hasattr(value, 'to_dict'):
        return _jsonable(value.to_dict())
    return value


def _print(data):
    print(json.dumps(_jsonable(data), indent=2))


def open_ledger(data_dir: str, config: Optional[Config] = None) -> Ledger:
    """Open a plyvel-backed ledger. `config` is only required for a fresh store."""
    db_config = (config or Config.default()).database
    db = DB(
        data_dir,
        write_buffer_size=db_config.write_buffer_size,
        max_open_files=db_config.max_open_files,
        compression=db_config.compression or None,
    )
    return Ledger(db=db, config=config)


def write_sample_config(output: str, key_output: str = None):
    """Write a starter config and the private key of its freshly generated deployer."""
    private_key, public_key = generate_key_pair()
    deployer = public_key_to_address(serialize_public_key(public_key))

    config = Config.default()
    config.protocol.deployer = deployer.hex()
    config.genesis.pre_funded_accounts = [{'address': deployer.hex(), 'balance': 1_000_000}]
    config.to_file(output)

    key_output = key_output or f"{output}.key"
    Path(key_output).write_text(serialize_private_key(private_key))
    print(f"Sample config written to {output}, deployer key to {key_output}")


def _operation_args(args) -> dict:
    if args.command == "mint":
        return {'uri': args.uri, 'collateral_amount': args.collateral}
    if args.command == "transfer":
        return {'asset_id': args.asset_id, 'recipient': bytes.fromhex(args.recipient)}
    if args.command == "list":
        return {'asset_id': args.asset_id, 'price': args.price}
    return {'asset_id': args.asset_id}


def _run_operation(ledger: Ledger, args):
    op = _OPERATION_COMMANDS[args.command]
    op_args = _operation_args(args)
    if args.key:
        private_key = load_private_key(Path(args.key).read_text())
        call = Call(serialize_public_key(private_key.public_key()), op, op_args)
        is_valid, error = call.validate_args()
        if not is_valid:
            return Result.failure(ErrorCode.INVALID_PARAMETERS, error)
        call.sign(private_key)
        return ledger.submit(call)
    return ledger.execute(bytes.fromhex(args.caller), op, **op_args)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="nft-vault", description="Collateral-backed asset vault")
    parser.add_argument("--data-dir", type=str, default=None, help="Database directory (overrides config)")
    parser.add_argument("--config", type=str, default=None, help="Path to JSON config file")
    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser("sample-config", help="Write a sample config file and deployer key")
    p.add_argument("--output", type=str, default="vault.json")
    p.add_argument("--key-output", type=str, default=None, help="Defaults to <output>.key")

    sub.add_parser("init", help="Apply genesis to a new database")

    p = sub.add_parser("fund", help="Credit native currency to an address")
    p.add_argument("--address", required=True)
    p.add_argument("--amount", type=int, required=True)

    p = sub.add_parser("advance", help="Advance the height counter")
    p.add_argument("--blocks", type=int, default=1)

    operations = {}
    operations["mint"] = sub.add_parser("mint", help="Mint a new asset")
    operations["mint"].add_argument("--uri", required=True)
    operations["mint"].add_argument("--collateral", type=int, required=True)

    operations["transfer"] = sub.add_parser("transfer", help="Transfer an asset")
    operations["transfer"].add_argument("--asset-id", type=int, required=True)
    operations["transfer"].add_argument("--recipient", required=True)

    operations["list"] = sub.add_parser("list", help="List an asset for sale")
    operations["list"].add_argument("--asset-id", type=int, required=True)
    operations["list"].add_argument("--price", type=int, required=True)

    for name, help_text in (("purchase", "Buy a listed asset"),
                            ("stake", "Stake an asset"),
                            ("unstake", "Unstake an asset and claim its yield")):
        operations[name] = sub.add_parser(name, help=help_text)
        operations[name].add_argument("--asset-id", type=int, required=True)

    for p in operations.values():
        identity = p.add_mutually_exclusive_group(required=True)
        identity.add_argument("--key", help="PEM private key file; submits a signed call")
        identity.add_argument("--caller", help="Hex address to act as, unsigned")

    p = sub.add_parser("show", help="Show an asset, its listing and reward account")
    p.add_argument("--asset-id", type=int, required=True)

    p = sub.add_parser("balance", help="Show an address balance")
    p.add_argument("--address", required=True)

    return parser


def run(args) -> int:
    if args.command == "sample-config":
        write_sample_config(args.output, args.key_output)
        return 0

    config = Config.from_file(args.config) if args.config else None

    data_dir = Path(args.data_dir or (config or Config.default()).database.path)
    if args.command == "init" and data_dir.exists():
        print(f"Error: database path '{data_dir}' already exists. Please remove it first.")
        return 1
    if args.command == "init" and not (config and config.protocol.deployer):
        print("Error: init needs a --config with protocol.deployer set (see sample-config).")
        return 1
    if args.command != "init" and not data_dir.exists():
        print(f"Error: no database at '{data_dir}'. Run 'init' first.")
        return 1

    ledger = open_ledger(str(data_dir), config)
    try:
        if args.command == "init":
            _print({'height': ledger.height, 'protocol': ledger.store.get_record(PROTOCOL_KEY)})
            return 0
        if args.command in ("fund", "advance"):
            try:
                if args.command == "fund":
                    ledger.fund(bytes.fromhex(args.address), args.amount)
                    _print({'balance': ledger.balance_of(bytes.fromhex(args.address))})
                else:
                    _print({'height': ledger.advance(args.blocks)})
            except ValueError as e:
                print(f"Error: {e}")
                return 1
            return 0
        if args.command == "show":
            _print({
                'asset': ledger.get_metadata(args.asset_id),
                'owner': ledger.owner_of(args.asset_id),
                'listing': ledger.get_listing(args.asset_id),
                'quote': ledger.quote(args.asset_id),
                'reward_account': ledger.get_reward_account(args.asset_id),
                'pending_reward': ledger.pending_reward(args.asset_id),
            })
            return 0
        if args.command == "balance":
            _print({'balance': ledger.balance_of(bytes.fromhex(args.address))})
            return 0

        result = _run_operation(ledger, args)
        _print(result.to_dict())
        return 0 if result.ok else 1
    finally:
        ledger.close()


def main(argv=None):
    parser = build_parser()
    sys.exit(run(parser.parse_args(argv)))


if __name__ == "__main__":
    main()
