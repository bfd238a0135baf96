import argparse
import json
import sys
from typing import Any, Optional

from .config import configure_logging, load_config
from .service import ContractUIService, parse_values_argument


def _read_abi(path: Optional[str]) -> Optional[str]:
    if not path:
        return None
    if path == "-":
        return sys.stdin.read()
    with open(path, "r", encoding="utf-8") as handle:
        return handle.read()


def _add_contract_args(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--address", required=True, help="Contract address.")
    parser.add_argument(
        "--network",
        required=True,
        help="Network id, alias or numeric chain id (e.g. ethereum-mainnet, arb, 8453).",
    )
    parser.add_argument(
        "--provider",
        required=False,
        help="Force a single provider (etherscan|sourcify); disables fallback.",
    )
    parser.add_argument(
        "--abi-file",
        required=False,
        help="Use a local contract definition instead of fetching ('-' reads stdin).",
    )


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Resolve contract definitions and build transaction forms.",
        allow_abbrev=False,
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser("networks", help="List built-in networks")

    load_parser = subparsers.add_parser("load", help="Load a contract schema")
    _add_contract_args(load_parser)
    load_parser.add_argument(
        "--skip-proxy",
        action="store_true",
        help="Do not detect or follow proxy contracts.",
    )
    load_parser.add_argument(
        "--include-definition",
        action="store_true",
        help="Include the original contract definition text in the output.",
    )

    fields_parser = subparsers.add_parser("fields", help="Generate form fields for a function")
    _add_contract_args(fields_parser)
    fields_parser.add_argument("--function", required=True, help="Function id or unique name.")

    parse_parser = subparsers.add_parser("parse", help="Parse form values into call arguments")
    _add_contract_args(parse_parser)
    parse_parser.add_argument("--function", required=True, help="Function id or unique name.")
    parse_parser.add_argument(
        "--values",
        required=True,
        help='JSON object by parameter name or JSON array by position, e.g. \'{"to": "0x...", "amount": "1"}\'.',
    )

    query_parser = subparsers.add_parser("query", help="Call a view/pure function and format the result")
    _add_contract_args(query_parser)
    query_parser.add_argument("--function", required=True, help="Function id or unique name.")
    query_parser.add_argument("--values", required=False, help="JSON object or array of arguments.")
    query_parser.add_argument("--block-tag", default="latest", help="Block tag (latest|pending|0x...).")

    proxy_parser = subparsers.add_parser("proxy", help="Detect proxy and resolve implementation/admin")
    _add_contract_args(proxy_parser)

    return parser


def _print(result: Any) -> None:
    print(json.dumps(result, indent=2, default=str))


def main(argv: Optional[list[str]] = None) -> None:
    parser = _build_parser()
    args = parser.parse_args(argv)

    try:
        config = load_config()
        configure_logging(config.log_level)
        service = ContractUIService(config)

        if args.command == "networks":
            _print(service.list_networks())
            return

        abi = _read_abi(args.abi_file)
        if args.command == "load":
            loaded = service.load_contract(
                args.address,
                args.network,
                provider=args.provider,
                abi=abi,
                skip_proxy_detection=args.skip_proxy,
            )
            _print(loaded.to_dict(include_definition=args.include_definition))
        elif args.command == "fields":
            loaded = service.load_contract(args.address, args.network, provider=args.provider, abi=abi)
            _print(service.generate_fields(loaded.schema, args.function))
        elif args.command == "parse":
            loaded = service.load_contract(args.address, args.network, provider=args.provider, abi=abi)
            _print(service.parse_inputs(loaded.schema, args.function, parse_values_argument(args.values)))
        elif args.command == "query":
            result = service.query_function(
                args.address,
                args.network,
                args.function,
                parse_values_argument(args.values),
                provider=args.provider,
                abi=abi,
                block_tag=args.block_tag,
            )
            _print(result)
        elif args.command == "proxy":
            _print(service.detect_proxy(args.address, args.network, provider=args.provider))
        else:
            parser.error(f"Unknown command {args.command}")
    except Exception as exc:  # pylint: disable=broad-except
        print(f"Error: {exc}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
