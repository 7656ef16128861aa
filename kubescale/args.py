# Copyright 2019 Yelp Inc.
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.
import argparse
import sys

import colorlog

from kubescale import __version__
from kubescale.config import DEFAULT_ENV_CONFIG_PATH


def subparser(command, help, entrypoint):  # pragma: no cover
    """ Function decorator to simplify adding arguments to subcommands

    :param command: name of the subcommand to add
    :param help: help string for the subcommand
    :param entrypoint: the 'main' function for the subcommand to execute
    """

    def decorator(add_args):
        def wrapper(subparser):
            subparser = subparser.add_parser(command, help=help, formatter_class=help_formatter, add_help=False)
            required_named_args = subparser.add_argument_group("required arguments")
            optional_named_args = subparser.add_argument_group("optional arguments")
            add_args(subparser, required_named_args, optional_named_args)
            optional_named_args.add_argument("-h", "--help", action="help", help="show this message and exit")
            subparser.set_defaults(entrypoint=entrypoint)

        return wrapper

    return decorator


def add_env_config_path_arg(parser):  # pragma: no cover
    """ Add a --env-config-path argument to a parser """
    parser.add_argument(
        "--env-config-path",
        default=DEFAULT_ENV_CONFIG_PATH,
        help="Path to kubescale configuration file",
    )


def add_dry_run_arg(parser):  # pragma: no cover
    parser.add_argument(
        "--dry-run",
        default=False,
        action="store_true",
        help="If true, will only log scale-out decisions instead of creating workers",
    )


def help_formatter(prog):  # pragma: no cover
    """Formatter for the argument parser help strings"""
    return argparse.ArgumentDefaultsHelpFormatter(prog, max_help_position=35, width=100)


def _get_validated_args(parser, argv=None):
    args = parser.parse_args(argv)
    logger = colorlog.getLogger(__name__)

    if args.subcommand is None:
        logger.error("missing subcommand")
        parser.print_help()
        sys.exit(1)

    # Every subcommand must specify an entry point, accessed here by args.entrypoint
    # (protip) use the subparser decorator to set this up for you
    if not hasattr(args, "entrypoint"):
        logger.critical(f"error: missing entrypoint for {args.subcommand}")
        sys.exit(1)

    return args


def parse_args(description, argv=None):  # pragma: no cover
    """Set up parser for the CLI tool and any subcommands

    :param description: a string descripting the tool
    :returns: a namedtuple of the parsed command-line options with their values
    """
    from kubescale.batch.control_loop import add_run_parser
    from kubescale.cli.serve import add_serve_parser
    from kubescale.cli.status import add_status_parser
    from kubescale.tools.backfill import add_backfill_parser

    root_parser = argparse.ArgumentParser(description=description, formatter_class=help_formatter)
    add_env_config_path_arg(root_parser)
    root_parser.add_argument(
        "--log-level",
        default="info",
        choices=["debug", "info", "warning", "error", "critical"],
    )
    root_parser.add_argument(
        "-v", "--version",
        action="version",
        version="kubescale " + __version__,
    )

    subparser = root_parser.add_subparsers(help="accepted commands")
    subparser.dest = "subcommand"

    add_run_parser(subparser)
    add_serve_parser(subparser)
    add_status_parser(subparser)
    add_backfill_parser(subparser)

    args = _get_validated_args(root_parser, argv)
    return args
