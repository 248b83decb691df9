#!/usr/bin/env python3
"""
reminders-sync - keep Obsidian vault tasks and Apple Reminders in step.
"""

import argparse
import logging
import sys

from reminders_sync.core.config import load_config, get_default_config_path
from reminders_sync.core.exceptions import RemindersSyncError
from reminders_sync.utils.macos import set_process_name
from reminders_sync.commands import (
    SyncCommand,
    CleanupCommand,
    ResetCommand,
    ClearIdsCommand,
    VaultsCommand,
)


def _add_vault_pass_arguments(subparser: argparse.ArgumentParser) -> None:
    subparser.add_argument(
        'vault',
        nargs='?',
        default=None,
        help='Configured vault name or vault path (default: the default vault)'
    )
    subparser.add_argument(
        '--apply',
        action='store_true',
        help='Apply changes (default is dry-run)'
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog='reminders-sync',
        description="Sync tasks between Obsidian vaults and Apple Reminders",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  reminders-sync add-vault ~/Notes       # Register a vault
  reminders-sync sync                    # Show what a sync would change
  reminders-sync sync --apply            # Apply sync changes
  reminders-sync cleanup --apply         # Sync, then drop completed tasks
  reminders-sync reset Notes --apply     # Remove task ids and the mapping file
        """
    )

    parser.add_argument(
        '--config',
        help=f'Path to configuration file (default: {get_default_config_path()})',
        default=None
    )
    parser.add_argument(
        '--verbose', '-v',
        action='store_true',
        help='Verbose output'
    )

    subparsers = parser.add_subparsers(dest='command', help='Commands')

    _add_vault_pass_arguments(subparsers.add_parser('sync', help='Sync tasks'))
    _add_vault_pass_arguments(subparsers.add_parser(
        'cleanup', help='Sync, then remove completed tasks from the vault and Reminders'))
    _add_vault_pass_arguments(subparsers.add_parser(
        'reset', help='Strip task ids and completed lines from notes and delete the mapping file'))
    _add_vault_pass_arguments(subparsers.add_parser(
        'clear-ids', help='Remove task ids from reminder notes'))

    add_parser = subparsers.add_parser('add-vault', help='Register a vault')
    add_parser.add_argument('path', nargs='?', default=None, help='Vault directory')
    add_parser.add_argument('--name', help='Vault name (default: directory name)')
    add_parser.add_argument('--list', dest='list_name', help='Reminders list for the notes (default: vault name)')
    add_parser.add_argument('--default', action='store_true', help='Make this the default vault')
    add_parser.add_argument('--discover', action='store_true', help='Register every vault found on disk')

    subparsers.add_parser('vaults', help='List configured vaults')

    return parser


PASS_COMMANDS = {
    'sync': SyncCommand,
    'cleanup': CleanupCommand,
    'reset': ResetCommand,
    'clear-ids': ClearIdsCommand,
}


def main(argv=None):
    """Main entry point for reminders-sync."""
    set_process_name("reminders-sync")

    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )

    if not args.command:
        parser.print_help()
        return 1

    try:
        config = load_config(args.config)

        if args.verbose:
            print(f"Using config: {args.config or get_default_config_path()}")

        if args.command in PASS_COMMANDS:
            cmd = PASS_COMMANDS[args.command](config, verbose=args.verbose)
            success = cmd.run(vault_name=args.vault, apply_changes=args.apply)

        elif args.command == 'add-vault':
            cmd = VaultsCommand(config, config_path=args.config, verbose=args.verbose)
            if args.discover:
                success = cmd.discover(make_default=args.default)
            elif args.path:
                success = cmd.add(args.path, name=args.name, list_name=args.list_name,
                                  make_default=args.default)
            else:
                print("add-vault needs a PATH or --discover.")
                return 1

        elif args.command == 'vaults':
            success = VaultsCommand(config, config_path=args.config, verbose=args.verbose).list()

        else:
            print(f"Unknown command '{args.command}'.")
            return 1

        return 0 if success else 1

    except KeyboardInterrupt:
        print("\nOperation cancelled by user.")
        return 130
    except RemindersSyncError as e:
        print(f"Error: {e}")
        if not args.verbose:
            print("Re-run with --verbose for more detail.")
        return 1


if __name__ == '__main__':
    sys.exit(main())
