"""
Command-line front end for the local wallet vault.

Each subcommand maps to one `WalletManager` operation:
    set, unlock, remove, rotate, change-password, status

Secrets are read with `getpass`; for automation the password can be supplied
through CROWNSK_WALLET_PASSWORD.
"""

import argparse
import getpass
import logging
import os
import sys
from typing import Callable, Dict, List, Optional

from crownsk import __version__
from crownsk.utils.log_filter import configure_logging
from crownsk.wallet.config import PASSWORD_ENV, WalletSettings
from crownsk.wallet.errors import WalletError
from crownsk.wallet.manager import WalletManager

logger = logging.getLogger("crownsk.cli")


class WalletCommand:
    name: str
    description: str
    handler: Callable
    aliases: List[str] = []

    def __init__(self, name: str, description: str, handler: Callable, aliases: Optional[List[str]] = None):
        self.name = name
        self.description = description
        self.handler = handler
        self.aliases = aliases or []


class WalletCLI:
    def __init__(
        self,
        manager_factory: Optional[Callable[[WalletSettings], WalletManager]] = None,
        prompt: Callable[[str], str] = getpass.getpass,
        confirm: Callable[[str], str] = input,
        out=None,
        err=None,
    ):
        self.manager_factory = manager_factory or (lambda settings: WalletManager(settings=settings))
        self.prompt = prompt
        self.confirm = confirm
        self.out = out or sys.stdout
        self.err = err or sys.stderr
        self.commands: Dict[str, WalletCommand] = {}
        self.manager: Optional[WalletManager] = None
        self._init_commands()

    def _init_commands(self):
        self.add_command(WalletCommand(
            name="set",
            description="Encrypt and store a private key",
            handler=self._handle_set,
        ))
        self.add_command(WalletCommand(
            name="unlock",
            description="Verify the password and show the wallet address",
            handler=self._handle_unlock,
            aliases=["load"],
        ))
        self.add_command(WalletCommand(
            name="remove",
            description="Securely delete the stored wallet",
            handler=self._handle_remove,
            aliases=["delete"],
        ))
        self.add_command(WalletCommand(
            name="rotate",
            description="Replace the stored key with a new one",
            handler=self._handle_rotate,
            aliases=["update"],
        ))
        self.add_command(WalletCommand(
            name="change-password",
            description="Re-encrypt the stored key with a new password",
            handler=self._handle_change_password,
            aliases=["passwd"],
        ))
        self.add_command(WalletCommand(
            name="status",
            description="Show whether a wallet is stored and where",
            handler=self._handle_status,
        ))

    def add_command(self, command: WalletCommand):
        self.commands[command.name] = command
        for alias in command.aliases:
            self.commands[alias] = command

    def build_parser(self) -> argparse.ArgumentParser:
        parser = argparse.ArgumentParser(prog="crownsk-wallet", description="Local encrypted wallet vault")
        parser.add_argument("--home", default=None, help="Vault directory (default: $CROWNSK_WALLET_HOME or ~/.thecrownsk)")
        parser.add_argument("--log-level", default=None, help="DEBUG, INFO, WARNING or ERROR")
        parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
        subparsers = parser.add_subparsers(dest="command", required=True)

        seen = set()
        for command in self.commands.values():
            if command.name in seen:
                continue
            seen.add(command.name)
            sub = subparsers.add_parser(command.name, help=command.description, aliases=command.aliases)
            if command.name == "remove":
                sub.add_argument("-y", "--yes", action="store_true", help="Do not ask for confirmation")
            if command.name == "status":
                sub.add_argument("--json", action="store_true", help="Print status as JSON")
        return parser

    # ------------------------------------------------------------------
    # Prompt helpers
    # ------------------------------------------------------------------

    def _password(self, label: str = "Password: ", confirm: bool = False, use_env: bool = True) -> str:
        env_value = os.environ.get(PASSWORD_ENV) if use_env else None
        if env_value:
            return env_value
        password = self.prompt(label)
        if confirm and self.prompt("Confirm password: ") != password:
            raise WalletError("Passwords do not match. Run the command again.")
        return password

    def _private_key(self, label: str = "Private key (0x...): ") -> str:
        return self.prompt(label).strip()

    def _print(self, message: str):
        print(message, file=self.out)

    # ------------------------------------------------------------------
    # Handlers
    # ------------------------------------------------------------------

    def _handle_set(self, args) -> int:
        private_key = self._private_key()
        password = self._password(confirm=True)
        address = self.manager.create(private_key, password)
        self._print(f"Wallet saved: {address}")
        self._print(f"Stored at: {self.manager.vault_path}")
        return 0

    def _handle_unlock(self, args) -> int:
        address = self.manager.unlock(self._password())
        self._print(f"Wallet unlocked: {address}")
        return 0

    def _handle_remove(self, args) -> int:
        if not self.manager.vault_exists_on_disk():
            self._print("No wallet to remove.")
            return 0
        if not args.yes:
            answer = self.confirm("Permanently delete the stored wallet? (y/N): ").strip().lower()
            if not answer.startswith("y"):
                self._print("Aborted; wallet kept.")
                return 1
        self.manager.delete()
        self._print("Wallet removed.")
        return 0

    def _handle_rotate(self, args) -> int:
        private_key = self._private_key("New private key (0x...): ")
        password = self._password(confirm=True)
        address = self.manager.rotate(private_key, password)
        self._print(f"Wallet replaced: {address}")
        return 0

    def _handle_change_password(self, args) -> int:
        old_password = self._password("Current password: ")
        new_password = self._password("New password: ", confirm=True, use_env=False)
        self.manager.change_password(old_password, new_password)
        self._print("Password changed.")
        return 0

    def _handle_status(self, args) -> int:
        status = self.manager.status()
        if args.json:
            self._print(status.model_dump_json())
            return 0
        self._print(f"State: {status.state.value}")
        self._print(f"Wallet file: {status.vault_path} ({'present' if status.vault_exists else 'absent'})")
        if status.address:
            self._print(f"Address: {status.address}")
        return 0

    # ------------------------------------------------------------------
    # Entry
    # ------------------------------------------------------------------

    def run(self, argv: Optional[List[str]] = None) -> int:
        args = self.build_parser().parse_args(argv)
        try:
            settings = WalletSettings.load(home=args.home)
        except WalletError as exc:
            print(f"Error: {exc}", file=self.err)
            return 1

        configure_logging(args.log_level or settings.log_level, stream=self.err)
        command = self.commands[args.command]
        self.manager = self.manager_factory(settings)
        try:
            return command.handler(args)
        except WalletError as exc:
            print(f"Error: {exc}", file=self.err)
            return 1
        except (KeyboardInterrupt, EOFError):
            print("\nAborted.", file=self.err)
            return 1
        finally:
            self.manager.lock()


def main(argv: Optional[List[str]] = None) -> int:
    return WalletCLI().run(argv)


if __name__ == "__main__":
    raise SystemExit(main())
