"""Line-oriented shell for pfvault.

Start here with `python -m pfvault.frontend.cli.app` or the `pfvault` script.
"""

from __future__ import annotations

import argparse
import cmd
import getpass
import logging
import sys
from typing import Optional, TextIO

from pfvault import __version__
from pfvault.config import Settings
from pfvault.core.exceptions import BootstrapError, PfVaultError
from pfvault.frontend.cli.context import AppContext, build_context
from pfvault.frontend.cli.logging_config import configure_logging
from pfvault.security import keystore

logger = logging.getLogger(__name__)

BACKUP_HELP = """\
backup now
    Backup the config file now.
backup list
    List all backups.
backup delete <filename>
    Delete a backup and its key metadata.
backup help
    Prints this help message."""

BACKUP_DELETE_HELP = """\
backup delete <filename>
    Delete the specified backup file.
backup delete help
    Prints this help message."""

RESTORE_HELP = """\
restore <filename>
    Restore the specified backup file to pfSense.
restore help
    Prints this help message."""

GENERAL_HELP = """\
backup
    Manage backups. Run `backup help` for details.
restore
    Restore a backup. Run `restore help` for details.
help
    Prints this help message.
exit, quit
    Leave the shell."""

REBOOT_NOTICE = (
    "After restoring a config file, pfSense should reboot shortly after. "
    "This tool will now exit; ONLY start it again once pfSense has finished "
    "booting up (and finished installing all packages, if any)."
)

NO_PFSENSE = (
    "pfSense access is not configured. Set PFSENSE_DOMAIN, PFSENSE_USERNAME "
    "and PFSENSE_PASSWORD to use this command."
)


class BackupShell(cmd.Cmd):
    prompt = "\n> "
    intro = f"pfSense Auto Backup Tool v{__version__}"

    def __init__(self, ctx: AppContext, stdin: Optional[TextIO] = None, stdout: Optional[TextIO] = None):
        super().__init__(stdin=stdin, stdout=stdout)
        if stdin is not None:
            self.use_rawinput = False
        self.ctx = ctx

    def _print(self, message: str) -> None:
        self.stdout.write(f"{message}\n")

    def onecmd(self, line: str) -> bool:
        # one failing command must never end the session
        try:
            return super().onecmd(line)
        except PfVaultError as e:
            self._print(str(e))
            return False

    def emptyline(self) -> bool:
        return False

    def default(self, line: str) -> None:
        self._print(f"Unknown command '{line.split()[0]}'. Run `help` for a list of commands.")

    # === backup ===

    def do_backup(self, arg: str) -> None:
        args = arg.split()
        sub = args[0] if args else None

        if sub == "now":
            if self.ctx.client is None:
                self._print(NO_PFSENSE)
                return
            self._print(self.ctx.client.download_backup())
        elif sub == "list":
            backups = self.ctx.storage.list_backups()
            if not backups:
                self._print("No backups found.")
            for name in backups:
                self._print(name)
        elif sub == "delete":
            target = args[1] if len(args) > 1 else None
            if target == "help":
                self._print(BACKUP_DELETE_HELP)
            elif target is None:
                self._print(
                    "Please specify the filename of the backup file to delete. "
                    "For more information, run `backup delete help`."
                )
            else:
                self.ctx.storage.delete_backup(target)
                self._print(f"Successfully removed '{target}'.")
        elif sub == "help":
            self._print(BACKUP_HELP)
        else:
            self._print("Invalid subcommand. For more information, run `backup help`.")

    # === restore ===

    def do_restore(self, arg: str) -> bool:
        args = arg.split()
        target = args[0] if args else None
        if target == "help":
            self._print(RESTORE_HELP)
        elif target is None:
            self._print(
                "Please specify the filename of the backup file to restore. "
                "For more information, run `restore help`."
            )
        elif self.ctx.client is None:
            self._print(NO_PFSENSE)
        else:
            try:
                self._print(self.ctx.client.restore_backup(target))
            except PfVaultError as e:
                self._print(str(e))
            # pfSense reboots after a restore; stop so nothing runs against it meanwhile
            self._print(REBOOT_NOTICE)
            return True
        return False

    # === misc ===

    def do_help(self, arg: str) -> None:
        self._print(GENERAL_HELP)

    def do_exit(self, arg: str) -> bool:
        return True

    do_quit = do_exit

    def do_EOF(self, arg: str) -> bool:
        self._print("")
        return True


def _store_passphrase() -> int:
    passphrase = getpass.getpass("Encryption passphrase: ")
    confirm = getpass.getpass("Confirm passphrase: ")
    if not passphrase or passphrase != confirm:
        print("Passphrases are empty or do not match.", file=sys.stderr)
        return 1
    try:
        keystore.save_passphrase(passphrase)
    except RuntimeError as e:
        print(str(e), file=sys.stderr)
        return 1
    print("Passphrase stored in the OS keyring.")
    return 0


def run_shell(settings: Settings) -> int:
    try:
        ctx = build_context(settings)
    except BootstrapError as e:
        logger.error("Cannot initialise key storage: %s", e)
        return 2
    except PfVaultError as e:
        logger.error("%s", e)
        return 1

    if ctx.first_run:
        logger.warning("First run: back up %s, without it no backup can be restored", ctx.store.record_path)

    if ctx.client is not None:
        try:
            ctx.client.login_with_retry()
        except PfVaultError as e:
            logger.error("Giving up on login: %s", e)
            return 1
        if ctx.scheduler is not None:
            ctx.scheduler.start()

    try:
        BackupShell(ctx).cmdloop()
    except KeyboardInterrupt:
        print()
    finally:
        if ctx.scheduler is not None:
            ctx.scheduler.shutdown()
    return 0


def main(argv: Optional[list[str]] = None) -> int:
    parser = argparse.ArgumentParser(
        prog="pfvault", description="Scheduled, envelope-encrypted pfSense config backups"
    )
    parser.add_argument(
        "command",
        nargs="?",
        default="shell",
        choices=("shell", "store-passphrase", "forget-passphrase"),
        help="what to do (default: shell)",
    )
    parser.add_argument("--env-file", default=None, help="path to a .env file")
    args = parser.parse_args(argv)

    if args.command == "store-passphrase":
        return _store_passphrase()
    if args.command == "forget-passphrase":
        keystore.delete_passphrase()
        print("Passphrase removed from the OS keyring.")
        return 0

    try:
        settings = Settings.from_env(dotenv_path=args.env_file)
    except PfVaultError as e:
        print(str(e), file=sys.stderr)
        return 1
    configure_logging(settings.log_level)
    return run_shell(settings)


if __name__ == "__main__":
    sys.exit(main())
