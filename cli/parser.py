"""Command parser for CLI input."""

import shlex

from cli.models import (
    CommandRequest,
    DownloadCommand,
    FilesCommand,
    HealthCommand,
    LoginCommand,
    LogoutCommand,
    MeCommand,
    RefreshCommand,
    RegisterCommand,
    RevokeUserCommand,
    ShareCommand,
    UploadCommand,
)


class ParseError(Exception):
    """Raised when command parsing fails."""

    pass


def parse_command(input_line: str) -> CommandRequest:
    """Parse user input into a CommandRequest object.

    Args:
        input_line: Raw user input from REPL

    Returns:
        One of the command dataclasses in cli.models

    Raises:
        ParseError: If command syntax is invalid
    """
    if not input_line.strip():
        raise ParseError("Empty command")

    try:
        tokens = shlex.split(input_line)
    except ValueError as e:
        raise ParseError(f"Invalid syntax: {e}")

    if not tokens:
        raise ParseError("Empty command")

    command_name, args = tokens[0], tokens[1:]

    if command_name == "register":
        return _parse_register(args)
    elif command_name == "login":
        return _parse_login(args)
    elif command_name in _NO_ARG_COMMANDS:
        if args:
            raise ParseError(f"{command_name} takes no arguments")
        return _NO_ARG_COMMANDS[command_name]()
    elif command_name == "upload":
        return _parse_upload(args)
    elif command_name == "download":
        return _parse_download(args, public=False)
    elif command_name == "public-download":
        return _parse_download(args, public=True)
    elif command_name == "share":
        file_id, user_id = _parse_file_and_user(command_name, args)
        return ShareCommand(file_id=file_id, user_id=user_id)
    elif command_name == "revoke-user":
        file_id, user_id = _parse_file_and_user(command_name, args)
        return RevokeUserCommand(file_id=file_id, user_id=user_id)
    else:
        raise ParseError(f"Unknown command: {command_name}")


_NO_ARG_COMMANDS = {
    "me": MeCommand,
    "refresh": RefreshCommand,
    "logout": LogoutCommand,
    "health": HealthCommand,
    "files": FilesCommand,
}


def _parse_id(value: str, what: str) -> int:
    try:
        parsed = int(value)
    except ValueError:
        raise ParseError(f"{what} must be a number, got '{value}'")
    if parsed <= 0:
        raise ParseError(f"{what} must be positive")
    return parsed


def _parse_register(args: list) -> RegisterCommand:
    """Parse 'register <username> <password> [email]' command."""
    if len(args) not in (2, 3):
        raise ParseError("register requires 2 or 3 arguments: <username> <password> [email]")

    email = args[2] if len(args) == 3 else None
    return RegisterCommand(username=args[0], password=args[1], email=email)


def _parse_login(args: list) -> LoginCommand:
    """Parse 'login <username> <password>' command."""
    if len(args) != 2:
        raise ParseError("login requires exactly 2 arguments: <username> <password>")

    username, password = args
    return LoginCommand(username=username, password=password)


def _parse_upload(args: list) -> UploadCommand:
    """Parse 'upload <path> [--public]' command."""
    is_public = "--public" in args
    paths = [arg for arg in args if arg != "--public"]

    if len(paths) != 1:
        raise ParseError("upload requires exactly 1 path: upload <path> [--public]")

    return UploadCommand(path=paths[0], is_public=is_public)


def _parse_download(args: list, public: bool) -> DownloadCommand:
    """Parse 'download <file_id> <output_path>' and its public variant."""
    name = "public-download" if public else "download"
    if len(args) != 2:
        raise ParseError(f"{name} requires exactly 2 arguments: <file_id> <output_path>")

    return DownloadCommand(
        file_id=_parse_id(args[0], "file_id"),
        output_path=args[1],
        public=public,
    )


def _parse_file_and_user(name: str, args: list) -> tuple:
    if len(args) != 2:
        raise ParseError(f"{name} requires exactly 2 arguments: <file_id> <user_id>")
    return _parse_id(args[0], "file_id"), _parse_id(args[1], "user_id")
