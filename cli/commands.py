"""Command handler functions for CLI operations."""

from pathlib import Path
from typing import Optional

from common.logging_config import get_logger
from cli.api_client import ApiClient
from cli.config import Config
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

logger = get_logger(__name__)

CONFIG_PATH = Path.home() / '.sfs' / 'config.json'

_client: Optional[ApiClient] = None


def get_client() -> ApiClient:
    """
    Get or create global ApiClient instance.
    """
    global _client
    if _client is None:
        logger.debug("Creating new ApiClient instance")
        _client = ApiClient(Config(CONFIG_PATH))
    return _client


def handle_register(cmd: RegisterCommand, client: Optional[ApiClient] = None) -> str:
    """
    Handle 'register' command.

    Args:
        cmd: RegisterCommand with username, password and optional email
        client: Optional ApiClient for dependency injection (testing)

    Returns:
        Success or error message
    """
    if client is None:
        client = get_client()
    return client.register(cmd.username, cmd.password, cmd.email)


def handle_login(cmd: LoginCommand, client: Optional[ApiClient] = None) -> str:
    if client is None:
        client = get_client()
    return client.login(cmd.username, cmd.password)


def handle_me(cmd: MeCommand, client: Optional[ApiClient] = None) -> str:
    if client is None:
        client = get_client()
    return client.me()


def handle_refresh(cmd: RefreshCommand, client: Optional[ApiClient] = None) -> str:
    if client is None:
        client = get_client()
    return client.refresh()


def handle_logout(cmd: LogoutCommand, client: Optional[ApiClient] = None) -> str:
    if client is None:
        client = get_client()
    return client.logout()


def handle_health(cmd: HealthCommand, client: Optional[ApiClient] = None) -> str:
    if client is None:
        client = get_client()
    return client.health()


def handle_upload(cmd: UploadCommand, client: Optional[ApiClient] = None) -> str:
    """
    Handle 'upload' command.

    Args:
        cmd: UploadCommand with local path and visibility flag
        client: Optional ApiClient for dependency injection (testing)

    Returns:
        Upload summary or error message
    """
    logger.info(f"Executing upload command: path={cmd.path} is_public={cmd.is_public}")
    if client is None:
        client = get_client()
    result = client.upload(cmd.path, cmd.is_public)
    logger.debug("Upload command completed")
    return result


def handle_files(cmd: FilesCommand, client: Optional[ApiClient] = None) -> str:
    if client is None:
        client = get_client()
    return client.list_files()


def handle_download(cmd: DownloadCommand, client: Optional[ApiClient] = None) -> str:
    """
    Handle 'download' and 'public-download' commands.
    """
    logger.info(
        f"Executing download command: file_id={cmd.file_id} output_path={cmd.output_path} public={cmd.public}"
    )
    if client is None:
        client = get_client()
    result = client.download(cmd.file_id, cmd.output_path, public=cmd.public)
    logger.debug("Download command completed")
    return result


def handle_share(cmd: ShareCommand, client: Optional[ApiClient] = None) -> str:
    if client is None:
        client = get_client()
    return client.share(cmd.file_id, cmd.user_id)


def handle_revoke_user(cmd: RevokeUserCommand, client: Optional[ApiClient] = None) -> str:
    if client is None:
        client = get_client()
    return client.revoke_user(cmd.file_id, cmd.user_id)


HANDLERS = {
    RegisterCommand: handle_register,
    LoginCommand: handle_login,
    MeCommand: handle_me,
    RefreshCommand: handle_refresh,
    LogoutCommand: handle_logout,
    HealthCommand: handle_health,
    UploadCommand: handle_upload,
    FilesCommand: handle_files,
    DownloadCommand: handle_download,
    ShareCommand: handle_share,
    RevokeUserCommand: handle_revoke_user,
}


def dispatch_command(cmd_obj: CommandRequest, client: Optional[ApiClient] = None) -> str:
    """Dispatch parsed command to appropriate handler."""
    handler = HANDLERS.get(type(cmd_obj))
    if handler is None:
        return f"Unknown command type: {type(cmd_obj)}"
    return handler(cmd_obj, client)
