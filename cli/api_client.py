"""HTTP client for the SFS server API."""

import os
import sys
import time
import uuid
from pathlib import Path
from typing import Callable, Optional

import httpx

from common.logging_config import get_logger
from cli.config import Config
from cli.utils import ProgressFileWrapper, format_file_size, format_file_table

logger = get_logger(__name__)

IDEMPOTENT_METHODS = frozenset({'GET', 'HEAD'})

REFRESH_ENDPOINT = '/token/refresh'


class NotLoggedInError(Exception):
    pass


class ApiClient:
    """
    HTTP client for the server API.

    Keeps the access/refresh pair in Config. When an authenticated call gets
    a 401, the refresh token is rotated once and the call is replayed with
    the new access token. Refresh itself is never retried: a rotation that
    reached the server but whose answer was lost cannot be repeated.
    """

    def __init__(self, config: Config, transport: Optional[httpx.BaseTransport] = None):
        """
        Initialize API client.

        Args:
            config: Configuration instance
            transport: Optional httpx transport (tests pass httpx.MockTransport)
        """
        self.config = config
        self.session = httpx.Client(
            base_url=config.get_base_url(),
            timeout=config.get_timeout(),
            transport=transport,
        )
        self.request_id = None
        logger.info(f"Initialized ApiClient [base_url={config.get_base_url()}]")

    def _request(
        self,
        method: str,
        endpoint: str,
        retry: Optional[bool] = None,
        stream: bool = False,
        **kwargs
    ) -> httpx.Response:
        """
        Send one request, retrying on 5xx and network errors when allowed.

        Only idempotent methods are retried unless retry says otherwise.

        Raises:
            ConnectionError: server unreachable or timed out after all attempts
        """
        if retry is None:
            retry = method.upper() in IDEMPOTENT_METHODS and endpoint != REFRESH_ENDPOINT

        retry_config = self.config.get_retry_config()
        max_retries = retry_config['max_retries'] if retry else 0
        backoff = retry_config['retry_backoff_multiplier']

        self.request_id = str(uuid.uuid4())
        headers = dict(kwargs.pop('headers', None) or {})
        headers['X-Request-ID'] = self.request_id

        logger.debug(f"Making request: {method} {endpoint} [request_id={self.request_id}]")

        last_exception = None
        for attempt in range(max_retries + 1):
            try:
                request = self.session.build_request(method, endpoint, headers=headers, **kwargs)
                response = self.session.send(request, stream=stream)

                logger.debug(
                    f"Response received: {method} {endpoint} status={response.status_code} "
                    f"[request_id={self.request_id}]"
                )

                if response.status_code >= 500 and attempt < max_retries:
                    response.close()
                    delay = backoff ** attempt
                    logger.warning(
                        f"Server error (attempt {attempt + 1}/{max_retries + 1}): "
                        f"{method} {endpoint} status={response.status_code}, retrying in {delay}s"
                    )
                    time.sleep(delay)
                    continue

                return response

            except (httpx.ConnectError, httpx.TimeoutException) as e:
                last_exception = e
                if attempt < max_retries:
                    delay = backoff ** attempt
                    logger.warning(
                        f"Network error (attempt {attempt + 1}/{max_retries + 1}): "
                        f"{method} {endpoint} error={type(e).__name__}, retrying in {delay}s"
                    )
                    time.sleep(delay)
                    continue
                logger.error(f"Network error: {method} {endpoint} error={e} [request_id={self.request_id}]")

        if isinstance(last_exception, httpx.TimeoutException):
            raise ConnectionError("Request timed out. Server may be overloaded.")
        raise ConnectionError("Cannot connect to server. Is it running?")

    def _format_error(self, response: httpx.Response) -> str:
        """
        Map HTTP errors to user-friendly messages.
        """
        try:
            error_data = response.json()
            detail = error_data.get('detail', 'Unknown error')
            code = error_data.get('code', 'UNKNOWN')
        except ValueError:
            detail = response.text or 'Unknown error'
            code = 'UNKNOWN'

        error_messages = {
            'USER_ALREADY_EXISTS': 'Username already taken. Try logging in or choose a different username.',
            'INVALID_CREDENTIALS': 'Invalid username or password.',
            'INVALID_REFRESH_TOKEN': 'Session expired. Please run: login <username> <password>',
            'TOKEN_EXPIRED': 'Session expired. Please run: login <username> <password>',
            'INVALID_TOKEN': 'Not authenticated. Please run: login <username> <password>',
            'NOT_FOUND': 'Not found.',
            'CONFLICT': 'That user already has access to this file.',
            'PAYLOAD_TOO_LARGE': 'File too large (limit is 10 MiB).',
            'INTERNAL_ERROR': 'Server error. Please try again later.',
        }

        if code in error_messages:
            return error_messages[code]
        if code == 'VALIDATION_ERROR':
            return f"Bad request: {detail}"

        status_messages = {
            400: 'Bad request',
            401: 'Not authenticated',
            404: 'Not found',
            409: 'Conflict',
            413: 'File too large',
            500: 'Server error',
        }
        return status_messages.get(response.status_code, detail)

    def _get_auth_header(self) -> dict:
        """
        Raises:
            NotLoggedInError: no access token stored
        """
        access_token, _ = self.config.get_tokens()
        if not access_token:
            raise NotLoggedInError("Not logged in. Please run: login <username> <password>")
        return {'Authorization': f'Bearer {access_token}'}

    def _store_tokens(self, response: httpx.Response) -> None:
        data = response.json()
        self.config.set_tokens(data['access_token'], data['refresh_token'])

    def _rotate(self) -> Optional[httpx.Response]:
        """
        Rotate the stored refresh token.

        Returns:
            The refresh response, or None if no refresh token is stored
        """
        _, refresh_token = self.config.get_tokens()
        if not refresh_token:
            return None

        response = self._request(
            'GET',
            REFRESH_ENDPOINT,
            retry=False,
            headers={'Authorization': f'Bearer {refresh_token}'}
        )
        if response.status_code == 200:
            self._store_tokens(response)
            logger.info("Refresh token rotated")
        else:
            logger.warning(f"Refresh failed status={response.status_code}")
            self.config.clear_tokens()
        return response

    def _authorized(self, send: Callable[[dict], httpx.Response]) -> httpx.Response:
        """
        Call send(headers) with the access token; on 401 rotate once and
        call it again with the new token.
        """
        response = send(self._get_auth_header())
        if response.status_code != 401:
            return response

        response.close()
        logger.info("Access token rejected, trying refresh")
        refreshed = self._rotate()
        if refreshed is None or refreshed.status_code != 200:
            return refreshed if refreshed is not None else response
        return send(self._get_auth_header())

    def health(self) -> str:
        try:
            response = self._request('GET', '/health')
        except ConnectionError as e:
            return f"Error: {e}"
        if response.status_code == 200:
            return f"Server is {response.json().get('status', 'up')}."
        return f"Error: {self._format_error(response)}"

    def register(self, username: str, password: str, email: Optional[str] = None) -> str:
        """
        Register a new user account and store its session tokens.
        """
        logger.info(f"Attempting to register user: {username}")
        payload = {'username': username, 'password': password}
        if email:
            payload['email'] = email
        try:
            response = self._request('POST', '/register', json=payload)
        except ConnectionError as e:
            logger.error(f"Connection error during registration: {e}")
            return f"Error: {e}"

        if response.status_code == 200:
            self._store_tokens(response)
            logger.info(f"Registration successful for user: {username}")
            return "Registration successful!\nSession tokens saved to config."

        logger.warning(f"Registration failed for user: {username} status={response.status_code}")
        return f"Registration failed: {self._format_error(response)}"

    def login(self, username: str, password: str) -> str:
        logger.info(f"Attempting to login user: {username}")
        try:
            response = self._request('POST', '/login', json={'username': username, 'password': password})
        except ConnectionError as e:
            logger.error(f"Connection error during login: {e}")
            return f"Error: {e}"

        if response.status_code == 200:
            self._store_tokens(response)
            logger.info(f"Login successful for user: {username}")
            return "Login successful!\nSession tokens saved to config."

        logger.warning(f"Login failed for user: {username} status={response.status_code}")
        return f"Login failed: {self._format_error(response)}"

    def refresh(self) -> str:
        try:
            response = self._rotate()
        except ConnectionError as e:
            return f"Error: {e}"

        if response is None:
            return "Error: Not logged in. Please run: login <username> <password>"
        if response.status_code == 200:
            return "Session refreshed."
        return f"Refresh failed: {self._format_error(response)}"

    def me(self) -> str:
        try:
            response = self._authorized(lambda headers: self._request('GET', '/me', headers=headers))
        except (NotLoggedInError, ConnectionError) as e:
            return f"Error: {e}"

        if response.status_code == 200:
            data = response.json()
            lines = [f"User ID:  {data['user_id']}", f"Username: {data['username']}"]
            if data.get('email'):
                lines.append(f"Email:    {data['email']}")
            return '\n'.join(lines)
        return f"Error: {self._format_error(response)}"

    def logout(self) -> str:
        try:
            response = self._authorized(lambda headers: self._request('POST', '/logout', headers=headers))
        except NotLoggedInError:
            self.config.clear_tokens()
            return "Already logged out."
        except ConnectionError as e:
            return f"Error: {e}"

        self.config.clear_tokens()
        if response.status_code == 204:
            return "Logged out. All sessions revoked."
        return f"Logged out locally; server said: {self._format_error(response)}"

    def upload(self, file_path: str, is_public: bool = False) -> str:
        """
        Upload one local file as multipart/form-data.

        The file is streamed from disk; a replay after refresh reopens it.
        """
        path = Path(file_path).expanduser()
        if not path.is_file():
            return f"Error: File not found: {file_path}"

        file_size = path.stat().st_size
        filename = path.name

        def send(headers: dict) -> httpx.Response:
            with ProgressFileWrapper(str(path), file_size, filename) as body:
                return self._request(
                    'POST',
                    '/file/upload',
                    headers=headers,
                    files={'file': (filename, body, 'application/octet-stream')},
                    data={'is_public': 'true' if is_public else 'false'},
                )

        try:
            response = self._authorized(send)
        except (NotLoggedInError, ConnectionError) as e:
            return f"Error: {e}"
        except OSError as e:
            return f"Error reading {file_path}: {e}"

        if response.status_code == 200:
            data = response.json()
            visibility = "public" if data['is_public'] else "private"
            return (
                f"Uploaded: {data['filename']} "
                f"(ID: {data['file_id']}, Size: {format_file_size(data['size'])}, {visibility})"
            )
        return f"Error uploading {file_path}: {self._format_error(response)}"

    def list_files(self) -> str:
        try:
            response = self._authorized(lambda headers: self._request('GET', '/files', headers=headers))
        except (NotLoggedInError, ConnectionError) as e:
            return f"Error: {e}"

        if response.status_code == 200:
            return format_file_table(response.json()['files'])
        return f"Error: {self._format_error(response)}"

    def share(self, file_id: int, user_id: int) -> str:
        def send(headers: dict) -> httpx.Response:
            return self._request('POST', f'/file/{file_id}/share', headers=headers, json={'user_id': user_id})

        try:
            response = self._authorized(send)
        except (NotLoggedInError, ConnectionError) as e:
            return f"Error: {e}"

        if response.status_code == 200:
            data = response.json()
            return f"Shared file {file_id} with user {user_id} (permission ID: {data['permission_id']})."
        return f"Error: {self._format_error(response)}"

    def revoke_user(self, file_id: int, user_id: int) -> str:
        def send(headers: dict) -> httpx.Response:
            return self._request('DELETE', f'/file/{file_id}/share/user/{user_id}', headers=headers)

        try:
            response = self._authorized(send)
        except (NotLoggedInError, ConnectionError) as e:
            return f"Error: {e}"

        if response.status_code == 204:
            return f"Revoked access to file {file_id} for user {user_id}."
        return f"Error: {self._format_error(response)}"

    def download(self, file_id: int, output_path: str, public: bool = False) -> str:
        """
        Stream a file to output_path. A partially written file is removed if
        the transfer fails.
        """
        if public:
            def send(headers: dict) -> httpx.Response:
                return self._request('GET', f'/file/public/{file_id}', stream=True)
        else:
            def send(headers: dict) -> httpx.Response:
                return self._request('GET', f'/file/{file_id}', headers=headers, stream=True)

        try:
            response = send({}) if public else self._authorized(send)
        except (NotLoggedInError, ConnectionError) as e:
            return f"Error: {e}"

        try:
            if response.status_code != 200:
                response.read()
                return f"Error: {self._format_error(response)}"
            return self._save_stream(response, file_id, Path(output_path).expanduser())
        finally:
            response.close()

    def _save_stream(self, response: httpx.Response, file_id: int, output_file: Path) -> str:
        if output_file.is_dir():
            return f"Error: {output_file} is a directory"

        downloaded = 0
        try:
            output_file.parent.mkdir(parents=True, exist_ok=True)
            with open(output_file, 'wb') as f:
                for chunk in response.iter_bytes():
                    f.write(chunk)
                    downloaded += len(chunk)
                    sys.stdout.write(f"\rDownloading file {file_id}: {format_file_size(downloaded)}")
                    sys.stdout.flush()
        except (OSError, httpx.HTTPError) as e:
            sys.stdout.write('\n')
            if output_file.exists():
                os.remove(output_file)
            return f"Error downloading file {file_id}: {e}"

        sys.stdout.write('\n')
        sys.stdout.flush()
        return f"Downloaded file {file_id} ({format_file_size(downloaded)})\nSaved to: {output_file.absolute()}"

    def close(self) -> None:
        """Close the HTTP session."""
        self.session.close()
