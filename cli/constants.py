"""CLI constants and configuration."""

from prompt_toolkit.styles import Style

COMMANDS = [
    "register", "login", "me", "refresh", "logout",
    "upload", "download", "public-download", "files",
    "share", "revoke-user", "health", "clear", "exit", "help",
]

STYLE = Style.from_dict(
    {
        "prompt": "#2E9E6B bold",
        "command": "#0088ff bold",
    }
)

GREEN = "\033[38;2;46;158;107m"
RESET = "\033[0m"

LOGO = f"""{GREEN}
 ███████╗███████╗███████╗
 ██╔════╝██╔════╝██╔════╝
 ███████╗█████╗  ███████╗
 ╚════██║██╔══╝  ╚════██║
 ███████║██║     ███████║
 ╚══════╝╚═╝     ╚══════╝
{RESET}"""

WELCOME_TITLE = "SFS CLI - Secure File Sharing"
WELCOME_HELP = "Type 'help' for commands or 'exit' to quit.\n"

PROMPT_TEXT = "sfs> "

HELP_TEXT = """Available commands:
  register <username> <password> [email]   Register new account (starts a session)
  login <username> <password>              Login and store the token pair
  me                                       Show the logged-in account
  refresh                                  Rotate the refresh token now
  logout                                   Revoke all sessions and forget tokens
  upload <path> [--public]                 Upload a file (10 MiB max)
  files                                    List files you own or that are shared with you
  download <file_id> <output_path>         Download a file you can access
  public-download <file_id> <output_path>  Download a public file without logging in
  share <file_id> <user_id>                Give another user read access
  revoke-user <file_id> <user_id>          Take that access away again
  health                                   Check that the server is up
  clear                                    Clear screen and redisplay welcome message
  help                                     Show this help
  exit                                     Exit REPL

Examples:
  register alice mypassword123
  upload ./report.pdf --public
  share 3 2
  download 3 ./copy-of-report.pdf"""

DEFAULT_SERVER_URL = "http://localhost:8080"

UPLOAD_READ_SIZE = 64 * 1024
