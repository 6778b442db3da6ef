"""
LUNES AUTOLOGIN - Cross-Platform Detection & Chrome Launch Configuration

Runtime OS detection, platform-specific paths (Chrome binary, profile, debug
output), headless mode resolution and the Chrome remote-debugging launch
arguments used to start the browser the bot attaches to over CDP.
"""

import platform
import os


# Default remote-debugging port Chrome is started with
DEFAULT_DEBUG_PORT = 9222

# Window size shared by Chrome launch args and screenshot viewport
WINDOW_WIDTH = 1280
WINDOW_HEIGHT = 720


def _bool_env(value):
    """Interpret a .env string as a boolean, None if it is not recognized."""
    if value is None:
        return None
    value = value.strip().lower()
    if value in ["true", "yes", "1"]:
        return True
    if value in ["false", "no", "0"]:
        return False
    return None


def platform_settings():
    """Detect runtime OS and resolve paths, Chrome binary and headless mode.

    Returns:
        dict: Platform settings with keys:
            - system: Runtime OS name ("Darwin", "Windows", "Linux")
            - headless: bool, False unless HEADLESS is set truthy in .env
            - chrome_path: Chrome executable path (CHROME_PATH overrides)
            - debug_port: Chrome remote-debugging port (CHROME_DEBUG_PORT overrides)
            - profile_dir: Chrome user-data directory
            - debug_dir: Debug output (logs, screenshots) path
            - display_required: True on Linux when not headless (Xvfb or desktop)
    """
    system = platform.system()

    settings = {
        "system": system,
        "headless": False,
        "chrome_path": "",
        "debug_port": DEFAULT_DEBUG_PORT,
        "profile_dir": "",
        "debug_dir": "",
        "display_required": False,
    }

    if system == "Darwin":
        settings["chrome_path"] = (
            "/Applications/Google Chrome.app/Contents/MacOS/Google Chrome"
        )
        settings["profile_dir"] = os.path.expanduser(
            "~/Library/Application Support/lunes-autologin/chrome-profile"
        )
        settings["debug_dir"] = os.path.expanduser("~/lunes-autologin/debug")
    elif system == "Windows":
        settings["chrome_path"] = (
            "C:\\Program Files\\Google\\Chrome\\Application\\chrome.exe"
        )
        settings["profile_dir"] = os.path.join(
            os.environ.get("APPDATA", "C:\\Users\\Default\\AppData\\Roaming"),
            "lunes-autologin", "chrome-profile"
        )
        settings["debug_dir"] = os.path.join(
            os.environ.get("USERPROFILE", "C:\\Users\\Default"),
            "lunes-autologin", "debug"
        )
    else:
        settings["chrome_path"] = "/usr/bin/google-chrome"
        settings["display_required"] = True
        settings["profile_dir"] = "/tmp/chrome_user_data"
        settings["debug_dir"] = os.path.expanduser("~/lunes-autologin/debug")

    # .env overrides
    env_chrome = os.getenv("CHROME_PATH")
    env_port = os.getenv("CHROME_DEBUG_PORT")
    env_profile = os.getenv("PROFILE_DIR")
    env_debug = os.getenv("DEBUG_DIR")
    if env_chrome:
        settings["chrome_path"] = env_chrome
    if env_port:
        try:
            settings["debug_port"] = int(env_port)
        except ValueError:
            raise ValueError(
                f"CHROME_DEBUG_PORT must be an integer, got: '{env_port}'"
            )
    if env_profile:
        settings["profile_dir"] = env_profile
    if env_debug:
        settings["debug_dir"] = env_debug

    headless = _bool_env(os.getenv("HEADLESS"))
    if headless is not None:
        settings["headless"] = headless
        if headless:
            settings["display_required"] = False

    os.makedirs(settings["profile_dir"], exist_ok=True)
    os.makedirs(settings["debug_dir"], exist_ok=True)

    return settings


def chrome_launch_args(settings: dict, proxy: dict = None):
    """Build the Chrome command line for a remote-debuggable session.

    Args:
        settings: Dict from platform_settings().
        proxy: Optional proxy dict from browser.proxy_config(). Only the
               server is passed to Chrome; credentials are applied to the
               browser context after connecting.

    Returns:
        list: Full argv, executable first.
    """
    args = [
        settings["chrome_path"],
        f"--remote-debugging-port={settings['debug_port']}",
        "--no-first-run",
        "--no-default-browser-check",
        "--disable-gpu",
        f"--window-size={WINDOW_WIDTH},{WINDOW_HEIGHT}",
        "--no-sandbox",
        "--disable-setuid-sandbox",
        f"--user-data-dir={settings['profile_dir']}",
        "--disable-dev-shm-usage",
    ]

    if settings["headless"]:
        args.append("--headless=new")

    if proxy:
        args.append(f"--proxy-server={proxy['server']}")
        args.append("--proxy-bypass-list=<-loopback>")

    return args
