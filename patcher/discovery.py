import os
import re
import sys
import json
import subprocess
from typing import Dict, List, Optional

WORKBENCH_REL = os.path.join('resources', 'app', 'out', 'vs', 'workbench', 'workbench.desktop.main.js')
JETSKI_AGENT_REL = os.path.join('resources', 'app', 'out', 'jetskiAgent', 'main.js')
INSTALL_ENV_VAR = "ANTIGRAVITY_PATH"

# InnoSetup writes its uninstall info here; HKCU first, then HKLM
REGISTRY_KEYS = [
    r'HKCU\Software\Microsoft\Windows\CurrentVersion\Uninstall\Antigravity_is1',
    r'HKLM\Software\Microsoft\Windows\CurrentVersion\Uninstall\Antigravity_is1',
    r'HKLM\Software\WOW6432Node\Microsoft\Windows\CurrentVersion\Uninstall\Antigravity_is1',
]
REGISTRY_TIMEOUT = 3


def executable_name(platform: Optional[str] = None) -> str:
    platform = platform or sys.platform
    return 'Antigravity.exe' if platform == 'win32' else 'antigravity'


def is_install_dir(directory: Optional[str]) -> bool:
    """A real installation ships the workbench bundle."""
    if not directory:
        return False
    return os.path.isfile(os.path.join(directory, WORKBENCH_REL))


def looks_like_install_root(directory: Optional[str], platform: Optional[str] = None) -> bool:
    if not directory:
        return False
    return os.path.exists(os.path.join(directory, executable_name(platform)))


def find_from_cwd(cwd: Optional[str] = None, platform: Optional[str] = None) -> Optional[str]:
    """Walk up from the working directory (the user may run from inside the install)."""
    directory = os.path.abspath(cwd or os.getcwd())
    while True:
        if looks_like_install_root(directory, platform) and is_install_dir(directory):
            return directory
        parent = os.path.dirname(directory)
        if parent == directory:
            return None
        directory = parent


def find_from_path(env_path: Optional[str] = None, platform: Optional[str] = None) -> Optional[str]:
    """Look for the executable on PATH; it may sit in the root or in bin/."""
    env_path = os.environ.get('PATH', '') if env_path is None else env_path
    exe = executable_name(platform)
    for entry in env_path.split(os.pathsep):
        if not entry or not os.path.exists(os.path.join(entry, exe)):
            continue
        if is_install_dir(entry):
            return entry
        parent = os.path.dirname(os.path.abspath(entry))
        if is_install_dir(parent):
            return parent
    return None


def parse_install_location(reg_output: str) -> Optional[str]:
    match = re.search(r'InstallLocation\s+REG_SZ\s+(.+)', reg_output, re.IGNORECASE)
    if not match:
        return None
    return match.group(1).strip().rstrip('\\')


def find_from_registry(platform: Optional[str] = None) -> Optional[str]:
    """Query the InnoSetup uninstall keys (Windows only)."""
    if (platform or sys.platform) != 'win32':
        return None
    for key in REGISTRY_KEYS:
        try:
            result = subprocess.run(
                ['reg', 'query', key, '/v', 'InstallLocation'],
                capture_output=True, text=True, timeout=REGISTRY_TIMEOUT
            )
        except (OSError, subprocess.TimeoutExpired):
            continue
        if result.returncode != 0:
            continue
        location = parse_install_location(result.stdout)
        if is_install_dir(location):
            return location
    return None


def well_known_locations(platform: Optional[str] = None) -> List[str]:
    platform = platform or sys.platform
    home = os.path.expanduser('~')
    if platform == 'win32':
        return [
            os.path.join(os.environ.get('LOCALAPPDATA', ''), 'Programs', 'Antigravity'),
            os.path.join(os.environ.get('PROGRAMFILES', ''), 'Antigravity'),
        ]
    if platform == 'darwin':
        return [
            '/Applications/Antigravity.app/Contents/Resources',
            os.path.join(home, 'Applications', 'Antigravity.app', 'Contents', 'Resources'),
        ]
    return [
        '/usr/share/antigravity',
        '/opt/antigravity',
        os.path.join(home, '.local', 'share', 'antigravity'),
    ]


def find_install_root(platform: Optional[str] = None) -> Optional[str]:
    """
    Locate the Antigravity installation root.

    Tries, in order: $ANTIGRAVITY_PATH, the working directory and its
    ancestors, PATH, the Windows registry, then per-platform defaults.
    Every probe is best-effort; returns None if nothing validates.
    """
    from_env = os.environ.get(INSTALL_ENV_VAR)
    if from_env and is_install_dir(from_env):
        return os.path.abspath(from_env)

    for probe in (find_from_cwd, find_from_path):
        found = probe(platform=platform)
        if found:
            return found

    found = find_from_registry(platform)
    if found:
        return found

    for candidate in well_known_locations(platform):
        if is_install_dir(candidate):
            return candidate
    return None


def _read_json(path: str) -> Dict:
    with open(path, 'r', encoding='utf-8') as f:
        return json.load(f)


def get_version(root: str) -> str:
    """'<package version> (IDE <ideVersion>)' or 'unknown'."""
    app_dir = os.path.join(root, 'resources', 'app')
    try:
        pkg = _read_json(os.path.join(app_dir, 'package.json'))
        product = _read_json(os.path.join(app_dir, 'product.json'))
    except (OSError, ValueError):
        return 'unknown'
    if not isinstance(pkg, dict) or not isinstance(product, dict):
        return 'unknown'
    return f"{pkg.get('version', '?')} (IDE {product.get('ideVersion', '?')})"
