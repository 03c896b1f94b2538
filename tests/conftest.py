import pytest

from patcher.discovery import JETSKI_AGENT_REL, WORKBENCH_REL

HANDLER = 'y=Mt(_=>{h?.setTerminalAutoExecutionPolicy?.(_),_===Dhe.EAGER&&b(!0)},[h,b])'
POLICY_DECL = 'u=h?.terminalAutoExecutionPolicy??Dhe.OFF,'
SECURE_DECL = 'd=h?.secureModeEnabled??!1,'
COMPONENT_HEAD = 'function Zx(e){const h=e.stepHandler,'
COMPONENT_TAIL = ';mn(()=>{if(u)k(u)},[u]);return y}'
CLEANUP_EFFECT = 'function Yy(a){mn(()=>{const t=setTimeout(a,5);return ()=>{clearTimeout(t)}},[a]);Mt(()=>{go()},[])}'

EXPECTED_FRAGMENT = '_aep=mn(()=>{u===Dhe.EAGER&&!d&&b(!0)},[]),'


def make_bundle(policy=POLICY_DECL, secure=SECURE_DECL, handler=HANDLER,
                filler='', effects=CLEANUP_EFFECT, tail=COMPONENT_TAIL):
    """A tiny stand-in for workbench.desktop.main.js with the policy dropdown component."""
    return ('var Q=1;' + effects + ';' + COMPONENT_HEAD + policy + secure
            + filler + handler + tail + ';var R=2;')


@pytest.fixture
def bundle():
    return make_bundle()


@pytest.fixture
def bundle_file(tmp_path, bundle):
    path = tmp_path / "workbench.desktop.main.js"
    path.write_bytes(bundle.encode("utf-8"))
    return str(path)


@pytest.fixture
def install_root(tmp_path, bundle):
    """Fake Antigravity installation with both target bundles and version files."""
    root = tmp_path / "Antigravity"
    for rel in (WORKBENCH_REL, JETSKI_AGENT_REL):
        target = root / rel
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_bytes(bundle.encode("utf-8"))
    (root / "antigravity").write_text("")
    app = root / "resources" / "app"
    (app / "package.json").write_text('{"version": "1.11.3"}')
    (app / "product.json").write_text('{"ideVersion": "1.104.0"}')
    return str(root)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch, tmp_path):
    """Keep user config and install hints out of the tests."""
    for var in ("ANTIGRAVITY_PATH", "BETTER_ANTIGRAVITY_CONFIG",
                "BETTER_ANTIGRAVITY_BACKUP_SUFFIX", "BETTER_ANTIGRAVITY_HOOK_TIE_POLICY"):
        monkeypatch.delenv(var, raising=False)
    monkeypatch.chdir(tmp_path)


def read_bytes(path):
    with open(path, "rb") as f:
        return f.read()
