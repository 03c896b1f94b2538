"""
Identifier extraction for the "Always Proceed" auto-run fix.

The workbench bundle is minified, so every name we need changes between
builds. Instead of hardcoding them we find the terminal-policy onChange
handler by its shape and read the local aliases off the surrounding text:

    <ASSIGN>=<useCallback>((<ARG>)=>{
        <stepHandler>?.setTerminalAutoExecutionPolicy?.(<ARG>),
        <ARG>===<ENUM>.EAGER&&<CONFIRM>(!0)
    },[...])

Shortly before the handler the same component declares:

    <POLICY> = <stepHandler>?.terminalAutoExecutionPolicy ?? <ENUM>.OFF
    <SECURE> = <stepHandler>?.secureModeEnabled ?? !1

The useEffect alias is not referenced by the handler at all; it is inferred
by counting short aliases called as `alias(()=>{...},[...])` near the
handler, with a heavy bonus for calls whose body returns a cleanup function.
"""
import re
from typing import Dict, List, Optional

from pydantic import BaseModel, Field

from patcher import log
from patcher.config import PatchConfig
from patcher.errors import ExtractionError

IDENTIFIER = r"^[A-Za-z0-9_]+$"

HANDLER_RE = re.compile(
    r"(\w+)=(\w+)\((\w+)=>\{\w+\?\.setTerminalAutoExecutionPolicy\?\.\(\3\),"
    r"\3===(\w+)\.EAGER&&(\w+)\(!0\)\},\[[\w,]*\]\)",
    re.ASCII,
)
SECURE_RE = re.compile(r"(\w+)=\w+\??\.secureModeEnabled\?\?!1", re.ASCII)

# Statement body, no nested block, followed by a dependency list.
PLAIN_EFFECT_BODY = r"\(\(\)=>\{[^}]{3,80}\},\["
# Body that returns a cleanup function: only useEffect looks like this.
CLEANUP_EFFECT_BODY = r"\(\(\)=>\{[^}]*return\s*\(\)=>"


class StructuralMatch(BaseModel):
    """The literal onChange handler text and where it starts."""
    text: str
    offset: int = Field(ge=0)


class ExtractedSymbols(BaseModel):
    assign_target: str = Field(pattern=IDENTIFIER)
    wrapper_alias: str = Field(pattern=IDENTIFIER)
    param_name: str = Field(pattern=IDENTIFIER)
    enum_alias: str = Field(pattern=IDENTIFIER)
    confirm_alias: str = Field(pattern=IDENTIFIER)
    policy_var: str = Field(pattern=IDENTIFIER)
    secure_var: str = Field(pattern=IDENTIFIER)
    hook_alias: str = Field(pattern=IDENTIFIER)


class Extraction(BaseModel):
    match: StructuralMatch
    symbols: ExtractedSymbols


def find_handler(text: str) -> re.Match:
    """Stage 1: locate the onChange handler. All matches must share one literal text."""
    matches = list(HANDLER_RE.finditer(text))
    if not matches:
        raise ExtractionError(ExtractionError.NO_HANDLER, "Could not find onChange handler pattern")

    distinct = {m.group(0) for m in matches}
    if len(distinct) > 1:
        raise ExtractionError(
            ExtractionError.AMBIGUOUS_HANDLER,
            f"Found {len(distinct)} different onChange handlers, refusing to guess",
        )
    return matches[0]


def _preceding_window(text: str, offset: int, size: int) -> str:
    return text[max(0, offset - size):offset]


def _last_capture(pattern: re.Pattern, window: str) -> Optional[str]:
    """First group of the match nearest the end of `window`."""
    found = None
    for m in pattern.finditer(window):
        found = m.group(1)
    return found


def find_policy_var(window: str, enum_alias: str) -> str:
    """Stage 2: VAR=handler?.terminalAutoExecutionPolicy??ENUM.OFF"""
    policy_re = re.compile(
        r"(\w+)=\w+\??\.terminalAutoExecutionPolicy\?\?%s\.OFF" % re.escape(enum_alias),
        re.ASCII,
    )
    policy_var = _last_capture(policy_re, window)
    if not policy_var:
        raise ExtractionError(ExtractionError.NO_POLICY_VARIABLE, "Could not find policy variable")
    return policy_var


def find_secure_var(window: str) -> str:
    """Stage 3: VAR=handler?.secureModeEnabled??!1"""
    secure_var = _last_capture(SECURE_RE, window)
    if not secure_var:
        raise ExtractionError(ExtractionError.NO_SECURE_VARIABLE, "Could not find secureMode variable")
    return secure_var


def tally_hook_candidates(text: str, offset: int, wrapper_alias: str, config: PatchConfig) -> Dict[str, int]:
    """
    Weighted occurrence count per candidate useEffect alias.

    Plain `alias(()=>{...},[` calls are counted within `hook_window`
    characters either side of the handler; cleanup-returning calls are
    counted across the whole file. Dict order is discovery order.
    """
    alias = r"\b(\w{%d,%d})" % (config.hook_alias_min_len, config.hook_alias_max_len)
    plain_re = re.compile(alias + PLAIN_EFFECT_BODY, re.ASCII)
    cleanup_re = re.compile(alias + CLEANUP_EFFECT_BODY, re.ASCII)
    excluded = {wrapper_alias, *config.hook_excluded_aliases}

    tally: Dict[str, int] = {}
    nearby = text[max(0, offset - config.hook_window):offset + config.hook_window]
    for m in plain_re.finditer(nearby):
        name = m.group(1)
        if name not in excluded:
            tally[name] = tally.get(name, 0) + config.hook_weights.plain

    for m in cleanup_re.finditer(text):
        name = m.group(1)
        if name not in excluded:
            tally[name] = tally.get(name, 0) + config.hook_weights.cleanup

    return tally


def select_hook_alias(tally: Dict[str, int], tie_policy: str = "fail") -> str:
    """Stage 4: highest weighted candidate wins."""
    best = max(tally.values(), default=0)
    if best <= 0:
        raise ExtractionError(ExtractionError.NO_SCHEDULING_HOOK, "Could not determine useEffect alias")

    leaders: List[str] = [name for name, score in tally.items() if score == best]
    if len(leaders) > 1 and tie_policy != "first":
        raise ExtractionError(
            ExtractionError.AMBIGUOUS_SCHEDULING_HOOK,
            f"useEffect alias is ambiguous: {', '.join(leaders)} all scored {best}",
        )
    return leaders[0]


def extract_symbols(text: str, config: Optional[PatchConfig] = None) -> Extraction:
    """
    Run all extraction stages against one bundle.

    Returns a fully populated Extraction or raises ExtractionError naming
    the first stage that failed. Nothing partial is ever returned.
    """
    config = config or PatchConfig()

    handler = find_handler(text)
    assign_target, wrapper_alias, param_name, enum_alias, confirm_alias = handler.groups()
    offset = handler.start()
    log.echo(f"📋 Found onChange at offset {offset}")
    log.detail(f"callback={wrapper_alias}, enum={enum_alias}, confirm={confirm_alias}")

    window = _preceding_window(text, offset, config.policy_window)
    policy_var = find_policy_var(window, enum_alias)
    log.detail(f"policyVar={policy_var}")

    secure_var = find_secure_var(window)
    log.detail(f"secureVar={secure_var}")

    tally = tally_hook_candidates(text, offset, wrapper_alias, config)
    hook_alias = select_hook_alias(tally, config.hook_tie_policy)
    log.detail(f"useEffect={hook_alias} (confidence: {tally[hook_alias]} hits)")

    return Extraction(
        match=StructuralMatch(text=handler.group(0), offset=offset),
        symbols=ExtractedSymbols(
            assign_target=assign_target,
            wrapper_alias=wrapper_alias,
            param_name=param_name,
            enum_alias=enum_alias,
            confirm_alias=confirm_alias,
            policy_var=policy_var,
            secure_var=secure_var,
            hook_alias=hook_alias,
        ),
    )
