import re

from pydantic import BaseModel

from patcher.extractor import ExtractedSymbols

DEFAULT_BINDING = "_aep"


class PatchFragment(BaseModel):
    """Code inserted in front of the onChange handler."""
    code: str
    marker: str


def build_fragment(symbols: ExtractedSymbols, binding: str = DEFAULT_BINDING) -> PatchFragment:
    """
    Build the auto-run effect for one bundle.

    The effect runs once on mount and confirms the pending command when the
    stored policy is EAGER and secure mode is off, which is what the policy
    dropdown's onChange does when the user picks "Always Proceed". The
    trailing comma keeps it inside the handler's declaration list.
    """
    s = symbols
    marker = f"{binding}={s.hook_alias}(()=>{{{s.policy_var}==={s.enum_alias}.EAGER"
    code = f"{marker}&&!{s.secure_var}&&{s.confirm_alias}(!0)}},[]),"
    return PatchFragment(code=code, marker=marker)


def applied_pattern(binding: str = DEFAULT_BINDING) -> re.Pattern:
    """Regex recognising a previously inserted fragment, whatever aliases it used."""
    return re.compile(
        re.escape(binding) + r"=\w+\(\(\)=>\{[^}]+EAGER[^}]+\},\[\]\)",
        re.ASCII,
    )


def is_applied(text: str, binding: str = DEFAULT_BINDING) -> bool:
    if f"{binding}=" not in text:
        return False
    return applied_pattern(binding).search(text) is not None
