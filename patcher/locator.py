from pydantic import BaseModel, Field

from patcher.errors import AmbiguousTargetError
from patcher.synthesizer import PatchFragment


class InsertionPoint(BaseModel):
    """Where the fragment goes: directly in front of the handler text."""
    offset: int = Field(ge=0)
    target: str


def locate(text: str, target: str) -> InsertionPoint:
    """
    Find the single verbatim occurrence of `target`.

    A target that occurs zero or several times raises AmbiguousTargetError;
    plain substring replacement could otherwise land in the wrong place.
    """
    count = text.count(target)
    if count != 1:
        raise AmbiguousTargetError(count)
    return InsertionPoint(offset=text.index(target), target=target)


def splice(text: str, point: InsertionPoint, fragment: PatchFragment) -> str:
    return text[:point.offset] + fragment.code + text[point.offset:]
