import os
from typing import Callable, Dict, List

from pydantic import BaseModel

from patcher.discovery import JETSKI_AGENT_REL, WORKBENCH_REL
from patcher.engine import Target


class Fix(BaseModel):
    name: str
    description: str
    targets: Callable[[str], List[Target]]


def auto_run_targets(root: str) -> List[Target]:
    """Both bundles carry their own copy of the terminal policy dropdown."""
    return [
        Target(path=os.path.join(root, WORKBENCH_REL), label='workbench'),
        Target(path=os.path.join(root, JETSKI_AGENT_REL), label='jetskiAgent'),
    ]


FIXES: Dict[str, Fix] = {
    'auto-run': Fix(
        name='auto-run',
        description='"Always Proceed" terminal policy doesn\'t auto-execute commands',
        targets=auto_run_targets,
    ),
}
