from enum import Enum

from perm_reconcile.models import ChangeKind, ConflictResolution, RiskTier, RuleAction


class UIStyle(str, Enum):
    BLUE = "blue"
    GREEN = "green"
    YELLOW = "yellow"
    RED = "red"
    CYAN = "cyan"
    MAGENTA = "magenta"
    DIM = "dim"
    WHITE = "white"


CHANGE_KIND_STYLE = {
    ChangeKind.NORMALIZE: UIStyle.CYAN.value,
    ChangeKind.REMOVE: UIStyle.MAGENTA.value,
    ChangeKind.CONSOLIDATE: UIStyle.GREEN.value,
}

RISK_STYLE = {
    RiskTier.LOW: UIStyle.GREEN.value,
    RiskTier.MEDIUM: UIStyle.YELLOW.value,
    RiskTier.HIGH: UIStyle.RED.value,
}

ACTION_STYLE = {
    RuleAction.ALLOW: UIStyle.GREEN.value,
    RuleAction.ASK: UIStyle.YELLOW.value,
    RuleAction.DENY: UIStyle.RED.value,
}

RESOLUTION_STYLE = {
    ConflictResolution.HIGHER_SCOPE_WINS: UIStyle.DIM.value,
    ConflictResolution.MANUAL_REVIEW_REQUIRED: UIStyle.YELLOW.value,
}
