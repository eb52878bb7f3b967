"""
Error taxonomy shared by all pods
"""

from typing import List, TYPE_CHECKING

if TYPE_CHECKING:
    from ..pod2_grid_planning.schemas import ValidationIssue


class PanelSplitterError(Exception):
    """Base class for document and layout failures"""


class ParseError(PanelSplitterError):
    """Input document is malformed or unreadable"""


class DimensionError(ParseError):
    """Input document has no resolvable physical size"""


class LayoutError(PanelSplitterError):
    """Grid computation failed for the given layout"""


class SettingsValidationError(PanelSplitterError):
    """
    One or more layout settings violate their invariants.

    All issues are carried together so a caller can fix them at once.
    """

    def __init__(self, issues: List["ValidationIssue"]):
        self.issues = list(issues)
        details = "; ".join(f"{issue.field}: {issue.message}" for issue in self.issues)
        super().__init__(f"Invalid layout settings ({details})")

    @property
    def fields(self) -> List[str]:
        return [issue.field for issue in self.issues]


class TilingCancelled(Exception):
    """Batch stopped by its cancellation predicate. Not a failure."""
