"""
Repository record schema.

A ``Record`` is one repository's metadata snapshot as exported to CSV.
Numeric fields are addressed through the ``NumericField`` enum and the
``FIELD_ACCESSORS`` table instead of by free-form string lookup, so an
unknown field name fails when the request is built rather than yielding
missing values deep inside a computation.
"""

from dataclasses import dataclass
from enum import Enum
from operator import attrgetter
from typing import Any, Callable, Dict, List, Union

from .errors import UnknownFieldError


REQUIRED_COLUMNS: List[str] = [
    "Org_Name", "Repo_Name", "Is_Empty", "Last_Push", "Last_Update",
    "isFork", "isArchived", "Repo_Size_mb", "Record_Count", "Collaborator_Count",
    "Protected_Branch_Count", "PR_Review_Count", "Milestone_Count", "Issue_Count",
    "PR_Count", "PR_Review_Comment_Count", "Commit_Comment_Count", "Issue_Comment_Count",
    "Issue_Event_Count", "Release_Count", "Project_Count", "Branch_Count",
    "Tag_Count", "Discussion_Count", "Has_Wiki", "Full_URL", "Migration_Issue", "Created",
]

BOOLEAN_COLUMNS: List[str] = ["Is_Empty", "isFork", "isArchived", "Has_Wiki"]

# Activity counters summed into Record_Count when the export leaves it empty
ACTIVITY_COUNT_COLUMNS: List[str] = [
    "Collaborator_Count", "Protected_Branch_Count", "PR_Review_Count",
    "Milestone_Count", "Issue_Count", "PR_Count", "PR_Review_Comment_Count",
    "Commit_Comment_Count", "Issue_Comment_Count", "Issue_Event_Count",
    "Release_Count", "Project_Count", "Branch_Count", "Tag_Count", "Discussion_Count",
]


class NumericField(str, Enum):
    """Numeric columns of the repository export."""

    REPO_SIZE_MB = "Repo_Size_mb"
    RECORD_COUNT = "Record_Count"
    COLLABORATOR_COUNT = "Collaborator_Count"
    PROTECTED_BRANCH_COUNT = "Protected_Branch_Count"
    PR_REVIEW_COUNT = "PR_Review_Count"
    MILESTONE_COUNT = "Milestone_Count"
    ISSUE_COUNT = "Issue_Count"
    PR_COUNT = "PR_Count"
    PR_REVIEW_COMMENT_COUNT = "PR_Review_Comment_Count"
    COMMIT_COMMENT_COUNT = "Commit_Comment_Count"
    ISSUE_COMMENT_COUNT = "Issue_Comment_Count"
    ISSUE_EVENT_COUNT = "Issue_Event_Count"
    RELEASE_COUNT = "Release_Count"
    PROJECT_COUNT = "Project_Count"
    BRANCH_COUNT = "Branch_Count"
    TAG_COUNT = "Tag_Count"
    DISCUSSION_COUNT = "Discussion_Count"

    @classmethod
    def parse(cls, name: Union[str, "NumericField"]) -> "NumericField":
        """Resolve a column name (or enum member name) to a field.

        Raises:
            UnknownFieldError: if the name is not a numeric column.
        """
        if isinstance(name, cls):
            return name
        try:
            return cls(name)
        except ValueError:
            pass
        try:
            return cls[str(name).upper()]
        except KeyError:
            raise UnknownFieldError(str(name)) from None

    @property
    def label(self) -> str:
        """Human readable column label (``Repo_Size_mb`` -> ``Repo Size mb``)."""
        return self.value.replace("_", " ")


NUMERICAL_COLUMNS: List[str] = [f.value for f in NumericField]


@dataclass(frozen=True)
class Record:
    """One repository metadata snapshot."""

    org_name: str
    repo_name: str
    is_empty: bool
    last_push: str
    last_update: str
    is_fork: bool
    is_archived: bool
    repo_size_mb: float
    record_count: float
    collaborator_count: float
    protected_branch_count: float
    pr_review_count: float
    milestone_count: float
    issue_count: float
    pr_count: float
    pr_review_comment_count: float
    commit_comment_count: float
    issue_comment_count: float
    issue_event_count: float
    release_count: float
    project_count: float
    branch_count: float
    tag_count: float
    discussion_count: float
    has_wiki: bool
    full_url: str
    migration_issue: str
    created: str

    @property
    def full_name(self) -> str:
        return f"{self.org_name}/{self.repo_name}"

    def value(self, field: NumericField) -> float:
        return FIELD_ACCESSORS[field](self)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to a dict keyed by the original CSV column names."""
        return {column: getattr(self, attribute_name(column)) for column in REQUIRED_COLUMNS}

    @classmethod
    def from_columns(cls, row: Dict[str, Any]) -> "Record":
        """Build a record from already coerced column values."""
        return cls(**{attribute_name(column): row[column] for column in REQUIRED_COLUMNS})


def attribute_name(column: str) -> str:
    """Map a CSV column name to the ``Record`` attribute holding it."""
    if column == "isFork":
        return "is_fork"
    if column == "isArchived":
        return "is_archived"
    return column.lower()


FIELD_ACCESSORS: Dict[NumericField, Callable[[Record], float]] = {
    field: attrgetter(attribute_name(field.value)) for field in NumericField
}
