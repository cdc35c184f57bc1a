"""
Grouping of appraisal responses/questions by section for display.
"""
from collections import OrderedDict
from typing import Callable, Dict, Iterable, List, Optional, Tuple, TypeVar

T = TypeVar("T")

DEFAULT_SECTION = "Other"

# Display priority. Each entry lists the keywords that place a section there.
SECTION_PRIORITY: Tuple[Tuple[str, ...], ...] = (
    ("financial",),
    ("operational",),
    ("behaviour", "behavior"),
    ("noteworthy",),
    ("goal",),
    ("training",),
    ("comment", "additional"),
)

TEXT_SECTION_KEYWORDS = ("goal", "training", "noteworthy", "additional", "comment")


def section_rank(section_name: str) -> Optional[int]:
    name = section_name.lower()
    for index, keywords in enumerate(SECTION_PRIORITY):
        if any(k in name for k in keywords):
            return index
    return None


def section_sort_key(section_name: str):
    rank = section_rank(section_name)
    # Known sections first by priority, then the rest alphabetically
    if rank is None:
        return (1, len(SECTION_PRIORITY), section_name.lower())
    return (0, rank, section_name.lower())


def sort_section_names(names: Iterable[str]) -> List[str]:
    return sorted(names, key=section_sort_key)


def is_rating_section(section_name: str) -> bool:
    name = section_name.lower()
    return not any(k in name for k in TEXT_SECTION_KEYWORDS)


def group_by_section(items: Iterable[T], section_name_of: Callable[[T], Optional[str]]) -> "OrderedDict[str, List[T]]":
    """
    Group items under their section name and return the groups in display order.
    Item order inside a group is preserved.
    """
    groups: Dict[str, List[T]] = {}
    for item in items:
        name = section_name_of(item) or DEFAULT_SECTION
        groups.setdefault(name, []).append(item)
    return OrderedDict((name, groups[name]) for name in sort_section_names(groups))


def response_section_name(response) -> Optional[str]:
    question = getattr(response, "question", None)
    section = getattr(question, "section", None) if question is not None else None
    return section.name if section is not None else None
