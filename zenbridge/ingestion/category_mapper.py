"""
Category Mapper
===============

Maps free-form source feed categories onto the fixed category set of the
target platform.
"""

from typing import Iterable, List


TAXONOMY = (
    "Технологии",
    "Наука",
    "Образование",
    "Культура",
    "Спорт",
    "Здоровье",
    "Путешествия",
    "Кулинария",
    "Автомобили",
    "Недвижимость",
    "Мода",
    "Красота",
    "Дом",
    "Семья",
    "Психология",
    "Бизнес",
    "Финансы",
)

DEFAULT_CATEGORY = "Технологии"
MAX_CATEGORIES = 3


class CategoryMapper:
    """Filters labels to the taxonomy, keeping input order."""

    def __init__(self, taxonomy: Iterable[str] = TAXONOMY,
                 default: str = DEFAULT_CATEGORY, limit: int = MAX_CATEGORIES):
        self.taxonomy = frozenset(taxonomy)
        self.default = default
        self.limit = limit

    def map_categories(self, labels: Iterable[str]) -> List[str]:
        """Return at most ``limit`` taxonomy labels, or the default one."""
        mapped: List[str] = []
        for label in labels or ():
            if not isinstance(label, str):
                continue
            label = label.strip()
            if label in self.taxonomy and label not in mapped:
                mapped.append(label)
                if len(mapped) == self.limit:
                    break

        return mapped or [self.default]
