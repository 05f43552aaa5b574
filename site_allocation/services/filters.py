"""
Filter engine: narrows the site and allocation lists shown to an operator.

Search text and region are ANDed. Results are lazy but restartable: iterating
a FilteredSequence twice re-runs the predicate over the same immutable source
and yields the same items in the same order.
"""

from typing import Callable, Generic, Iterable, Iterator, Optional, Sequence, Tuple, TypeVar

from site_allocation.schemas.allocation import Allocation
from site_allocation.schemas.site import Site
from site_allocation.schemas.snapshot import ALL_REGIONS, FilterCriteria

T = TypeVar("T")


class FilteredSequence(Generic[T]):
    def __init__(self, source: Iterable[T], predicate: Callable[[T], bool]):
        self._source: Tuple[T, ...] = tuple(source)
        self._predicate = predicate

    def __iter__(self) -> Iterator[T]:
        return (item for item in self._source if self._predicate(item))

    def __len__(self) -> int:
        return sum(1 for _ in self)

    def __eq__(self, other) -> bool:
        if isinstance(other, (FilteredSequence, list, tuple)):
            return list(self) == list(other)
        return NotImplemented

    def __repr__(self) -> str:
        return f"FilteredSequence({list(self)!r})"


class FilterResult:
    def __init__(self, sites: FilteredSequence[Site], allocations: FilteredSequence[Allocation]):
        self.sites = sites
        self.allocations = allocations


def _normalize(text: Optional[str]) -> str:
    return (text or "").strip().lower()


def _search_fields(site: Site) -> Sequence[Optional[str]]:
    return (
        site.name,
        site.region,
        site.contact_name,
        site.contact_phone,
        site.contact_email,
    )


def matches_search(site: Site, search_text: str) -> bool:
    needle = _normalize(search_text)
    if not needle:
        return True
    return any(needle in _normalize(field) for field in _search_fields(site))


def matches_region(region: Optional[str], selected: str) -> bool:
    if selected == ALL_REGIONS:
        return True
    return (region or "") == selected


def site_matches(site: Site, criteria: FilterCriteria) -> bool:
    return matches_search(site, criteria.search_text) and matches_region(site.region, criteria.region)


def filter_sites(sites: Iterable[Site], criteria: FilterCriteria) -> FilteredSequence[Site]:
    return FilteredSequence(sites, lambda site: site_matches(site, criteria))


def apply(
    sites: Iterable[Site],
    allocations: Iterable[Allocation],
    criteria: FilterCriteria,
) -> FilterResult:
    """Filters sites, and keeps the allocations that belong to a visible site."""
    visible_sites = filter_sites(sites, criteria)
    visible_ids = frozenset(site.id for site in visible_sites)
    visible_allocations = FilteredSequence(
        allocations,
        lambda a: a.site_id in visible_ids and matches_region(a.region, criteria.region),
    )
    return FilterResult(visible_sites, visible_allocations)


def clear_filters() -> FilterCriteria:
    """Match-all criteria."""
    return FilterCriteria()
