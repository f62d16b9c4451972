"""
Domain service: Grouping of street tree records into neighborhoods and streets.

This module turns raw catalog records into:
- Validated TreeRecord instances (Vancouver bounding box check)
- Per-neighborhood tree counts with a representative coordinate
- Per-street tree counts within a neighborhood
"""
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Tuple
import logging

from app.domain.models import (
    BloomStatus,
    Coordinates,
    NeighborhoodStats,
    NeighborhoodSummary,
    StreetSummary,
    TreeRecord,
)
from app.utils.coordinates import extract_geo_point, in_bounds

logger = logging.getLogger(__name__)

# Catalog spellings that refer to the same neighborhood
NEIGHBORHOOD_ALIASES = {
    "MT PLEASANT": "MOUNT PLEASANT",
}


def normalize_neighborhood_name(name: str) -> str:
    """Map alternative catalog spellings onto the canonical name."""
    return NEIGHBORHOOD_ALIASES.get(name, name)


def normalize_tree(raw: Dict[str, Any], strict: bool = False) -> Optional[TreeRecord]:
    """
    Convert a raw catalog record into a TreeRecord.

    Args:
        raw: Record as returned by the catalog
        strict: Also require a tree id, a street and a geo point

    Returns:
        TreeRecord, or None if the record must be discarded
    """
    tree_id = raw.get("tree_id")
    has_id = tree_id is not None and tree_id != ""
    if strict and not (has_id and raw.get("std_street") and raw.get("geo_point_2d")):
        return None

    lat, lon = extract_geo_point(raw)
    if not in_bounds(lat, lon):
        logger.debug(f"Dropping tree {tree_id} with coordinates ({lat}, {lon})")
        return None

    return TreeRecord(
        tree_id="" if tree_id is None else str(tree_id),
        std_street=raw.get("std_street") or None,
        genus_name=raw.get("genus_name"),
        species_name=raw.get("species_name"),
        common_name=raw.get("common_name"),
        neighbourhood_name=raw.get("neighbourhood_name") or None,
        latitude=float(lat),
        longitude=float(lon),
    )


def normalize_trees(records: Iterable[Dict[str, Any]], strict: bool = False) -> List[TreeRecord]:
    """Normalize a batch of records, dropping the invalid ones."""
    trees = []
    dropped = 0
    for raw in records:
        tree = normalize_tree(raw, strict=strict)
        if tree is None:
            dropped += 1
            continue
        trees.append(tree)
    if dropped:
        logger.info(f"Discarded {dropped} catalog records without usable data")
    return trees


@dataclass
class _StreetTally:
    count: int = 0
    lat: float = 0.0
    lng: float = 0.0


@dataclass
class _NeighborhoodTally:
    count: int = 0
    streets: Dict[str, _StreetTally] = field(default_factory=dict)


def group_by_neighborhood(trees: Iterable[TreeRecord]) -> Dict[str, NeighborhoodSummary]:
    """
    Count trees per neighborhood and locate each neighborhood.

    A neighborhood's coordinates are those of its street with the most
    trees, using the first tree seen on that street. Ties keep the street
    encountered first. Trees without a neighborhood are skipped; trees
    without a street count toward the neighborhood only.

    Args:
        trees: Validated tree records

    Returns:
        Mapping from neighborhood name to summary, in first-seen order
    """
    tallies: Dict[str, _NeighborhoodTally] = {}

    for tree in trees:
        if not tree.neighbourhood_name:
            continue
        tally = tallies.setdefault(tree.neighbourhood_name, _NeighborhoodTally())
        tally.count += 1

        if tree.std_street:
            street = tally.streets.get(tree.std_street)
            if street is None:
                street = _StreetTally(lat=tree.latitude, lng=tree.longitude)
                tally.streets[tree.std_street] = street
            street.count += 1

    summaries: Dict[str, NeighborhoodSummary] = {}
    for name, tally in tallies.items():
        coordinates = Coordinates(lat=0.0, lng=0.0)
        best_count = 0
        for street in tally.streets.values():
            if street.count > best_count:
                best_count = street.count
                coordinates = Coordinates(lat=street.lat, lng=street.lng)
        summaries[name] = NeighborhoodSummary(name=name, count=tally.count, coordinates=coordinates)

    return summaries


def count_streets(trees: Iterable[TreeRecord]) -> Dict[str, StreetSummary]:
    """
    Count trees per street, every street starting as unknown.

    Returns:
        Mapping from street name to summary, in first-seen order
    """
    streets: Dict[str, StreetSummary] = {}
    for tree in trees:
        if not tree.std_street:
            continue
        summary = streets.get(tree.std_street)
        if summary is None:
            summary = StreetSummary(street=tree.std_street, bloom_status=BloomStatus.UNKNOWN)
            streets[tree.std_street] = summary
        summary.count += 1
    return streets


def has_confirmed_blooms(stats: NeighborhoodStats) -> Optional[bool]:
    """
    Decide the neighborhood status from its aggregate counts.

    One blooming street marks the whole neighborhood as blooming. Anything
    else is unknown, represented as None.
    """
    if stats.blooming_count > 0:
        return True
    return None


def sort_by_tree_count(items: List[Any]) -> List[Any]:
    """Stable sort by ``count``, largest first."""
    return sorted(items, key=lambda item: item.count, reverse=True)


def split_top(streets: List[StreetSummary], top_n: int) -> Tuple[List[StreetSummary], List[StreetSummary]]:
    """Return (all streets sorted by count, the first ``top_n`` of them)."""
    ordered = sort_by_tree_count(streets)
    return ordered, ordered[:top_n]
