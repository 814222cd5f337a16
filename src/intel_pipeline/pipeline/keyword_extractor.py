"""
Keyword Extractor - Turns a connector's records into category -> keywords.

This is the only bridge between raw connector output and the next frontier.
It is a pure function: the same records always give the same mapping.
"""

from typing import Any, Dict, Iterable, List

from ..connectors.base import DomainConnector


def extract_categories(connector: DomainConnector, records: Iterable[Any]) -> Dict[str, List[str]]:
    """
    Aggregate keywords per retrievable category across a batch of records.

    Values are whitespace-stripped, empty strings dropped and duplicates
    removed keeping first-seen order. Categories without keywords are
    omitted.

    Args:
        connector: Connector that produced the records
        records: Records returned by connector.search()

    Returns:
        dict mapping category identifier to keyword list
    """
    categories = connector.retrievable_categories
    collected: Dict[str, List[str]] = {}
    seen: Dict[str, set] = {category: set() for category in categories}

    for record in records:
        for category in categories:
            for value in connector.data_by_category(record, category) or []:
                if not isinstance(value, str):
                    continue
                keyword = value.strip()
                if not keyword or keyword in seen[category]:
                    continue
                seen[category].add(keyword)
                collected.setdefault(category, []).append(keyword)

    # Keep the connector's declared category order
    return {category: collected[category] for category in categories if category in collected}
