# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.

"""Internal pandas helpers"""

from __future__ import annotations

from typing import Any, Dict, Iterable, List

import pandas as pd

from ..common.constants import PARTITION_KEY, ROW_KEY, TIMESTAMP
from ..models.entity import TableEntity


def entity_to_record(entity: TableEntity, include_system: bool = True) -> Dict[str, Any]:
    """Flatten an entity into a plain dict of property values."""
    record: Dict[str, Any] = {}
    if include_system:
        record[PARTITION_KEY] = entity.partition_key
        record[ROW_KEY] = entity.row_key
        record[TIMESTAMP] = entity.timestamp
    for name, prop in entity.items():
        record[name] = prop.value
    return record


def entities_to_dataframe(entities: Iterable[TableEntity], include_system: bool = True) -> pd.DataFrame:
    """Build a DataFrame with one row per entity; missing properties become NaN.

    :param entities: Entities, e.g. the results of a query.
    :param include_system: Add ``PartitionKey``, ``RowKey`` and ``Timestamp`` columns first.
    """
    rows = [entity_to_record(e, include_system) for e in entities]
    if not rows:
        return pd.DataFrame(columns=[PARTITION_KEY, ROW_KEY, TIMESTAMP] if include_system else [])
    return pd.DataFrame.from_records(rows)


def dataframe_to_entities(df: pd.DataFrame, na_as_null: bool = False) -> List[TableEntity]:
    """Convert DataFrame rows to entities keyed by their ``PartitionKey`` and ``RowKey`` columns.

    :param df: Input DataFrame. ``Timestamp`` columns are ignored.
    :param na_as_null: When False (default), missing values are omitted from each entity.
        When True, missing values are kept as null string properties.
    """
    entities = []
    for row in df.to_dict(orient="records"):
        properties: Dict[str, Any] = {}
        for k, v in row.items():
            if k in (PARTITION_KEY, ROW_KEY, TIMESTAMP):
                continue
            if pd.notna(v):
                if isinstance(v, pd.Timestamp):
                    v = v.to_pydatetime()
                elif hasattr(v, "item"):
                    v = v.item()
                properties[k] = v
            elif na_as_null:
                properties[k] = None
        entities.append(TableEntity(str(row[PARTITION_KEY]), str(row[ROW_KEY]), properties))
    return entities
