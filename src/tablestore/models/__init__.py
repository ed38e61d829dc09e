# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.

"""
Data models for the tablestore client.

- :class:`~tablestore.models.entity.TableEntity`: Row representation with dict-like property access.
- :class:`~tablestore.models.entity.EntityProperty`: Typed property value.
- :class:`~tablestore.models.operation.TableOperation`: Single-entity operation descriptor.
- :class:`~tablestore.models.batch.TableBatchOperation`: Partition-scoped transaction group.
- :class:`~tablestore.models.query.TableQuery`: Filter, projection and take count.
- :class:`~tablestore.models.continuation.TableContinuationToken`: Query resumption state.

Note:
    This ``__init__.py`` does NOT import/export models. Import directly from
    the specific module files.
"""

__all__ = []
