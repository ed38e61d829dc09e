# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.

"""
Operation namespace classes for the tablestore client.

This module contains the operation namespace classes that organize
related operations under intuitive namespaces:
- TableOperations: create, delete, exists and list tables
- EntityOperations: single and batch entity operations
- QueryOperations: segmented and lazy entity queries
"""

__all__ = []
