# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.

"""
Common constants for the tablestore client.

This module contains protocol constants shared across the package.
"""

__all__ = []
