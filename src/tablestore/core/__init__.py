# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.

"""
Core infrastructure for the tablestore client.

This module contains the request engine, configuration, retry policies,
error types, operation context and telemetry.
"""

__all__ = []
