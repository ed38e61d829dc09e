# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.

"""Wire-level request construction and payload (de)serialization."""

__all__ = []
