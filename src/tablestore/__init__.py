# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.

"""
Client library for Azure-Table-compatible key/attribute storage.

Import the client from :mod:`tablestore.client` and models from their
modules, for example::

    from tablestore.client import TableServiceClient
    from tablestore.models.entity import TableEntity
    from tablestore.models.operation import TableOperation
"""

from .client import TableServiceClient

__version__ = "0.1.0"

__all__ = ["TableServiceClient", "__version__"]
