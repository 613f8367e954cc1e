# Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
# SPDX-License-Identifier: MIT-0

"""
Processing module exposing the VAT core to the surrounding application.
"""

from vat_common.processing.service import VatProcessingService

__all__ = ["VatProcessingService"]
