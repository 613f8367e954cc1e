# Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
# SPDX-License-Identifier: MIT-0

# Use true lazy loading for all submodules
__version__ = "0.1.0"

# Cache for lazy-loaded submodules
_submodules = {}


def __getattr__(name):
    """Lazy load submodules only when accessed"""
    if name in [
        "assessment",
        "config",
        "evaluation",
        "extraction",
        "learning",
        "metrics",
        "models",
        "monitoring",
        "processing",
        "resilience",
        "stores",
        "utils",
    ]:
        if name not in _submodules:
            _submodules[name] = __import__(f"vat_common.{name}", fromlist=[name])
        return _submodules[name]

    # Handle specific imports from models
    if name in ["get_config", "Document", "DocumentCategory", "Status"]:
        if name == "get_config":
            if "config" not in _submodules:
                _submodules["config"] = __import__(
                    "vat_common.config", fromlist=["config"]
                )
            return getattr(_submodules["config"], name)
        if "models" not in _submodules:
            _submodules["models"] = __import__("vat_common.models", fromlist=["models"])
        return getattr(_submodules["models"], name)

    raise AttributeError(f"module '{__name__}' has no attribute '{name}'")


# Define what should be available when using "from vat_common import *"
__all__ = [
    "assessment",
    "config",
    "evaluation",
    "extraction",
    "learning",
    "metrics",
    "models",
    "monitoring",
    "processing",
    "resilience",
    "stores",
    "utils",
    "get_config",
    "Document",
    "DocumentCategory",
    "Status",
]
