"""
Utility modules

Import directly from the submodule:

    from glossa.utils.unified_logger import setup_cli_logger
"""

__all__ = []
