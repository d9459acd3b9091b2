"""
Core translation modules

Note: glossa.config imports glossa.core.exceptions, so this package does not
re-export anything. Import from the submodules directly:

    from glossa.core.job_driver import TranslationJobDriver
"""

__all__ = []
