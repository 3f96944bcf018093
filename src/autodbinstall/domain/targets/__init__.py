"""
Domain Targets Package.
Target identifier parsing components.
"""

from autodbinstall.domain.targets.parser import DEFAULT_INSTANCE, TargetParser, ParsedTarget

__all__ = ["DEFAULT_INSTANCE", "TargetParser", "ParsedTarget"]
