"""SiteCheck audit package

Modules:
- fetcher: one GET of the subject page, parsed into an immutable SiteSnapshot.
- modules: the ten independent checks, one file each.
- registry: ModuleKey -> check function.
- analyzer: page-level facts (PageAnalysis) stored with the raw result.
- runner: runs the purchased checks concurrently and aggregates the score.
"""
from .runner import audit_site

__all__ = ['audit_site']
