from types import MappingProxyType
from typing import Awaitable, Callable, Mapping

from ..schemas import ModuleKey, ModuleResult
from .fetcher import SiteSnapshot
from .modules import (
    CheckContext,
    check_accessibility,
    check_competitor,
    check_crawl_health,
    check_local,
    check_mobile,
    check_on_page,
    check_performance,
    check_schema,
    check_security,
    check_social,
)

CheckFn = Callable[[SiteSnapshot, CheckContext], Awaitable[ModuleResult]]

CHECKS: Mapping[ModuleKey, CheckFn] = MappingProxyType({
    ModuleKey.PERFORMANCE: check_performance,
    ModuleKey.CRAWL_HEALTH: check_crawl_health,
    ModuleKey.ON_PAGE: check_on_page,
    ModuleKey.MOBILE: check_mobile,
    ModuleKey.LOCAL: check_local,
    ModuleKey.ACCESSIBILITY: check_accessibility,
    ModuleKey.SECURITY: check_security,
    ModuleKey.SCHEMA: check_schema,
    ModuleKey.SOCIAL: check_social,
    ModuleKey.COMPETITOR_OVERVIEW: check_competitor,
})

_unregistered = set(ModuleKey) - set(CHECKS)
if _unregistered:
    raise RuntimeError(f"Modules without a check: {sorted(k.value for k in _unregistered)}")
