from .accessibility import check_accessibility
from .base import CheckContext, Findings
from .competitor import check_competitor
from .crawl_health import check_crawl_health
from .local import check_local
from .mobile import check_mobile
from .on_page import check_on_page
from .performance import check_performance
from .schema import check_schema
from .security import check_security
from .social import check_social

__all__ = [
    "CheckContext",
    "Findings",
    "check_accessibility",
    "check_competitor",
    "check_crawl_health",
    "check_local",
    "check_mobile",
    "check_on_page",
    "check_performance",
    "check_schema",
    "check_security",
    "check_social",
]
