"""SiteCheck: paid single-page SEO audits, written up and emailed to the customer."""
__version__ = "1.0.0"
