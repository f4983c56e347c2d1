"""LandScout core package.

Listing acquisition for Naver Land over one shared headless browser session:
- browser: lazily launched, single-flight Playwright session with stealth context
- cache: namespaced TTL store shared by every component
- resolver: complex name to identifier via ordered resolution strategies
- listings: per-category listing stats for one size bracket
- info: complex name, address and unit count
- pipeline: sequential per-complex and batch summaries
- service: JSON request surface
- models: pydantic schemas with total defaults
- logger: Structured JSON logging configuration
- exceptions: Custom exception hierarchy
"""

__version__ = "1.0.0"
