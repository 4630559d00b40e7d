"""AI Scan CLI - batch AI accessibility findings for pending scans."""

__version__ = "1.0.0"
