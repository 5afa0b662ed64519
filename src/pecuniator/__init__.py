"""PSD2/XS2A account-information client with PKCE-protected sessions."""

__version__ = "0.1.0"
