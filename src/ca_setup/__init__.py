"""
ca_setup — CA bundle validation and installation.

Accepts a PEM certificate bundle, a PEM private key and an optional PEM CRL
chain, proves they are cryptographically consistent, and only then installs
them into the server's CA store.

Validation problems are collected as values (never raised) so a single run
reports every issue at once.
"""

__version__ = "0.1.0"
