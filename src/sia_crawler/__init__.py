"""
sia_crawler — CA trust-chain bundle builder.

Starts from a trust-anchor certificate, follows the Subject Information
Access (SIA) CA-repository pointers of every accepted CA certificate,
validates what it finds, and writes the accepted chain as a ca-bundle file.

Built on the Railway-Oriented Programming (ROP) framework for
explicit, composable, functional error handling.
"""

__version__ = "0.1.0"
