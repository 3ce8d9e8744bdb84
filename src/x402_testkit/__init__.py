"""x402-testkit - compliance verification for HTTP 402 payment-required APIs.

Runs declarative YAML test suites and single-endpoint compliance checks
against services that gate resources behind an x402 challenge, and reports
the results as text, JSON or JUnit XML.
"""

__version__ = "0.1.0"
