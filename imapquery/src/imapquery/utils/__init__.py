"""Expose the public utility surface for imapquery.

What:
  Re-export the JSON logger, the address/header normaliser and the
  parameter-shaping helpers.

Interfaces:
  ``get_logger``, ``Address``, ``normalize_addresses``,
  ``address_from_envelope``, ``normalize_headers``, ``filter_from_params``,
  ``mailbox_name``, ``parse_uid_list``.

Invariants & Safety:
  - Logging emits redacted JSON lines; search terms and bodies never reach
    the log stream in clear text.
"""

from .addresses import Address, address_from_envelope, normalize_addresses, normalize_headers
from .logging import get_logger
from .params import filter_from_params, mailbox_name, parse_uid_list

__all__ = [
    "Address",
    "address_from_envelope",
    "filter_from_params",
    "get_logger",
    "mailbox_name",
    "normalize_addresses",
    "normalize_headers",
    "parse_uid_list",
]
