"""
Module: imapquery.__init__

What:
  Aggregate package exports for the imapquery IMAP query layer and expose the
  primary namespace segments (configuration, query compiler, IMAP access, MIME
  part resolution and utilities).

Why:
  Callers build tools on top of these names: an agent tool runner compiles a
  search intent, a script lists a message's attachments. Naming the supported
  subpackages keeps helper modules out of that surface.

How:
  Provide an explicit ``__all__`` declaration that enumerates the public
  subpackages.

Interfaces:
  - config: Runtime configuration schema and loader.
  - query: Criteria tree, search inputs, quick filters and the compiler.
  - imap: Read-only client, result reconciliation and query operations.
  - mime: Body-structure adapters, part resolver and message parsing.
  - utils: Logging, address normalisation and parameter shaping.

Invariants:
  - Nothing in the package writes to a mailbox; every selection is read-only.
"""

__all__ = [
    "config",
    "imap",
    "mime",
    "query",
    "utils",
]
