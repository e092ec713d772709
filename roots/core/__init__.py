"""Core building blocks: hashing, snapshot codec, graph, content store, ledger, change log."""
